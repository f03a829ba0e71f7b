from __future__ import annotations

from typing import Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ArmSettings(BaseSettings):
    """
    Settings for building an image on Azure Resource Manager.

    Every field is read from an ``ARM_``-prefixed environment variable or a
    ``.env`` file, e.g. ``subscription_id`` -> ``ARM_SUBSCRIPTION_ID``.
    """

    model_config = SettingsConfigDict(
        env_prefix="ARM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Account ===
    subscription_id: str = ""
    access_token: SecretStr = SecretStr("")
    management_endpoint: str = "https://management.azure.com"
    resources_api_version: str = "2021-04-01"
    compute_api_version: str = "2023-03-01"

    # === Placement ===
    location: str = "westus"
    resource_group_name: Optional[str] = None  # generated when unset
    compute_name: Optional[str] = None          # generated when unset

    # === Virtual machine ===
    vm_size: str = "Standard_A1"
    os_type: str = "Linux"
    image_publisher: str = "Canonical"
    image_offer: str = "UbuntuServer"
    image_sku: str = "16.04-LTS"
    image_version: str = "latest"
    admin_username: str = "packer"
    admin_password: SecretStr = SecretStr("")
    storage_account: str = ""
    storage_container: str = "vhds"
    template_file: Optional[str] = None

    # === Capture ===
    capture_container_name: str = "images"
    capture_name_prefix: str = "packer"

    # === Requests ===
    request_timeout: float = 60.0
    poll_interval: float = 5.0
    poll_timeout: float = 1800.0
    max_retries: int = 3
    retry_delay: float = 2.0

    log_level: str = "INFO"
