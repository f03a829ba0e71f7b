"""Well-known state bag keys shared by the runner and the ARM steps."""

from typing import Any

from .state import StateKey

# Runner keys
ERROR: StateKey[Exception] = StateKey("armpiper.error", Exception)
CANCELLED: StateKey[bool] = StateKey("armpiper.cancelled", bool)
HALTED: StateKey[bool] = StateKey("armpiper.halted", bool)

# ARM keys
ARM_RESOURCE_GROUP_NAME: StateKey[str] = StateKey("arm.resource_group_name", str)
ARM_COMPUTE_NAME: StateKey[str] = StateKey("arm.compute_name", str)
ARM_LOCATION: StateKey[str] = StateKey("arm.location", str)
ARM_DEPLOYMENT_NAME: StateKey[str] = StateKey("arm.deployment_name", str)
ARM_TEMPLATE: StateKey[dict[str, Any]] = StateKey("arm.template", dict)
ARM_TEMPLATE_PARAMETERS: StateKey[dict[str, Any]] = StateKey("arm.template_parameters", dict)
ARM_IS_RESOURCE_GROUP_CREATED: StateKey[bool] = StateKey("arm.is_resource_group_created", bool)
ARM_OS_DISK_VHD: StateKey[str] = StateKey("arm.os_disk_vhd", str)
ARM_CAPTURE_PARAMETERS: StateKey[dict[str, Any]] = StateKey("arm.capture_parameters", dict)
ARM_CAPTURE_TEMPLATE: StateKey[dict[str, Any]] = StateKey("arm.capture_template", dict)
