"""Azure Resource Manager REST client used by the ARM build steps.

Transport concerns live here: authentication headers, request timeouts,
retries of transient failures and polling of long-running operations. The
steps only ever see a coroutine that returns a result or raises.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from .compute import VirtualMachine
from .exceptions import ArmRequestError, DeploymentFailedError, OperationTimeoutError
from .settings import ArmSettings

logger = logging.getLogger(__name__)

TERMINAL_STATES = {"Succeeded", "Failed", "Canceled"}


@dataclass
class ArmResponse:
    status: int
    headers: dict[str, str]
    body: Any = None


def _error_from(status: int, body: Any) -> ArmRequestError:
    code = message = None
    if isinstance(body, dict):
        error = body.get("error") or {}
        code = error.get("code")
        message = error.get("message")
    return ArmRequestError(status, code, message)


class ArmClient:
    """Thin async client for the Resource Manager endpoints a build needs."""

    def __init__(self, settings: ArmSettings, session: Optional[aiohttp.ClientSession] = None) -> None:
        self._settings = settings
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "ArmClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self._settings.request_timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.access_token.get_secret_value()}",
            "Content-Type": "application/json",
        }

    def _url(self, *parts: str) -> str:
        base = self._settings.management_endpoint.rstrip("/")
        return "/".join([base, "subscriptions", self._settings.subscription_id, *parts])

    def _resource_group_url(self, resource_group_name: str, *parts: str) -> str:
        return self._url("resourcegroups", resource_group_name, *parts)

    def _vm_url(self, resource_group_name: str, vm_name: str, *parts: str) -> str:
        return self._resource_group_url(
            resource_group_name, "providers", "Microsoft.Compute", "virtualMachines", vm_name, *parts
        )

    async def _request(
        self,
        method: str,
        url: str,
        api_version: Optional[str] = None,
        body: Optional[dict[str, Any]] = None,
    ) -> ArmResponse:
        params = {"api-version": api_version} if api_version else None
        retries = max(1, self._settings.max_retries)
        session = self._get_session()

        attempt = 0
        while True:
            attempt += 1
            try:
                logger.debug(f"{method} {url} (Attempt {attempt})")
                async with session.request(
                    method, url, params=params, json=body, headers=self._headers()
                ) as response:
                    try:
                        payload = await response.json(content_type=None)
                    except ValueError:
                        payload = None
                    if response.status >= 400:
                        raise _error_from(response.status, payload)
                    headers = {key.lower(): value for key, value in response.headers.items()}
                    return ArmResponse(response.status, headers, payload)

            except ArmRequestError as e:
                if not e.transient or attempt >= retries:
                    raise
                logger.warning(f"Transient ARM error on {method} {url} (Attempt {attempt}): {e}")

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt >= retries:
                    raise ArmRequestError(0, "ConnectionError", str(e) or type(e).__name__) from e
                logger.warning(f"Connection error on {method} {url} (Attempt {attempt}): {e}")

            await asyncio.sleep(self._settings.retry_delay)

    async def _wait_for_operation(self, operation: str, response: ArmResponse) -> Any:
        """Poll an accepted long-running operation until it finishes."""
        async_url = response.headers.get("azure-asyncoperation")
        location_url = response.headers.get("location")
        if response.status not in (201, 202) or not (async_url or location_url):
            return response.body

        deadline = time.monotonic() + self._settings.poll_timeout
        while True:
            if time.monotonic() >= deadline:
                raise OperationTimeoutError(operation, self._settings.poll_timeout)
            await asyncio.sleep(self._settings.poll_interval)

            if async_url:
                polled = await self._request("GET", async_url)
                body = polled.body or {}
                status = body.get("status", "InProgress")
                if status not in TERMINAL_STATES:
                    continue
                if status != "Succeeded":
                    error = body.get("error") or {}
                    raise ArmRequestError(200, error.get("code", status), error.get("message"))
                return body.get("properties", body)

            polled = await self._request("GET", location_url)
            if polled.status != 202:
                return polled.body

    async def create_or_update_resource_group(self, resource_group_name: str, location: str) -> dict[str, Any]:
        response = await self._request(
            "PUT",
            self._resource_group_url(resource_group_name),
            self._settings.resources_api_version,
            {"location": location},
        )
        return response.body or {}

    async def resource_group_exists(self, resource_group_name: str) -> bool:
        try:
            await self._request(
                "HEAD", self._resource_group_url(resource_group_name), self._settings.resources_api_version
            )
        except ArmRequestError as e:
            if e.status == 404:
                return False
            raise
        return True

    async def delete_resource_group(self, resource_group_name: str) -> None:
        response = await self._request(
            "DELETE", self._resource_group_url(resource_group_name), self._settings.resources_api_version
        )
        await self._wait_for_operation(f"delete resource group {resource_group_name}", response)

    async def deploy_template(
        self,
        resource_group_name: str,
        deployment_name: str,
        template: dict[str, Any],
        parameters: dict[str, Any],
    ) -> dict[str, Any]:
        url = self._resource_group_url(
            resource_group_name, "providers", "Microsoft.Resources", "deployments", deployment_name
        )
        body = {"properties": {"mode": "Incremental", "template": template, "parameters": parameters}}
        await self._request("PUT", url, self._settings.resources_api_version, body)

        deadline = time.monotonic() + self._settings.poll_timeout
        while True:
            response = await self._request("GET", url, self._settings.resources_api_version)
            deployment = response.body or {}
            properties = deployment.get("properties") or {}
            provisioning_state = properties.get("provisioningState", "Running")
            if provisioning_state in TERMINAL_STATES:
                break
            if time.monotonic() >= deadline:
                raise OperationTimeoutError(f"deployment {deployment_name}", self._settings.poll_timeout)
            logger.debug(
                "Waiting for deployment",
                extra={"deployment": deployment_name, "state": provisioning_state},
            )
            await asyncio.sleep(self._settings.poll_interval)

        if provisioning_state != "Succeeded":
            error = (properties.get("error") or {}).get("message")
            raise DeploymentFailedError(deployment_name, provisioning_state, error)
        return deployment

    async def get_virtual_machine(self, resource_group_name: str, vm_name: str) -> VirtualMachine:
        response = await self._request(
            "GET", self._vm_url(resource_group_name, vm_name), self._settings.compute_api_version
        )
        return VirtualMachine.from_dict(response.body or {})

    async def power_off(self, resource_group_name: str, vm_name: str) -> None:
        response = await self._request(
            "POST", self._vm_url(resource_group_name, vm_name, "powerOff"), self._settings.compute_api_version
        )
        await self._wait_for_operation(f"power off {vm_name}", response)

    async def generalize(self, resource_group_name: str, vm_name: str) -> None:
        await self._request(
            "POST", self._vm_url(resource_group_name, vm_name, "generalize"), self._settings.compute_api_version
        )

    async def capture(self, resource_group_name: str, vm_name: str, parameters: dict[str, Any]) -> dict[str, Any]:
        response = await self._request(
            "POST",
            self._vm_url(resource_group_name, vm_name, "capture"),
            self._settings.compute_api_version,
            parameters,
        )
        result = await self._wait_for_operation(f"capture {vm_name}", response) or {}
        return result.get("output", result)
