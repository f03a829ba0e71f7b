# steps.py
from typing import Any, Awaitable, Callable, Optional

from .client import ArmClient
from .compute import VirtualMachine, extract_os_disk_vhd_uri
from .constants import (
    ARM_CAPTURE_PARAMETERS,
    ARM_CAPTURE_TEMPLATE,
    ARM_COMPUTE_NAME,
    ARM_DEPLOYMENT_NAME,
    ARM_IS_RESOURCE_GROUP_CREATED,
    ARM_LOCATION,
    ARM_OS_DISK_VHD,
    ARM_RESOURCE_GROUP_NAME,
    ARM_TEMPLATE,
    ARM_TEMPLATE_PARAMETERS,
)
from .decorators import no_unwind, provides, requires, step
from .diagnostics import ErrorFunc, SayFunc
from .exceptions import IncompleteResourceError
from .state import StateBag
from .step import BuildStep
from .types import StepAction

CreateFunc = Callable[[str, str], Awaitable[Any]]
ExistsFunc = Callable[[str], Awaitable[bool]]
DeleteFunc = Callable[[str], Awaitable[None]]
DeployFunc = Callable[[str, str, dict[str, Any], dict[str, Any]], Awaitable[Any]]
QueryFunc = Callable[[str, str], Awaitable[VirtualMachine]]
PowerOffFunc = Callable[[str, str], Awaitable[None]]
GeneralizeFunc = Callable[[str, str], Awaitable[None]]
CaptureFunc = Callable[[str, str, dict[str, Any]], Awaitable[dict[str, Any]]]


def _bind(client: Optional[ArmClient], func: Optional[Callable[..., Any]], attr: str, step_name: str) -> Callable[..., Any]:
    if func is not None:
        return func
    if client is None:
        raise ValueError(f"{step_name} needs an ArmClient or an explicit '{attr}' function")
    return getattr(client, attr)


class StepCreateResourceGroup(BuildStep):
    """Creates the resource group every other build resource lives in.

    Cleanup deletes the group, and with it everything deployed into it.
    """

    def __init__(
        self,
        client: Optional[ArmClient] = None,
        create: Optional[CreateFunc] = None,
        exists: Optional[ExistsFunc] = None,
        delete: Optional[DeleteFunc] = None,
        say: Optional[SayFunc] = None,
        error: Optional[ErrorFunc] = None,
    ) -> None:
        super().__init__(say=say, error=error)
        self.create = _bind(client, create, "create_or_update_resource_group", self.name)
        self.exists = _bind(client, exists, "resource_group_exists", self.name)
        self.delete = _bind(client, delete, "delete_resource_group", self.name)

    @step(name="create_resource_group")
    @requires(ARM_RESOURCE_GROUP_NAME, ARM_LOCATION)
    @provides(ARM_IS_RESOURCE_GROUP_CREATED)
    async def run(self, state: StateBag) -> StepAction:
        resource_group_name = state.get(ARM_RESOURCE_GROUP_NAME)
        location = state.get(ARM_LOCATION)

        self.say("Creating resource group ...")
        self.say(f" -> ResourceGroupName : '{resource_group_name}'")
        self.say(f" -> Location          : '{location}'")

        # False until the API confirms, so cleanup knows to look for a half-created group.
        state.put(ARM_IS_RESOURCE_GROUP_CREATED, False)
        try:
            await self.create(resource_group_name, location)
        except Exception as e:
            return self.halt(state, e)

        state.put(ARM_IS_RESOURCE_GROUP_CREATED, True)
        return StepAction.CONTINUE

    async def cleanup(self, state: StateBag) -> None:
        """Delete the group if run created it.

        Makes no API call when run never got as far as creating the group.
        When creation was attempted but not confirmed, the group is looked up
        before deleting.
        """
        created, attempted = state.get_ok(ARM_IS_RESOURCE_GROUP_CREATED)
        if not attempted:
            return

        resource_group_name = state.get(ARM_RESOURCE_GROUP_NAME)
        try:
            if not created and not await self.exists(resource_group_name):
                return
            self.say(f"Deleting resource group '{resource_group_name}' ...")
            await self.delete(resource_group_name)
        except Exception as e:
            self.error(e)
            self.say(f"Error deleting resource group. Please delete it manually. Name: {resource_group_name}")
            return

        state.delete(ARM_IS_RESOURCE_GROUP_CREATED)
        self.say(f"Deleted resource group '{resource_group_name}'")


class StepDeployTemplate(BuildStep):
    """Submits the VM template and waits for the deployment to finish.

    Nothing is cleaned up here; the deployed resources go away with the
    resource group.
    """

    def __init__(
        self,
        client: Optional[ArmClient] = None,
        deploy: Optional[DeployFunc] = None,
        say: Optional[SayFunc] = None,
        error: Optional[ErrorFunc] = None,
    ) -> None:
        super().__init__(say=say, error=error)
        self.deploy = _bind(client, deploy, "deploy_template", self.name)

    @step(name="deploy_template")
    @requires(ARM_RESOURCE_GROUP_NAME, ARM_DEPLOYMENT_NAME, ARM_TEMPLATE, ARM_TEMPLATE_PARAMETERS)
    async def run(self, state: StateBag) -> StepAction:
        resource_group_name = state.get(ARM_RESOURCE_GROUP_NAME)
        deployment_name = state.get(ARM_DEPLOYMENT_NAME)

        self.say("Deploying deployment template ...")
        self.say(f" -> ResourceGroupName : '{resource_group_name}'")
        self.say(f" -> DeploymentName    : '{deployment_name}'")

        try:
            await self.deploy(
                resource_group_name,
                deployment_name,
                state.get(ARM_TEMPLATE),
                state.get(ARM_TEMPLATE_PARAMETERS),
            )
        except Exception as e:
            return self.halt(state, e)

        return StepAction.CONTINUE


class StepQueryVM(BuildStep):
    """Looks up the deployed VM and publishes the URI of its OS disk VHD.

    A failed query and a VM without an OS disk VHD both halt the build, with
    different messages. The query is not retried here; retries belong to the
    query function.
    """

    def __init__(
        self,
        client: Optional[ArmClient] = None,
        query: Optional[QueryFunc] = None,
        say: Optional[SayFunc] = None,
        error: Optional[ErrorFunc] = None,
    ) -> None:
        super().__init__(say=say, error=error)
        self.query = _bind(client, query, "get_virtual_machine", self.name)

    @step(name="query_vm")
    @requires(ARM_RESOURCE_GROUP_NAME, ARM_COMPUTE_NAME)
    @provides(ARM_OS_DISK_VHD)
    @no_unwind
    async def run(self, state: StateBag) -> StepAction:
        resource_group_name = state.get(ARM_RESOURCE_GROUP_NAME)
        compute_name = state.get(ARM_COMPUTE_NAME)

        self.say("Querying the machine's properties ...")
        self.say(f" -> ResourceGroupName : '{resource_group_name}'")
        self.say(f" -> ComputeName       : '{compute_name}'")

        try:
            vm = await self.query(resource_group_name, compute_name)
        except Exception as e:
            self.say("Error querying the VM")
            return self.halt(state, e)

        try:
            os_disk_vhd = extract_os_disk_vhd_uri(vm)
        except IncompleteResourceError as e:
            self.say("The VM was found but has no OS disk VHD yet")
            return self.halt(state, e)

        self.say(f" -> OS Disk           : '{os_disk_vhd}'")
        state.put(ARM_OS_DISK_VHD, os_disk_vhd)
        return StepAction.CONTINUE


class StepPowerOffCompute(BuildStep):
    def __init__(
        self,
        client: Optional[ArmClient] = None,
        power_off: Optional[PowerOffFunc] = None,
        say: Optional[SayFunc] = None,
        error: Optional[ErrorFunc] = None,
    ) -> None:
        super().__init__(say=say, error=error)
        self.power_off = _bind(client, power_off, "power_off", self.name)

    @step(name="power_off_compute")
    @requires(ARM_RESOURCE_GROUP_NAME, ARM_COMPUTE_NAME)
    @no_unwind
    async def run(self, state: StateBag) -> StepAction:
        resource_group_name = state.get(ARM_RESOURCE_GROUP_NAME)
        compute_name = state.get(ARM_COMPUTE_NAME)

        self.say("Powering off machine ...")
        self.say(f" -> ResourceGroupName : '{resource_group_name}'")
        self.say(f" -> ComputeName       : '{compute_name}'")

        try:
            await self.power_off(resource_group_name, compute_name)
        except Exception as e:
            return self.halt(state, e)

        return StepAction.CONTINUE


class StepCaptureImage(BuildStep):
    """Generalizes the stopped VM and captures its disks as an image."""

    def __init__(
        self,
        client: Optional[ArmClient] = None,
        generalize: Optional[GeneralizeFunc] = None,
        capture: Optional[CaptureFunc] = None,
        say: Optional[SayFunc] = None,
        error: Optional[ErrorFunc] = None,
    ) -> None:
        super().__init__(say=say, error=error)
        self.generalize = _bind(client, generalize, "generalize", self.name)
        self.capture = _bind(client, capture, "capture", self.name)

    @step(name="capture_image")
    @requires(ARM_RESOURCE_GROUP_NAME, ARM_COMPUTE_NAME, ARM_CAPTURE_PARAMETERS)
    @provides(ARM_CAPTURE_TEMPLATE)
    @no_unwind
    async def run(self, state: StateBag) -> StepAction:
        resource_group_name = state.get(ARM_RESOURCE_GROUP_NAME)
        compute_name = state.get(ARM_COMPUTE_NAME)
        parameters = state.get(ARM_CAPTURE_PARAMETERS)

        self.say("Capturing image ...")
        self.say(f" -> ResourceGroupName : '{resource_group_name}'")
        self.say(f" -> ComputeName       : '{compute_name}'")

        try:
            await self.generalize(resource_group_name, compute_name)
            template = await self.capture(resource_group_name, compute_name, parameters)
        except Exception as e:
            return self.halt(state, e)

        state.put(ARM_CAPTURE_TEMPLATE, template)
        return StepAction.CONTINUE


class StepDeleteResourceGroup(BuildStep):
    """Tears down the build resource group once the image is captured."""

    def __init__(
        self,
        client: Optional[ArmClient] = None,
        delete: Optional[DeleteFunc] = None,
        say: Optional[SayFunc] = None,
        error: Optional[ErrorFunc] = None,
    ) -> None:
        super().__init__(say=say, error=error)
        self.delete = _bind(client, delete, "delete_resource_group", self.name)

    @step(name="delete_resource_group")
    @requires(ARM_RESOURCE_GROUP_NAME)
    @no_unwind
    async def run(self, state: StateBag) -> StepAction:
        created, _ = state.get_ok(ARM_IS_RESOURCE_GROUP_CREATED)
        if not created:
            return StepAction.CONTINUE

        resource_group_name = state.get(ARM_RESOURCE_GROUP_NAME)
        self.say(f"Deleting resource group '{resource_group_name}' ...")
        try:
            await self.delete(resource_group_name)
        except Exception as e:
            return self.halt(state, e)

        state.delete(ARM_IS_RESOURCE_GROUP_CREATED)
        return StepAction.CONTINUE
