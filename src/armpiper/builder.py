import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from .callbacks import RunnerCallback
from .client import ArmClient
from .constants import (
    ARM_CAPTURE_PARAMETERS,
    ARM_CAPTURE_TEMPLATE,
    ARM_COMPUTE_NAME,
    ARM_DEPLOYMENT_NAME,
    ARM_LOCATION,
    ARM_OS_DISK_VHD,
    ARM_RESOURCE_GROUP_NAME,
    ARM_TEMPLATE,
    ARM_TEMPLATE_PARAMETERS,
)
from .diagnostics import ErrorFunc, LoggingDiagnostics, SayFunc
from .exceptions import BuildFailedError
from .runner import Runner, RunnerConfig
from .settings import ArmSettings
from .state import StateBag
from .step import Step
from .steps import (
    StepCaptureImage,
    StepCreateResourceGroup,
    StepDeleteResourceGroup,
    StepDeployTemplate,
    StepPowerOffCompute,
    StepQueryVM,
)
from .template import build_template, build_template_parameters, load_template

logger = logging.getLogger(__name__)


@dataclass
class Artifact:
    """Where the built image ended up."""

    os_disk_uri: str
    resource_group_name: str
    compute_name: str
    capture_template: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"OS disk VHD: {self.os_disk_uri}"


def _random_suffix() -> str:
    return uuid.uuid4().hex[:10]


class ArmBuilder:
    """Builds a VM image on Azure Resource Manager.

    Creates a resource group, deploys the VM template, reads the OS disk
    location, powers the VM off, captures it and deletes the resource group.
    A failed build deletes the
    group from the unwind instead, unless the runner is configured to abort.
    """

    def __init__(
        self,
        settings: ArmSettings,
        client: Optional[ArmClient] = None,
        say: Optional[SayFunc] = None,
        error: Optional[ErrorFunc] = None,
        runner_config: Optional[RunnerConfig] = None,
        callbacks: Optional[list[RunnerCallback]] = None,
    ) -> None:
        diagnostics = LoggingDiagnostics()
        self.settings = settings
        self.client = client or ArmClient(settings)
        self.say = say or diagnostics.say
        self.error = error or diagnostics.error
        self.runner_config = runner_config or RunnerConfig()
        self.callbacks = callbacks or []

    def new_state(self) -> StateBag:
        suffix = _random_suffix()
        resource_group_name = self.settings.resource_group_name or f"packer-Resource-Group-{suffix}"
        compute_name = self.settings.compute_name or f"pkrvm{suffix}"

        if self.settings.template_file:
            template = load_template(self.settings.template_file)
        else:
            template = build_template()

        state = StateBag()
        state.put(ARM_RESOURCE_GROUP_NAME, resource_group_name)
        state.put(ARM_COMPUTE_NAME, compute_name)
        state.put(ARM_LOCATION, self.settings.location)
        state.put(ARM_DEPLOYMENT_NAME, f"pkrdp{suffix}")
        state.put(ARM_TEMPLATE, template)
        state.put(ARM_TEMPLATE_PARAMETERS, build_template_parameters(self.settings, compute_name))
        state.put(
            ARM_CAPTURE_PARAMETERS,
            {
                "vhdPrefix": self.settings.capture_name_prefix,
                "destinationContainerName": self.settings.capture_container_name,
                "overwriteVhds": False,
            },
        )
        return state

    def steps(self) -> list[Step]:
        kwargs = {"client": self.client, "say": self.say, "error": self.error}
        return [
            StepCreateResourceGroup(**kwargs),
            StepDeployTemplate(**kwargs),
            StepQueryVM(**kwargs),
            StepPowerOffCompute(**kwargs),
            StepCaptureImage(**kwargs),
            StepDeleteResourceGroup(**kwargs),
        ]

    async def build(
        self,
        cancel_event: Optional[asyncio.Event] = None,
        state: Optional[StateBag] = None,
    ) -> Artifact:
        state = state or self.new_state()
        runner = Runner(self.steps(), self.runner_config, list(self.callbacks))

        logger.info(
            "Starting build",
            extra={
                "resource_group": state.get(ARM_RESOURCE_GROUP_NAME),
                "compute": state.get(ARM_COMPUTE_NAME),
            },
        )
        result = await runner.run(state, cancel_event)
        if not result.completed:
            raise BuildFailedError(result.error)

        capture_template, _ = state.get_ok(ARM_CAPTURE_TEMPLATE)
        return Artifact(
            os_disk_uri=state.get(ARM_OS_DISK_VHD),
            resource_group_name=state.get(ARM_RESOURCE_GROUP_NAME),
            compute_name=state.get(ARM_COMPUTE_NAME),
            capture_template=capture_template or {},
        )
