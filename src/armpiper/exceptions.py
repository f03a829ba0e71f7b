from typing import Optional


class ArmPiperError(Exception):
    """Base exception class for armpiper errors."""


class MissingStateError(ArmPiperError):
    """Raised when a state key a step depends on was never put."""

    def __init__(self, key: str, step_name: Optional[str] = None) -> None:
        self.key = key
        self.step_name = step_name
        msg = f"State key '{key}' is not set"
        if step_name:
            msg = f"Missing required state for step '{step_name}': {key}"
        super().__init__(msg)


class StepFailedError(ArmPiperError):
    """Stored when a step halts without recording an error of its own."""

    def __init__(self, step_name: str, error: Optional[str] = None) -> None:
        self.step_name = step_name
        msg = f"Step '{step_name}' failed"
        if error:
            msg += f": {error}"
        super().__init__(msg)


class StepCancelledError(ArmPiperError):
    """Stored as the run error when the run is cancelled."""

    def __init__(self, step_name: Optional[str] = None) -> None:
        self.step_name = step_name
        msg = "Build was cancelled"
        if step_name:
            msg += f" during step '{step_name}'"
        super().__init__(msg)


class IncompleteResourceError(ArmPiperError):
    """A query succeeded but the resource lacks an expected nested field."""

    def __init__(self, resource: str, missing: str) -> None:
        self.resource = resource
        self.missing = missing
        super().__init__(f"{resource} is incomplete: '{missing}' is not set")


class ArmRequestError(ArmPiperError):
    """Raised when the Resource Manager API answers with an error."""

    def __init__(self, status: int, code: Optional[str] = None, message: Optional[str] = None) -> None:
        self.status = status
        self.code = code
        msg = f"ARM request failed with status {status}"
        if code:
            msg += f" ({code})"
        if message:
            msg += f": {message}"
        super().__init__(msg)

    @property
    def transient(self) -> bool:
        return self.status == 429 or self.status >= 500


class DeploymentFailedError(ArmPiperError):
    """Raised when a template deployment ends in a non-successful state."""

    def __init__(self, deployment_name: str, provisioning_state: str, error: Optional[str] = None) -> None:
        self.deployment_name = deployment_name
        self.provisioning_state = provisioning_state
        msg = f"Deployment '{deployment_name}' finished as {provisioning_state}"
        if error:
            msg += f": {error}"
        super().__init__(msg)


class OperationTimeoutError(ArmPiperError):
    """Raised when a long-running ARM operation does not finish in time."""

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(f"Operation '{operation}' did not finish within {timeout:g}s")


class BuildFailedError(ArmPiperError):
    """Raised by the builder when its run halts."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        msg = "Build failed"
        if error is not None:
            msg += f": {error}"
        super().__init__(msg)


class ImageNotFoundError(ArmPiperError):
    """Raised when no catalog image matches a label and location."""

    def __init__(self, label: str, location: str) -> None:
        super().__init__(f"No OS image labelled '{label}' is available in '{location}'")
