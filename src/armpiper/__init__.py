from .builder import Artifact, ArmBuilder
from .callbacks import RunnerCallback, TimingCallback
from .client import ArmClient
from .decorators import no_unwind, provides, requires, step
from .diagnostics import LoggingDiagnostics
from .runner import Runner, RunnerConfig
from .settings import ArmSettings
from .state import StateBag, StateKey
from .step import BuildStep, Step
from .types import OnError, RunOutcome, RunResult, StepAction

__all__ = [
    "Artifact",
    "ArmBuilder",
    "ArmClient",
    "ArmSettings",
    "BuildStep",
    "LoggingDiagnostics",
    "OnError",
    "RunOutcome",
    "RunResult",
    "Runner",
    "RunnerCallback",
    "RunnerConfig",
    "StateBag",
    "StateKey",
    "Step",
    "StepAction",
    "TimingCallback",
    "no_unwind",
    "provides",
    "requires",
    "step",
]
