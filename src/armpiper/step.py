import logging
from abc import ABC, abstractmethod
from typing import Optional, Protocol, runtime_checkable

from .constants import ERROR
from .diagnostics import ErrorFunc, LoggingDiagnostics, SayFunc
from .state import StateBag
from .types import StepAction

logger = logging.getLogger(__name__)


@runtime_checkable
class Step(Protocol):
    """Anything the runner can execute."""

    async def run(self, state: StateBag) -> StepAction: ...

    async def cleanup(self, state: StateBag) -> None: ...


class BuildStep(ABC):
    """Abstract base class for build steps.

    ``run`` is invoked at most once per build. A failing step reports the
    error, stores it under ``ERROR`` and returns ``StepAction.HALT``.
    ``cleanup`` may be called even when ``run`` never ran or stopped midway,
    so it must check for what it removes before acting.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        say: Optional[SayFunc] = None,
        error: Optional[ErrorFunc] = None,
    ) -> None:
        self._name = name or self.__class__.__name__
        self._required_state_keys: list[str] = []
        self._provided_state_keys: list[str] = []
        self._unwind = True
        self._load_metadata(explicit_name=name is not None)

        diagnostics = LoggingDiagnostics()
        self.say: SayFunc = say or diagnostics.say
        self.error: ErrorFunc = error or diagnostics.error

    def _load_metadata(self, explicit_name: bool = False) -> None:
        run_method = getattr(self.__class__, "run", None)
        if run_method and hasattr(run_method, "_step_metadata"):
            metadata = run_method._step_metadata
            if metadata.name and not explicit_name:
                self._name = metadata.name
            self._required_state_keys = list(metadata.requires)
            self._provided_state_keys = list(metadata.provides)
            self._unwind = metadata.unwind

    @property
    def name(self) -> str:
        return self._name

    @property
    def required_state_keys(self) -> list[str]:
        return self._required_state_keys

    @property
    def provided_state_keys(self) -> list[str]:
        return self._provided_state_keys

    @property
    def unwind(self) -> bool:
        """Whether the runner must call cleanup once this step has started."""
        return self._unwind

    def missing_state_keys(self, state: StateBag) -> list[str]:
        missing = [key for key in self.required_state_keys if key not in state]
        if missing:
            logger.warning(
                "Missing required state",
                extra={"step": self.name, "missing": missing},
            )
        return missing

    def halt(self, state: StateBag, err: Exception) -> StepAction:
        """Report and store ``err``, then stop the build."""
        self.error(err)
        state.put(ERROR, err)
        return StepAction.HALT

    @abstractmethod
    async def run(self, state: StateBag) -> StepAction:
        """Do the forward work of the step."""

    async def cleanup(self, state: StateBag) -> None:
        """Undo whatever run created. Nothing to do by default."""
        return None
