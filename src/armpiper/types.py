# types.py
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .state import StateBag


class StepAction(Enum):
    CONTINUE = "continue"
    HALT = "halt"


class RunOutcome(Enum):
    COMPLETED = "completed"
    HALTED = "halted"


class OnError(Enum):
    """What the runner does with started steps once a run halts."""

    CLEANUP = "cleanup"
    ABORT = "abort"


@dataclass
class RunResult:
    outcome: RunOutcome
    state: "StateBag"
    error: Optional[Exception] = None
    executed: list[str] = field(default_factory=list)
    cleaned: list[str] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.outcome is RunOutcome.COMPLETED
