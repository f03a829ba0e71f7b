import time
import logging
from typing import Dict

from armpiper.types import StepAction

logger = logging.getLogger(__name__)

class RunnerCallback:
    """Hooks the runner calls around each step and each cleanup."""
    async def before_step(self, step_name: str) -> None:
        pass

    async def after_step(self, step_name: str, action: StepAction) -> None:
        pass

    async def before_cleanup(self, step_name: str) -> None:
        pass

    async def after_cleanup(self, step_name: str) -> None:
        pass

class TimingCallback(RunnerCallback):
    """Records how long each step ran and how long its cleanup took."""
    def __init__(self) -> None:
        self.step_timings: Dict[str, float] = {}
        self.cleanup_timings: Dict[str, float] = {}
        self.actions: Dict[str, StepAction] = {}
        self._started: Dict[str, float] = {}

    def _elapsed(self, key: str) -> float:
        return time.monotonic() - self._started.pop(key, time.monotonic())

    async def before_step(self, step_name: str) -> None:
        self._started[f"run:{step_name}"] = time.monotonic()

    async def after_step(self, step_name: str, action: StepAction) -> None:
        duration = self._elapsed(f"run:{step_name}")
        self.step_timings[step_name] = duration
        self.actions[step_name] = action
        logger.info("Step finished", extra={"step": step_name, "duration": duration, "action": action.value})

    async def before_cleanup(self, step_name: str) -> None:
        self._started[f"cleanup:{step_name}"] = time.monotonic()

    async def after_cleanup(self, step_name: str) -> None:
        duration = self._elapsed(f"cleanup:{step_name}")
        self.cleanup_timings[step_name] = duration
        logger.info("Cleanup finished", extra={"step": step_name, "duration": duration})
