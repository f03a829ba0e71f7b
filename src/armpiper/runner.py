import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .callbacks import RunnerCallback
from .constants import CANCELLED, ERROR, HALTED
from .exceptions import MissingStateError, StepCancelledError, StepFailedError
from .state import StateBag
from .step import Step
from .types import OnError, RunOutcome, RunResult, StepAction

logger = logging.getLogger(__name__)


def _step_name(step: Step) -> str:
    return getattr(step, "name", None) or step.__class__.__name__


def _unwinds(step: Step) -> bool:
    return getattr(step, "unwind", True)


@dataclass
class RunnerConfig:
    """Configuration for a build run."""

    on_error: OnError = OnError.CLEANUP


class Runner:
    """Runs build steps in order and unwinds the started ones on halt.

    Steps run one at a time against a single state bag. The first step that
    halts, raises or is cancelled stops forward progress; cleanup is then
    called on every started step in reverse order, the halting step included.
    Why the run stopped is only ever carried by the ``ERROR`` state key.
    """

    def __init__(
        self,
        steps: Optional[list[Step]] = None,
        config: Optional[RunnerConfig] = None,
        callbacks: Optional[list[RunnerCallback]] = None,
    ) -> None:
        self.steps: list[Step] = list(steps or [])
        self.config = config or RunnerConfig()
        self.callbacks: list[RunnerCallback] = callbacks or []

    def add_step(self, step: Step) -> None:
        self.steps.append(step)

    def add_callback(self, callback: RunnerCallback) -> None:
        self.callbacks.append(callback)

    async def _run_step(
        self, step: Step, state: StateBag, cancel_event: Optional[asyncio.Event]
    ) -> StepAction:
        if cancel_event is None:
            return await step.run(state)

        run_task = asyncio.ensure_future(step.run(state))
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({run_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()
            if not run_task.done():
                run_task.cancel()
                try:
                    await run_task
                except asyncio.CancelledError:
                    pass
                except Exception:
                    logger.exception(f"Step {_step_name(step)} failed while being cancelled")

        if run_task in done:
            return run_task.result()
        raise StepCancelledError(_step_name(step))

    def _missing_state(self, step: Step, state: StateBag) -> list[str]:
        check = getattr(step, "missing_state_keys", None)
        if check is not None:
            return check(state)
        return [key for key in getattr(step, "required_state_keys", []) if key not in state]

    async def _notify(self, hook: str, *args) -> Optional[Exception]:
        """Call ``hook`` on every callback and return the first error raised."""
        first_error = None
        for callback in self.callbacks:
            method = getattr(callback, hook, None)
            if method is None:
                continue
            try:
                await method(*args)
            except Exception as err:
                logger.exception(f"Callback {type(callback).__name__}.{hook} failed")
                if first_error is None:
                    first_error = err
        return first_error

    async def _unwind(self, started: list[Step], state: StateBag, result: RunResult) -> None:
        for step in reversed(started):
            name = _step_name(step)
            result.cleaned.append(name)
            await self._notify("before_cleanup", name)
            logger.info("Cleaning up step", extra={"step": name})
            try:
                await step.cleanup(state)
            except Exception:
                logger.exception(f"Cleanup of step {name} failed")
            await self._notify("after_cleanup", name)

    async def run(self, state: StateBag, cancel_event: Optional[asyncio.Event] = None) -> RunResult:
        result = RunResult(outcome=RunOutcome.COMPLETED, state=state)
        started: list[Step] = []
        halted = False
        try:
            for step in self.steps:
                name = _step_name(step)

                if cancel_event is not None and cancel_event.is_set():
                    logger.warning("Build cancelled", extra={"step": name})
                    state.put(ERROR, StepCancelledError())
                    state.put(CANCELLED, True)
                    halted = True
                    break

                missing = self._missing_state(step, state)
                if missing:
                    err = MissingStateError(missing[0], name)
                    logger.error(str(err), extra={"step": name, "missing": missing})
                    state.put(ERROR, err)
                    halted = True
                    break

                # A broken callback halts like a broken step; the step is not started.
                callback_error = await self._notify("before_step", name)
                if callback_error is not None:
                    if not state.contains(ERROR):
                        state.put(ERROR, callback_error)
                    halted = True
                    break

                if _unwinds(step):
                    started.append(step)
                result.executed.append(name)
                logger.info("Running step", extra={"step": name})

                try:
                    action = await self._run_step(step, state, cancel_event)
                except StepCancelledError as err:
                    logger.warning("Build cancelled", extra={"step": name})
                    state.put(ERROR, err)
                    state.put(CANCELLED, True)
                    action = StepAction.HALT
                except asyncio.CancelledError:
                    state.put(ERROR, StepCancelledError(name))
                    state.put(CANCELLED, True)
                    state.put(HALTED, True)
                    result.outcome = RunOutcome.HALTED
                    if self.config.on_error is OnError.CLEANUP:
                        await self._unwind(started, state, result)
                    raise
                except Exception as err:
                    logger.exception(f"Error in step {name}")
                    if not state.contains(ERROR):
                        state.put(ERROR, err)
                    action = StepAction.HALT

                callback_error = await self._notify("after_step", name, action)
                if callback_error is not None:
                    if not state.contains(ERROR):
                        state.put(ERROR, callback_error)
                    action = StepAction.HALT

                if action is StepAction.HALT:
                    if not state.contains(ERROR):
                        state.put(ERROR, StepFailedError(name, "halted without recording an error"))
                    logger.warning("Step halted the build", extra={"step": name})
                    halted = True
                    break

                logger.info("Completed step", extra={"step": name})

            if halted:
                result.outcome = RunOutcome.HALTED
                state.put(HALTED, True)
                if self.config.on_error is OnError.CLEANUP:
                    await self._unwind(started, state, result)
                else:
                    logger.warning(
                        "Leaving started steps in place",
                        extra={"steps": [_step_name(s) for s in started]},
                    )

            result.error, _ = state.get_ok(ERROR)
            return result
        finally:
            for callback in self.callbacks:
                if hasattr(callback, "close") and callable(callback.close):
                    await callback.close()
