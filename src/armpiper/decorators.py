from typing import Any, Callable, Optional, Protocol

from .state import KeyLike, StateKey


class StepMetadata:
    """Metadata storage for step decorators."""

    def __init__(self) -> None:
        self.requires: list[str] = []
        self.provides: list[str] = []
        self.unwind: bool = True
        self.name: Optional[str] = None


class StepMethod(Protocol):
    _step_metadata: StepMetadata
    __name__: str

    def __call__(self, *args: Any, **kwargs: Any) -> Any: ...


def _ensure_metadata(method: StepMethod) -> StepMetadata:
    """Ensure that a method has a _step_metadata attribute."""
    if not hasattr(method, "_step_metadata"):
        method._step_metadata = StepMetadata()
    return method._step_metadata


def _names(keys: tuple[KeyLike, ...]) -> list[str]:
    return [key.name if isinstance(key, StateKey) else key for key in keys]


def _extend(target: list[str], names: list[str]) -> None:
    for name in names:
        if name not in target:
            target.append(name)


def step(name: Optional[str] = None) -> Callable[[StepMethod], StepMethod]:
    """Decorator to name a build step."""

    def decorator(method: StepMethod) -> StepMethod:
        metadata = _ensure_metadata(method)
        metadata.name = name if name is not None else method.__name__
        return method

    return decorator


def requires(*keys: KeyLike) -> Callable[[StepMethod], StepMethod]:
    """Decorator to specify state keys that must be set before the step runs."""

    def decorator(method: StepMethod) -> StepMethod:
        metadata = _ensure_metadata(method)
        _extend(metadata.requires, _names(keys))
        return method

    return decorator


def provides(*keys: KeyLike) -> Callable[[StepMethod], StepMethod]:
    """Decorator to specify state keys the step puts on success."""

    def decorator(method: StepMethod) -> StepMethod:
        metadata = _ensure_metadata(method)
        _extend(metadata.provides, _names(keys))
        return method

    return decorator


def no_unwind(method: StepMethod) -> StepMethod:
    """Decorator for steps that leave nothing to clean up when a build halts."""
    metadata = _ensure_metadata(method)
    metadata.unwind = False
    return method
