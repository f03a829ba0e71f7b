"""Shared state bag passed between the steps of one run."""

from typing import Any, Generic, Iterator, Optional, TypeVar, Union, overload

from .exceptions import MissingStateError

T = TypeVar("T")


class StateKey(Generic[T]):
    """A state bag key bound to the type of the value stored under it."""

    def __init__(self, name: str, value_type: type) -> None:
        self.name = name
        self.value_type = value_type

    def __repr__(self) -> str:
        return f"StateKey({self.name!r}, {self.value_type.__name__})"

    def __str__(self) -> str:
        return self.name

    def __eq__(self, other: object) -> bool:
        if isinstance(other, StateKey):
            return self.name == other.name
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.name)


KeyLike = Union[StateKey[Any], str]


def _key_name(key: KeyLike) -> str:
    return key.name if isinstance(key, StateKey) else key


class StateBag:
    """String keyed store shared by every step of a run.

    Only one step runs at a time, so no locking is done here.
    """

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self._values: dict[str, Any] = dict(initial or {})

    @overload
    def put(self, key: StateKey[T], value: T) -> None: ...

    @overload
    def put(self, key: str, value: Any) -> None: ...

    def put(self, key: KeyLike, value: Any) -> None:
        if isinstance(key, StateKey) and not isinstance(value, key.value_type):
            raise TypeError(
                f"State key '{key.name}' holds {key.value_type.__name__}, got {type(value).__name__}"
            )
        self._values[_key_name(key)] = value

    @overload
    def get(self, key: StateKey[T]) -> T: ...

    @overload
    def get(self, key: str) -> Any: ...

    def get(self, key: KeyLike) -> Any:
        name = _key_name(key)
        try:
            return self._values[name]
        except KeyError:
            raise MissingStateError(name) from None

    @overload
    def get_ok(self, key: StateKey[T]) -> tuple[Optional[T], bool]: ...

    @overload
    def get_ok(self, key: str) -> tuple[Any, bool]: ...

    def get_ok(self, key: KeyLike) -> tuple[Any, bool]:
        name = _key_name(key)
        if name in self._values:
            return self._values[name], True
        return None, False

    def contains(self, key: KeyLike) -> bool:
        return _key_name(key) in self._values

    def delete(self, key: KeyLike) -> None:
        self._values.pop(_key_name(key), None)

    def keys(self) -> list[str]:
        return list(self._values)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, (StateKey, str)):
            return self.contains(key)
        return False

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._values))

    def __len__(self) -> int:
        return len(self._values)
