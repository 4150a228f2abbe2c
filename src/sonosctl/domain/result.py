from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap_or(self, _default: T) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    """A failed operation. ``fallback`` is a best-effort value to display instead."""

    reason: str
    fallback: Any = None

    @property
    def ok(self) -> bool:
        return False

    def unwrap_or(self, default: T) -> T:
        return self.fallback if self.fallback is not None else default


Result = Union[Ok[T], Failure]
