"""
Outcome values for store operations.

A durable store that is down is an expected condition, not a crash: the
backends hand back ``Failure(StoreError)`` and the coordinator reads it as
"nothing cached".

Example:
    match await store.read(identity):
        case Success(None):
            ...  # empty cache
        case Success(snapshot):
            ...
        case Failure(error):
            logger.warning("store unavailable: %s", error)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    value: T

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, _default: T) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Failure(Generic[E]):
    error: E

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def unwrap(self):
        """Re-raise the stored error (wrapped when it is not an exception)."""
        if isinstance(self.error, BaseException):
            raise self.error
        raise RuntimeError(f"unwrap() on Failure: {self.error!r}")

    def unwrap_or(self, default):
        return default


Result = Union[Success[T], Failure[E]]


def success(value: T) -> Success[T]:
    return Success(value)


def failure(error: E) -> Failure[E]:
    return Failure(error)


__all__ = ["Failure", "Result", "Success", "failure", "success"]
