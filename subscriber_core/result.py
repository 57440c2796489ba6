from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from subscriber_core.errors import SubscriberError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success value or tagged error returned across the store/service boundary."""

    value: Optional[T] = None
    error: Optional[SubscriberError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: SubscriberError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
