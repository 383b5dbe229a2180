"""
Outcome type for calls that degrade instead of failing.

Retrieval and answer synthesis never raise into the chat pipeline. They
return an Outcome holding either the real value or a fallback value with
the reason it was used, and the caller checks `degraded` explicitly.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: T
    degraded: bool = False
    reason: str | None = None

    @classmethod
    def ok(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, reason: str) -> "Outcome[T]":
        return cls(value=value, degraded=True, reason=reason)
