"""
Explicit result type for analyses that need a minimum amount of data.

Instead of returning ``None`` when there is not enough data, analyses return
either ``NotEnoughData`` (with the reason and the counts involved) or
``Computed`` wrapping the value, so callers must handle both branches.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class NotEnoughData:
    """Analysis declined: below its minimum-data threshold."""

    reason: str
    required: int = 0
    available: int = 0

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class Computed(Generic[T]):
    """Analysis succeeded."""

    value: T

    def __bool__(self) -> bool:
        return True


AnalysisResult = Union[NotEnoughData, Computed[T]]


def is_computed(result: AnalysisResult) -> bool:
    return isinstance(result, Computed)


def value_or(result: AnalysisResult, default: T) -> T:
    """Unwrap a ``Computed`` value, falling back to ``default``."""
    if isinstance(result, Computed):
        return result.value
    return default
