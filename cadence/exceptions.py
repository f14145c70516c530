"""
Exceptions raised by the scheduling core.

Only programmer errors (malformed input shapes, NaN parameters, out-of-range
ratings) are raised. Sparse data never raises; estimators return flagged
defaults or ``NotEnoughData`` instead.
"""

from __future__ import annotations

import math


class CadenceError(Exception):
    """Base class for scheduling core errors."""
    pass


class InvalidInputError(CadenceError, ValueError):
    """Raised when a caller passes a malformed value."""
    pass


def require_finite(name: str, value: float) -> float:
    """Fail fast on NaN/inf numeric inputs."""
    if value is None or not math.isfinite(value):
        raise InvalidInputError(f"{name} must be a finite number, got {value!r}")
    return value


def require_range(name: str, value: float, low: float, high: float) -> float:
    require_finite(name, value)
    if value < low or value > high:
        raise InvalidInputError(f"{name} must be within [{low}, {high}], got {value}")
    return value


def require_non_negative(name: str, value: int | float) -> int | float:
    require_finite(name, value)
    if value < 0:
        raise InvalidInputError(f"{name} must be >= 0, got {value}")
    return value
