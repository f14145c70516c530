"""
IRT response models.

Logistic item response functions:

    1PL: P(θ) = 1 / (1 + exp(-(θ - b)))
    2PL: P(θ) = 1 / (1 + exp(-a(θ - b)))
    3PL: P(θ) = c + (1 - c) / (1 + exp(-a(θ - b)))

and the Fisher information each item carries about θ.

Reference: Baker & Kim (2004), Item Response Theory: Parameter Estimation
Techniques.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

import numpy as np

from cadence.exceptions import InvalidInputError, require_finite, require_range

MAX_GUESSING = 0.35
_EXP_LIMIT = 35.0  # logistic saturates well before exp() overflows


@dataclass(frozen=True)
class ItemParameter:
    """
    Psychometric profile of one item.

    Attributes:
        id: Item identifier
        a: Discrimination (> 0)
        b: Difficulty on the θ scale
        c: Guessing floor; None for the 2PL model
        se_a, se_b: Standard errors from calibration, if known
    """

    id: str
    a: float = 1.0
    b: float = 0.0
    c: float | None = None
    se_a: float | None = None
    se_b: float | None = None

    def __post_init__(self):
        require_finite("a", self.a)
        require_finite("b", self.b)
        if self.a <= 0:
            raise InvalidInputError(f"discrimination must be > 0, got {self.a} for item {self.id}")
        if self.c is not None:
            require_range("c", self.c, 0.0, MAX_GUESSING)

    @property
    def guessing(self) -> float:
        return self.c or 0.0


@dataclass(frozen=True)
class ThetaEstimate:
    """
    Learner ability on one latent dimension.

    ``converged=False`` marks a fallback value (no interior maximum, too few
    observations or no convergence); ``reason`` then says why.
    """

    theta: float = 0.0
    se: float = 1.0
    converged: bool = True
    method: str = "prior"
    n_observations: int = 0
    reason: str | None = None

    def __post_init__(self):
        require_finite("theta", self.theta)
        require_finite("se", self.se)
        if self.se <= 0:
            raise InvalidInputError(f"se must be > 0, got {self.se}")


@dataclass(frozen=True)
class IRTResponse:
    item_id: str
    correct: bool
    response_time_ms: float | None = None


@dataclass(frozen=True)
class ThetaEstimationConfig:
    max_iterations: int = 50
    tolerance: float = 1e-4
    prior_mean: float = 0.0
    prior_sd: float = 1.0
    quad_points: int = 41
    theta_bounds: tuple[float, float] = (-3.0, 3.0)
    se_floor: float = 0.1
    default_se: float = 1.0
    max_step: float = 1.0

    def __post_init__(self):
        low, high = self.theta_bounds
        if not low < high:
            raise InvalidInputError(f"theta_bounds must be increasing, got {self.theta_bounds}")
        if self.prior_sd <= 0 or self.se_floor <= 0 or self.default_se <= 0:
            raise InvalidInputError("prior_sd, se_floor and default_se must be positive")
        if self.max_iterations < 1 or self.quad_points < 2:
            raise InvalidInputError("max_iterations must be >= 1 and quad_points >= 2")

    def clamp(self, theta: float) -> float:
        low, high = self.theta_bounds
        return min(high, max(low, theta))


DEFAULT_ESTIMATION_CONFIG = ThetaEstimationConfig()


# =============================================================================
# Response functions
# =============================================================================


def _logistic(z: float) -> float:
    z = min(_EXP_LIMIT, max(-_EXP_LIMIT, z))
    return 1.0 / (1.0 + math.exp(-z))


def probability_1pl(theta: float, b: float) -> float:
    return _logistic(theta - b)


def probability_2pl(theta: float, a: float, b: float) -> float:
    return _logistic(a * (theta - b))


def probability_3pl(theta: float, a: float, b: float, c: float) -> float:
    return c + (1 - c) * _logistic(a * (theta - b))


def probability(theta: float, item: ItemParameter) -> float:
    """P(correct | θ), using 3PL when the item has a guessing parameter."""
    require_finite("theta", theta)
    if item.c is None:
        return probability_2pl(theta, item.a, item.b)
    return probability_3pl(theta, item.a, item.b, item.c)


def fisher_information(theta: float, item: ItemParameter) -> float:
    """
    Item information at θ.

    2PL: a² P Q
    3PL: a² (Q / P) ((P - c) / (1 - c))²
    """
    p = probability(theta, item)
    q = 1.0 - p
    if item.c is None:
        return item.a * item.a * p * q
    if p <= 0:
        return 0.0
    c = item.c
    return item.a * item.a * (q / p) * ((p - c) / (1 - c)) ** 2


def test_information(theta: float, items: Iterable[ItemParameter]) -> float:
    """Sum of item information; 1 / sqrt(info) is the SE of θ."""
    return sum(fisher_information(theta, item) for item in items)


def item_information_table(theta: float, items: Iterable[ItemParameter]) -> list[tuple[str, float]]:
    """(item id, information) pairs, most informative first, ties by id."""
    table = [(item.id, fisher_information(theta, item)) for item in items]
    return sorted(table, key=lambda row: (-row[1], row[0]))


# =============================================================================
# Vectorized helpers (quadrature grids)
# =============================================================================


def probability_grid(thetas: np.ndarray, items: Sequence[ItemParameter]) -> np.ndarray:
    """P for every (item, θ) pair, shape (len(items), len(thetas))."""
    a = np.array([item.a for item in items], dtype=float)[:, None]
    b = np.array([item.b for item in items], dtype=float)[:, None]
    c = np.array([item.guessing for item in items], dtype=float)[:, None]
    z = np.clip(a * (thetas[None, :] - b), -_EXP_LIMIT, _EXP_LIMIT)
    return c + (1 - c) / (1 + np.exp(-z))


def index_items(items: Mapping[str, ItemParameter] | Iterable[ItemParameter]) -> dict[str, ItemParameter]:
    """Accept either a mapping or a plain collection of items."""
    if isinstance(items, Mapping):
        return dict(items)
    return {item.id: item for item in items}
