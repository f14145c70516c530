"""
Numerical integration over a normal ability prior.

Gauss-Hermite nodes are transformed for N(mean, sd²):

    θ_k = mean + √2 · sd · x_k,    w_k' = w_k / √π

so that Σ w_k' f(θ_k) ≈ E[f(θ)] under the prior.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from cadence.exceptions import InvalidInputError


@dataclass(frozen=True, eq=False)
class QuadratureRule:
    nodes: np.ndarray
    weights: np.ndarray  # sums to 1

    def __len__(self) -> int:
        return int(self.nodes.size)


def _check(n: int, sd: float) -> None:
    if n < 2:
        raise InvalidInputError(f"quadrature needs at least 2 points, got {n}")
    if not sd > 0:
        raise InvalidInputError(f"prior sd must be positive, got {sd}")


def gauss_hermite_rule(n: int = 41, mean: float = 0.0, sd: float = 1.0) -> QuadratureRule:
    _check(n, sd)
    x, w = np.polynomial.hermite.hermgauss(n)
    nodes = mean + math.sqrt(2.0) * sd * x
    weights = w / math.sqrt(math.pi)
    return QuadratureRule(nodes=nodes, weights=weights / weights.sum())


def uniform_rule(n: int = 41, mean: float = 0.0, sd: float = 1.0, span: float = 4.0) -> QuadratureRule:
    """Evenly spaced grid over mean ± span·sd, weighted by the normal density."""
    _check(n, sd)
    nodes = np.linspace(mean - span * sd, mean + span * sd, n)
    density = np.exp(-0.5 * ((nodes - mean) / sd) ** 2)
    return QuadratureRule(nodes=nodes, weights=density / density.sum())


def integrate_normal(fn: Callable[[np.ndarray], np.ndarray], rule: QuadratureRule) -> float:
    """E[fn(θ)] under the rule's prior; ``fn`` is evaluated on all nodes at once."""
    return float(np.sum(rule.weights * np.asarray(fn(rule.nodes), dtype=float)))


def posterior_weights(log_likelihood: np.ndarray, rule: QuadratureRule) -> np.ndarray:
    """Normalized posterior mass at each node, computed in log space."""
    with np.errstate(divide="ignore"):
        log_post = np.asarray(log_likelihood, dtype=float) + np.log(rule.weights)
    log_post -= np.max(log_post)
    post = np.exp(log_post)
    return post / post.sum()


def compute_eap(log_likelihood: np.ndarray, rule: QuadratureRule) -> tuple[float, float]:
    """
    Posterior mean and SD of θ.

    Args:
        log_likelihood: log L(responses | θ_k) at each node
        rule: Quadrature rule carrying the prior

    Returns:
        (eap, posterior_sd)
    """
    post = posterior_weights(log_likelihood, rule)
    mean = float(np.sum(post * rule.nodes))
    variance = float(np.sum(post * (rule.nodes - mean) ** 2))
    return mean, math.sqrt(max(variance, 0.0))
