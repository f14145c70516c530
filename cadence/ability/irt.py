"""
Ability Estimation (IRT).

Estimates learner ability θ from scored responses and picks the next most
informative item for adaptive assessment.

Estimators:
- MLE: Fisher-scoring Newton-Raphson on the response likelihood. Has no
  interior maximum for all-correct / all-incorrect vectors; those cases (and
  non-convergence) return a centered fallback flagged ``converged=False``.
- EAP: posterior mean over a normal prior by quadrature. Always defined,
  preferred for short response vectors.
- Laplace update: one-response incremental update of an existing estimate.

Item selection:
- Maximum Fisher information at θ̂
- Kullback-Leibler index integrated over θ̂ ± 3·SE (Chang & Ying, 1996)
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence

import numpy as np
from loguru import logger

from cadence.ability.models import (
    DEFAULT_ESTIMATION_CONFIG,
    IRTResponse,
    ItemParameter,
    ThetaEstimate,
    ThetaEstimationConfig,
    fisher_information,
    index_items,
    probability,
    probability_grid,
)
from cadence.ability.quadrature import compute_eap, gauss_hermite_rule
from cadence.exceptions import InvalidInputError, require_finite

_P_EPS = 1e-9


def _pair_responses(
    responses: Sequence[IRTResponse],
    items: Mapping[str, ItemParameter] | Iterable[ItemParameter],
) -> list[tuple[ItemParameter, bool]]:
    lookup = index_items(items)
    pairs = []
    for response in responses:
        item = lookup.get(response.item_id)
        if item is None:
            raise InvalidInputError(f"No item parameters for response to {response.item_id!r}")
        pairs.append((item, bool(response.correct)))
    return pairs


def _fallback(
    n: int, reason: str, method: str, config: ThetaEstimationConfig
) -> ThetaEstimate:
    return ThetaEstimate(
        theta=config.clamp(config.prior_mean),
        se=config.default_se,
        converged=False,
        method=method,
        n_observations=n,
        reason=reason,
    )


def _score(theta: float, item: ItemParameter, correct: bool) -> float:
    """d log L / dθ for one response (reduces to a(u - P) without guessing)."""
    p = min(1 - _P_EPS, max(_P_EPS, probability(theta, item)))
    u = 1.0 if correct else 0.0
    c = item.guessing
    return item.a * (u - p) * (p - c) / (p * (1 - c))


def _standard_error(info: float, config: ThetaEstimationConfig) -> float:
    if info <= 0:
        return config.default_se
    return max(config.se_floor, 1.0 / math.sqrt(info))


# =============================================================================
# Estimators
# =============================================================================


def estimate_theta_mle(
    responses: Sequence[IRTResponse],
    items: Mapping[str, ItemParameter] | Iterable[ItemParameter],
    config: ThetaEstimationConfig = DEFAULT_ESTIMATION_CONFIG,
) -> ThetaEstimate:
    """
    Maximum-likelihood θ by Newton-Raphson (Fisher scoring).

    Args:
        responses: Scored responses
        items: Parameters of the administered items
        config: Iteration limits and bounds

    Returns:
        ThetaEstimate; ``converged=False`` with a reason when the likelihood
        has no interior maximum or iteration does not settle
    """
    pairs = _pair_responses(responses, items)
    n = len(pairs)

    if n == 0:
        return _fallback(0, "no responses", "mle", config)

    n_correct = sum(correct for _, correct in pairs)
    if n_correct == n:
        logger.warning(f"MLE undefined for all-correct response vector (n={n}), using fallback")
        return _fallback(n, "all responses correct: likelihood has no interior maximum", "mle", config)
    if n_correct == 0:
        logger.warning(f"MLE undefined for all-incorrect response vector (n={n}), using fallback")
        return _fallback(n, "all responses incorrect: likelihood has no interior maximum", "mle", config)

    theta = config.clamp(config.prior_mean)
    for iteration in range(1, config.max_iterations + 1):
        gradient = sum(_score(theta, item, correct) for item, correct in pairs)
        info = sum(fisher_information(theta, item) for item, _ in pairs)
        if info <= 0:
            return _fallback(n, "zero test information", "mle", config)

        step = gradient / info
        step = max(-config.max_step, min(config.max_step, step))
        new_theta = config.clamp(theta + step)

        if abs(new_theta - theta) < config.tolerance:
            theta = new_theta
            logger.debug(f"MLE converged in {iteration} iterations: theta={theta:.3f}")
            info = sum(fisher_information(theta, item) for item, _ in pairs)
            return ThetaEstimate(
                theta=theta,
                se=_standard_error(info, config),
                converged=True,
                method="mle",
                n_observations=n,
            )
        theta = new_theta

    logger.warning(f"MLE did not converge in {config.max_iterations} iterations, using fallback")
    return _fallback(n, f"no convergence within {config.max_iterations} iterations", "mle", config)


def estimate_theta_eap(
    responses: Sequence[IRTResponse],
    items: Mapping[str, ItemParameter] | Iterable[ItemParameter],
    config: ThetaEstimationConfig = DEFAULT_ESTIMATION_CONFIG,
) -> ThetaEstimate:
    """Expected-a-posteriori θ under a N(prior_mean, prior_sd²) prior."""
    pairs = _pair_responses(responses, items)
    rule = gauss_hermite_rule(config.quad_points, config.prior_mean, config.prior_sd)

    if not pairs:
        return ThetaEstimate(
            theta=config.clamp(config.prior_mean),
            se=config.prior_sd,
            converged=True,
            method="eap",
            n_observations=0,
        )

    probs = probability_grid(rule.nodes, [item for item, _ in pairs])
    probs = np.clip(probs, _P_EPS, 1 - _P_EPS)
    outcomes = np.array([correct for _, correct in pairs], dtype=float)[:, None]
    log_likelihood = np.sum(outcomes * np.log(probs) + (1 - outcomes) * np.log(1 - probs), axis=0)

    eap, posterior_sd = compute_eap(log_likelihood, rule)
    return ThetaEstimate(
        theta=config.clamp(eap),
        se=max(config.se_floor, posterior_sd),
        converged=True,
        method="eap",
        n_observations=len(pairs),
    )


def update_theta(
    estimate: ThetaEstimate,
    item: ItemParameter,
    correct: bool,
    config: ThetaEstimationConfig = DEFAULT_ESTIMATION_CONFIG,
) -> ThetaEstimate:
    """
    Incorporate one response into an existing estimate (Laplace update).

    The current estimate acts as a normal prior; its precision 1/SE² gains
    the item's Fisher information and θ moves one Newton step.
    """
    theta = estimate.theta
    precision = 1.0 / (estimate.se * estimate.se) + fisher_information(theta, item)
    step = _score(theta, item, correct) / precision
    step = max(-config.max_step, min(config.max_step, step))

    return ThetaEstimate(
        theta=config.clamp(theta + step),
        se=max(config.se_floor, 1.0 / math.sqrt(precision)),
        converged=True,
        method="laplace",
        n_observations=estimate.n_observations + 1,
    )


# =============================================================================
# Item selection
# =============================================================================


def _available(
    candidates: Iterable[ItemParameter], administered: Iterable[str]
) -> list[ItemParameter]:
    seen = set(administered)
    return [item for item in candidates if item.id not in seen]


def select_next_item(
    theta: float,
    candidates: Iterable[ItemParameter],
    administered: Iterable[str] = (),
) -> ItemParameter | None:
    """Most informative unadministered item at θ (ties broken by id)."""
    require_finite("theta", theta)
    pool = _available(candidates, administered)
    if not pool:
        return None
    return min(pool, key=lambda item: (-fisher_information(theta, item), item.id))


def kl_index(
    estimate: ThetaEstimate, item: ItemParameter, grid_points: int = 41, width: float = 3.0
) -> float:
    """
    ∫ KL(P(θ̂) || P(θ)) dθ over θ̂ ± width·SE (trapezoid rule).

    KL(θ̂ || θ) = P(θ̂) log(P(θ̂)/P(θ)) + Q(θ̂) log(Q(θ̂)/Q(θ))
    """
    if grid_points < 2:
        raise InvalidInputError(f"grid_points must be >= 2, got {grid_points}")
    delta = width * max(estimate.se, 1e-3)
    thetas = np.linspace(estimate.theta - delta, estimate.theta + delta, grid_points)

    p_hat = min(1 - _P_EPS, max(_P_EPS, probability(estimate.theta, item)))
    p = np.clip(probability_grid(thetas, [item])[0], _P_EPS, 1 - _P_EPS)
    kl = p_hat * np.log(p_hat / p) + (1 - p_hat) * np.log((1 - p_hat) / (1 - p))

    spacing = thetas[1] - thetas[0]
    return float(spacing * (kl.sum() - 0.5 * (kl[0] + kl[-1])))


def select_item_kl(
    estimate: ThetaEstimate,
    candidates: Iterable[ItemParameter],
    administered: Iterable[str] = (),
    grid_points: int = 41,
) -> ItemParameter | None:
    """Unadministered item with the largest KL index (ties broken by id)."""
    require_finite("theta", estimate.theta)
    pool = _available(candidates, administered)
    if not pool:
        return None
    return min(pool, key=lambda item: (-kl_index(estimate, item, grid_points), item.id))
