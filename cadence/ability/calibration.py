"""
Item Calibration (2PL, marginal maximum likelihood).

Bock-Aitkin EM over Gauss-Hermite nodes:

E-step: posterior weight of every respondent at every ability node, giving
        expected respondents n_jk and expected correct answers r_jk per
        item j and node k.
M-step: per item, Newton-Raphson on the slope-intercept form
        P = logistic(a·θ + d), then b = -d / a.

Standard errors come from the inverse of the expected information matrix
(delta method for b). Items whose SE exceeds ``se_threshold`` are marked
unreliable; callers should not trust their parameters.

Calibration is a batch job. It is idempotent: re-running it on the same
matrix gives the same result, and skipping it only delays better item
parameters.

Reference: Bock & Aitkin (1981), Psychometrika 46(4).
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np
from loguru import logger

from cadence.ability.models import ItemParameter
from cadence.ability.quadrature import gauss_hermite_rule
from cadence.exceptions import InvalidInputError
from cadence.results import AnalysisResult, Computed, NotEnoughData

_P_EPS = 1e-9
_NEWTON_STEPS = 5
_MAX_NEWTON_STEP = 1.0


@dataclass(frozen=True)
class CalibrationConfig:
    min_respondents: int = 30
    min_items: int = 10
    min_responses_per_item: int = 20
    max_iterations: int = 100
    tolerance: float = 1e-3
    quad_points: int = 21
    se_threshold: float = 0.5
    discrimination_bounds: tuple[float, float] = (0.5, 2.5)
    difficulty_bounds: tuple[float, float] = (-3.0, 3.0)

    def __post_init__(self):
        if self.max_iterations < 1:
            raise InvalidInputError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.quad_points < 2:
            raise InvalidInputError(f"quad_points must be >= 2, got {self.quad_points}")
        if min(self.min_respondents, self.min_items, self.min_responses_per_item) < 1:
            raise InvalidInputError("calibration minimums must be >= 1")


DEFAULT_CALIBRATION_CONFIG = CalibrationConfig()


@dataclass(frozen=True)
class ItemCalibrationResult:
    item_index: int
    item_id: str
    a: float
    b: float
    se_a: float
    se_b: float
    reliable: bool
    n_responses: int

    def to_item_parameter(self) -> ItemParameter:
        return ItemParameter(id=self.item_id, a=self.a, b=self.b, se_a=self.se_a, se_b=self.se_b)


@dataclass(frozen=True)
class CalibrationReport:
    """
    Outcome of one calibration run.

    ``calibrated=False`` means the run was declined before estimation and
    ``reason`` says which minimum was not met.
    """

    calibrated: bool
    reason: str | None = None
    items: list[ItemCalibrationResult] = field(default_factory=list)
    iterations: int = 0
    converged: bool = False
    log_likelihood: float | None = None

    def reliable_items(self) -> list[ItemParameter]:
        return [result.to_item_parameter() for result in self.items if result.reliable]


def item_estimate(report: CalibrationReport, item_id: str) -> AnalysisResult[ItemParameter]:
    """Trusted parameters for one item, or why they cannot be trusted."""
    if not report.calibrated:
        return NotEnoughData(reason=report.reason or "calibration declined")
    for result in report.items:
        if result.item_id == item_id:
            if not result.reliable:
                return NotEnoughData(
                    reason=f"standard error too large for item {item_id}",
                    available=result.n_responses,
                )
            return Computed(result.to_item_parameter())
    return NotEnoughData(reason=f"item {item_id} was not calibrated")


# =============================================================================
# Input handling
# =============================================================================


def _to_arrays(response_matrix: Sequence[Sequence[bool | None]]) -> tuple[np.ndarray, np.ndarray]:
    """(scores, administered) arrays; missing cells score 0 and are masked out."""
    if len(response_matrix) == 0:
        return np.zeros((0, 0)), np.zeros((0, 0), dtype=bool)

    width = len(response_matrix[0])
    scores = np.zeros((len(response_matrix), width))
    administered = np.zeros((len(response_matrix), width), dtype=bool)

    for i, row in enumerate(response_matrix):
        if len(row) != width:
            raise InvalidInputError(
                f"Ragged response matrix: row {i} has {len(row)} cells, expected {width}"
            )
        for j, cell in enumerate(row):
            if cell is None:
                continue
            if cell not in (True, False):
                raise InvalidInputError(f"Response cell ({i}, {j}) must be True, False or None, got {cell!r}")
            administered[i, j] = True
            scores[i, j] = 1.0 if cell else 0.0

    return scores, administered


def _decline(reason: str) -> CalibrationReport:
    logger.warning(f"Calibration declined: {reason}")
    return CalibrationReport(calibrated=False, reason=reason)


# =============================================================================
# EM
# =============================================================================


def _item_probabilities(a: np.ndarray, d: np.ndarray, nodes: np.ndarray) -> np.ndarray:
    z = np.clip(a[:, None] * nodes[None, :] + d[:, None], -35.0, 35.0)
    return np.clip(1.0 / (1.0 + np.exp(-z)), _P_EPS, 1 - _P_EPS)


def _e_step(
    scores: np.ndarray,
    administered: np.ndarray,
    a: np.ndarray,
    d: np.ndarray,
    nodes: np.ndarray,
    log_weights: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, float]:
    probs = _item_probabilities(a, d, nodes)
    wrong = administered.astype(float) - scores
    log_like = scores @ np.log(probs) + wrong @ np.log(1 - probs)

    joint = log_like + log_weights[None, :]
    peak = joint.max(axis=1, keepdims=True)
    marginal = peak[:, 0] + np.log(np.exp(joint - peak).sum(axis=1))
    posterior = np.exp(joint - marginal[:, None])

    expected_n = administered.T.astype(float) @ posterior
    expected_r = scores.T @ posterior
    return expected_n, expected_r, float(marginal.sum())


def _information(a: float, d: float, n_k: np.ndarray, nodes: np.ndarray) -> np.ndarray:
    p = np.clip(1.0 / (1.0 + np.exp(-np.clip(a * nodes + d, -35.0, 35.0))), _P_EPS, 1 - _P_EPS)
    w = n_k * p * (1 - p)
    return np.array(
        [
            [np.sum(w * nodes * nodes), np.sum(w * nodes)],
            [np.sum(w * nodes), np.sum(w)],
        ]
    )


def _m_step_item(
    a: float,
    d: float,
    n_k: np.ndarray,
    r_k: np.ndarray,
    nodes: np.ndarray,
    config: CalibrationConfig,
) -> tuple[float, float]:
    a_low, a_high = config.discrimination_bounds
    b_low, b_high = config.difficulty_bounds

    for _ in range(_NEWTON_STEPS):
        p = np.clip(1.0 / (1.0 + np.exp(-np.clip(a * nodes + d, -35.0, 35.0))), _P_EPS, 1 - _P_EPS)
        residual = r_k - n_k * p
        gradient = np.array([np.sum(residual * nodes), np.sum(residual)])
        info = _information(a, d, n_k, nodes)
        try:
            step = np.linalg.solve(info, gradient)
        except np.linalg.LinAlgError:
            break
        step = np.clip(step, -_MAX_NEWTON_STEP, _MAX_NEWTON_STEP)
        a = float(np.clip(a + step[0], a_low, a_high))
        d = d + float(step[1])
        if np.max(np.abs(step)) < 1e-6:
            break

    b = float(np.clip(-d / a, b_low, b_high))
    return a, -a * b


def _standard_errors(a: float, d: float, n_k: np.ndarray, nodes: np.ndarray) -> tuple[float, float]:
    try:
        cov = np.linalg.inv(_information(a, d, n_k, nodes))
    except np.linalg.LinAlgError:
        return math.inf, math.inf

    var_a = cov[0, 0]
    # b = -d / a  ->  grad = (d / a², -1 / a)
    grad = np.array([d / (a * a), -1.0 / a])
    var_b = float(grad @ cov @ grad)
    se_a = math.sqrt(var_a) if var_a > 0 else math.inf
    se_b = math.sqrt(var_b) if var_b > 0 else math.inf
    return se_a, se_b


def calibrate_items(
    response_matrix: Sequence[Sequence[bool | None]],
    item_ids: Sequence[str] | None = None,
    config: CalibrationConfig = DEFAULT_CALIBRATION_CONFIG,
    max_iterations: int | None = None,
) -> CalibrationReport:
    """
    Estimate 2PL (a, b) for every column of a respondent × item matrix.

    Args:
        response_matrix: Rows are respondents, columns items; cells are
            True (correct), False (incorrect) or None (not administered)
        item_ids: Column identifiers (defaults to "item-<index>")
        config: Minimum-data thresholds, bounds and iteration limits
        max_iterations: Overrides ``config.max_iterations`` for this run

    Returns:
        CalibrationReport; declined (``calibrated=False``) with a reason when
        a minimum-data threshold is not met
    """
    scores, administered = _to_arrays(response_matrix)
    n_rows, n_items = administered.shape

    if item_ids is None:
        item_ids = [f"item-{j}" for j in range(n_items)]
    elif len(item_ids) != n_items:
        raise InvalidInputError(f"Got {len(item_ids)} item ids for {n_items} columns")

    iterations_limit = config.max_iterations if max_iterations is None else max_iterations
    if iterations_limit < 1:
        raise InvalidInputError(f"max_iterations must be >= 1, got {iterations_limit}")

    respondents = int(np.sum(administered.any(axis=1))) if n_rows else 0
    if respondents < config.min_respondents:
        return _decline(
            f"insufficient respondents: {respondents} < {config.min_respondents}"
        )
    if n_items < config.min_items:
        return _decline(f"insufficient items: {n_items} < {config.min_items}")

    per_item = administered.sum(axis=0)
    sparse = [item_ids[j] for j in range(n_items) if per_item[j] < config.min_responses_per_item]
    if sparse:
        return _decline(
            f"insufficient responses per item (< {config.min_responses_per_item}): "
            + ", ".join(sparse[:5])
            + (f" and {len(sparse) - 5} more" if len(sparse) > 5 else "")
        )

    rule = gauss_hermite_rule(config.quad_points)
    nodes = rule.nodes
    log_weights = np.log(rule.weights)

    # Start from observed p-values
    p_values = np.clip(scores.sum(axis=0) / np.maximum(per_item, 1), 0.02, 0.98)
    a = np.ones(n_items)
    d = np.log(p_values / (1 - p_values))

    converged = False
    log_likelihood = -math.inf
    iteration = 0
    expected_n = expected_r = None

    for iteration in range(1, iterations_limit + 1):
        expected_n, expected_r, log_likelihood = _e_step(
            scores, administered, a, d, nodes, log_weights
        )

        new_a = a.copy()
        new_d = d.copy()
        for j in range(n_items):
            new_a[j], new_d[j] = _m_step_item(
                a[j], d[j], expected_n[j], expected_r[j], nodes, config
            )

        change = float(max(np.max(np.abs(new_a - a)), np.max(np.abs(new_d - d))))
        a, d = new_a, new_d
        if change < config.tolerance:
            converged = True
            break

    expected_n, expected_r, log_likelihood = _e_step(scores, administered, a, d, nodes, log_weights)

    results = []
    for j in range(n_items):
        se_a, se_b = _standard_errors(a[j], d[j], expected_n[j], nodes)
        results.append(
            ItemCalibrationResult(
                item_index=j,
                item_id=item_ids[j],
                a=float(a[j]),
                b=float(-d[j] / a[j]),
                se_a=se_a,
                se_b=se_b,
                reliable=se_a <= config.se_threshold and se_b <= config.se_threshold,
                n_responses=int(per_item[j]),
            )
        )

    if converged:
        logger.info(
            f"Calibrated {n_items} items from {respondents} respondents "
            f"in {iteration} EM iterations (logL={log_likelihood:.2f})"
        )
    else:
        logger.warning(
            f"Calibration stopped after {iteration} EM iterations without converging"
        )

    return CalibrationReport(
        calibrated=True,
        items=results,
        iterations=iteration,
        converged=converged,
        log_likelihood=log_likelihood,
    )
