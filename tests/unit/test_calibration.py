"""
Unit tests for EM item calibration.

Synthetic response matrices come from a seeded generator, so every run sees
the same data.
"""

import numpy as np
import pytest

from cadence.ability.calibration import (
    CalibrationConfig,
    CalibrationReport,
    calibrate_items,
    item_estimate,
)
from cadence.exceptions import InvalidInputError
from cadence.results import Computed, NotEnoughData

TRUE_A = np.array([0.8, 1.0, 1.2, 1.4, 1.6, 0.9, 1.1, 1.3, 1.5, 1.0])
TRUE_B = np.linspace(-1.5, 1.5, 10)


def _simulate(n_respondents=500, seed=7):
    rng = np.random.default_rng(seed)
    theta = rng.standard_normal(n_respondents)
    p = 1.0 / (1.0 + np.exp(-TRUE_A[None, :] * (theta[:, None] - TRUE_B[None, :])))
    answers = rng.random(p.shape) < p
    return [[bool(cell) for cell in row] for row in answers]


@pytest.fixture(scope="module")
def matrix():
    return _simulate()


@pytest.fixture(scope="module")
def report(matrix):
    return calibrate_items(matrix, [f"q{j}" for j in range(10)])


class TestDecline:
    def test_small_matrix_declines_with_reason(self):
        tiny = [[True, False, True, False, True] for _ in range(3)]
        result = calibrate_items(tiny)
        assert result.calibrated is False
        assert "insufficient respondents" in result.reason
        assert result.items == []

    def test_too_few_items(self, matrix):
        narrow = [row[:5] for row in matrix]
        result = calibrate_items(narrow)
        assert result.calibrated is False
        assert result.reason.startswith("insufficient items")

    def test_sparse_item(self, matrix):
        sparse = [list(row) for row in matrix]
        for row in sparse[10:]:
            row[3] = None
        result = calibrate_items(sparse, [f"q{j}" for j in range(10)])
        assert result.calibrated is False
        assert "insufficient responses per item" in result.reason
        assert "q3" in result.reason

    def test_empty_matrix(self):
        assert calibrate_items([]).calibrated is False

    def test_numpy_matrix(self, matrix):
        narrow = np.array(matrix)[:, :5]
        result = calibrate_items(narrow)
        assert result.calibrated is False
        assert result.reason == "insufficient items: 5 < 10"

    def test_empty_numpy_matrix(self):
        assert calibrate_items(np.zeros((0, 0), dtype=bool)).calibrated is False


class TestInvalidInput:
    def test_ragged_rows(self):
        with pytest.raises(InvalidInputError):
            calibrate_items([[True, False], [True]])

    def test_bad_cell(self):
        with pytest.raises(InvalidInputError):
            calibrate_items([[True, "yes"]])

    def test_item_id_count(self, matrix):
        with pytest.raises(InvalidInputError):
            calibrate_items(matrix, ["only-one"])


@pytest.mark.slow
class TestRecovery:
    def test_calibrates_every_item(self, report):
        assert report.calibrated is True
        assert report.reason is None
        assert [r.item_id for r in report.items] == [f"q{j}" for j in range(10)]
        assert 1 <= report.iterations <= 100
        assert report.log_likelihood < 0

    def test_recovers_difficulty(self, report):
        estimated = np.array([r.b for r in report.items])
        assert np.max(np.abs(estimated - TRUE_B)) < 0.5
        assert np.corrcoef(estimated, TRUE_B)[0, 1] > 0.95

    def test_discrimination_within_bounds(self, report):
        for result in report.items:
            assert 0.5 <= result.a <= 2.5
            assert result.n_responses == 500

    def test_standard_errors_mark_reliability(self, report):
        for result in report.items:
            assert result.se_a > 0 and result.se_b > 0
            assert result.reliable == (result.se_a <= 0.5 and result.se_b <= 0.5)
        assert report.reliable_items()

    def test_idempotent(self, matrix, report):
        again = calibrate_items(matrix, [f"q{j}" for j in range(10)])
        assert [(r.a, r.b) for r in again.items] == [(r.a, r.b) for r in report.items]

    def test_missing_cells_tolerated(self, matrix):
        holes = [list(row) for row in matrix]
        for i in range(0, 500, 7):
            holes[i][i % 10] = None
        assert calibrate_items(holes).calibrated is True

    def test_iteration_limit(self, matrix):
        result = calibrate_items(matrix, max_iterations=1)
        assert result.calibrated is True
        assert result.iterations == 1
        assert result.converged is False


class TestItemEstimate:
    def test_declined_report(self):
        result = item_estimate(CalibrationReport(calibrated=False, reason="too few"), "q0")
        assert isinstance(result, NotEnoughData)
        assert result.reason == "too few"

    def test_unknown_item(self, report):
        assert isinstance(item_estimate(report, "nope"), NotEnoughData)

    def test_reliable_item(self, report):
        reliable = next(r for r in report.items if r.reliable)
        result = item_estimate(report, reliable.item_id)
        assert isinstance(result, Computed)
        assert result.value.b == pytest.approx(reliable.b)


class TestConfig:
    def test_rejects_zero_iterations(self):
        with pytest.raises(InvalidInputError):
            CalibrationConfig(max_iterations=0)

    def test_override_iterations_validated(self, matrix):
        with pytest.raises(InvalidInputError):
            calibrate_items(matrix, max_iterations=0)
