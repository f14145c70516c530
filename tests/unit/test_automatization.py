"""
Unit tests for automatization analysis.
"""

import pytest

from cadence.memory.automatization import (
    ResponseObservation,
    analyze_speed_accuracy,
    automated_components,
    automatization_category,
    automatization_level,
    calculate_cv,
    fit_power_law,
)
from cadence.results import Computed, NotEnoughData
from cadence.types import ComponentType


def _steady(n, rt=500.0, correct=True):
    return [ResponseObservation(rt, correct, timestamp=float(i)) for i in range(n)]


class TestCoefficientOfVariation:
    def test_constant_times_are_highly_automatic(self):
        result = calculate_cv([500, 500, 500])
        assert result.cv == 0.0
        assert result.interpretation == "highly_automatic"

    def test_implausible_times_ignored(self):
        result = calculate_cv([50, 500, 500, 60000])
        assert result.mean_rt == 500

    def test_no_valid_times(self):
        assert calculate_cv([]).interpretation == "highly_variable"


class TestPowerLaw:
    def test_needs_fifteen_correct_responses(self):
        result = fit_power_law(_steady(10))
        assert isinstance(result, NotEnoughData)
        assert result.required == 15
        assert result.available == 10
        assert not result

    def test_recovers_speedup(self):
        observations = [
            ResponseObservation(2000 * n ** -0.5 + 400, True, timestamp=float(n)) for n in range(1, 31)
        ]
        result = fit_power_law(observations)
        assert isinstance(result, Computed)
        fit = result.value
        assert fit.b > 0
        assert fit.n_observations == 30
        assert 0.0 <= fit.r_squared <= 1.0
        assert fit.predict(50) < fit.predict(2)

    def test_constant_times_have_no_speedup(self):
        result = fit_power_law(_steady(20))
        assert isinstance(result, Computed)
        assert result.value.b == pytest.approx(0.0, abs=1e-9)


class TestSpeedAccuracy:
    def test_needs_twenty(self):
        assert isinstance(analyze_speed_accuracy(_steady(19)), NotEnoughData)

    def test_fast_errors_detected(self):
        fast_wrong = [ResponseObservation(300, False, timestamp=float(i)) for i in range(10)]
        slow_right = [ResponseObservation(2000, True, timestamp=float(i + 10)) for i in range(20)]
        result = analyze_speed_accuracy(fast_wrong + slow_right)
        assert isinstance(result, Computed)
        assert result.value.fast_accuracy == 0.0
        assert result.value.slow_accuracy == 1.0
        assert result.value.maintains_accuracy is False


class TestAutomatizationLevel:
    def test_fast_stable_accurate_is_automatic(self):
        level = automatization_level(_steady(25))
        assert level == pytest.approx(1.0)
        assert automatization_category(level) == "fully_automatic"

    def test_too_few_observations(self):
        assert automatization_level(_steady(3)) == 0.0

    def test_all_wrong(self):
        assert automatization_level(_steady(10, correct=False)) == 0.0

    def test_categories(self):
        assert automatization_category(0.75) == "automatic"
        assert automatization_category(0.5) == "procedural"
        assert automatization_category(0.1) == "declarative"

    def test_automated_components(self):
        automated = automated_components(
            {ComponentType.LEX: _steady(25), ComponentType.SYNT: _steady(25, rt=9000, correct=False)}
        )
        assert automated == frozenset({ComponentType.LEX})
