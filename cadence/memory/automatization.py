"""
Automatization Analysis.

Measures how automatic (fast, stable, effortless) retrieval has become,
from a stream of timed responses.

Signals:
- Coefficient of variation of RT (Segalowitz, 2010): low CV = automatic
- Power law of practice (Newell & Rosenbloom, 1981): RT = a * N^-b + c
- Speed-accuracy tradeoff: automatic performance stays accurate when fast

The combined automatization level decides which skill components count as
"automated" for the prerequisite chain used by the priority engine.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import numpy as np

from cadence.results import AnalysisResult, Computed, NotEnoughData
from cadence.types import ComponentType

# =============================================================================
# THRESHOLDS
# =============================================================================

MIN_RESPONSE_TIME_MS = 100.0
MAX_RESPONSE_TIME_MS = 30000.0

CV_THRESHOLDS = {
    "highly_automatic": 0.15,
    "automatic": 0.25,
    "developing": 0.40,
    "effortful": 0.60,
}

# Lexical decision latencies (ms)
RT_EXPERT = 600.0
RT_AUTOMATIC = 1000.0
RT_FLUENT = 1500.0
RT_EFFORTFUL = 3000.0

MIN_BASIC = 5
MIN_POWER_LAW = 15
MIN_SAT = 20

CATEGORY_THRESHOLDS = (
    (0.90, "fully_automatic"),
    (0.70, "automatic"),
    (0.40, "procedural"),
)


@dataclass(frozen=True)
class ResponseObservation:
    response_time_ms: float
    correct: bool
    cue_level: int = 0
    timestamp: float = 0.0  # Unix seconds, used for ordering
    task_type: str = "recall"

    @property
    def is_valid(self) -> bool:
        return (
            math.isfinite(self.response_time_ms)
            and MIN_RESPONSE_TIME_MS <= self.response_time_ms <= MAX_RESPONSE_TIME_MS
            and self.cue_level in (0, 1, 2, 3)
        )


@dataclass(frozen=True)
class CVAnalysis:
    cv: float
    mean_rt: float
    sd_rt: float
    interpretation: str


@dataclass(frozen=True)
class PowerLawFit:
    """RT = a * N^-b + c"""

    a: float
    b: float
    c: float
    r_squared: float
    n_observations: int

    def predict(self, practice_count: int) -> float:
        return self.a * math.pow(max(1, practice_count), -self.b) + self.c


@dataclass(frozen=True)
class SpeedAccuracyAnalysis:
    fast_accuracy: float
    normal_accuracy: float
    slow_accuracy: float
    sat_coefficient: float  # slow - fast; positive = accuracy drops with speed
    maintains_accuracy: bool


def _valid(observations: Sequence[ResponseObservation]) -> list[ResponseObservation]:
    return [o for o in observations if o.is_valid]


def _chronological(observations: Sequence[ResponseObservation]) -> list[ResponseObservation]:
    return sorted(observations, key=lambda o: o.timestamp)


# =============================================================================
# Individual analyses
# =============================================================================


def calculate_cv(response_times: Sequence[float]) -> CVAnalysis:
    """CV = sd / mean over plausible response times (population sd)."""
    times = np.array(
        [t for t in response_times if math.isfinite(t) and MIN_RESPONSE_TIME_MS <= t <= MAX_RESPONSE_TIME_MS],
        dtype=float,
    )
    if times.size == 0:
        return CVAnalysis(cv=1.0, mean_rt=0.0, sd_rt=0.0, interpretation="highly_variable")

    mean = float(times.mean())
    sd = float(times.std())
    cv = sd / mean if mean > 0 else 1.0

    interpretation = "highly_variable"
    for label, limit in CV_THRESHOLDS.items():
        if cv < limit:
            interpretation = label
            break

    return CVAnalysis(cv=cv, mean_rt=mean, sd_rt=sd, interpretation=interpretation)


def fit_power_law(observations: Sequence[ResponseObservation]) -> AnalysisResult[PowerLawFit]:
    """
    Fit the power law of practice to correct responses.

    The asymptote c is fixed at 80% of the fastest RT, then
    log(RT - c) = log(a) - b * log(N) is solved by least squares.
    """
    correct = _chronological([o for o in _valid(observations) if o.correct])
    if len(correct) < MIN_POWER_LAW:
        return NotEnoughData(
            reason="power-law fit needs more correct responses",
            required=MIN_POWER_LAW,
            available=len(correct),
        )

    rts = np.array([o.response_time_ms for o in correct], dtype=float)
    c = float(rts.min()) * 0.8
    practice = np.arange(1, rts.size + 1, dtype=float)
    mask = rts > c
    log_n = np.log(practice[mask])
    log_rt = np.log(rts[mask] - c)

    if log_n.size < MIN_BASIC or float(log_n.max() - log_n.min()) < 1e-10:
        return NotEnoughData(
            reason="not enough distinct practice counts above the RT floor",
            required=MIN_BASIC,
            available=int(log_n.size),
        )

    slope, intercept = np.polyfit(log_n, log_rt, 1)
    predicted = intercept + slope * log_n
    ss_total = float(np.sum((log_rt - log_rt.mean()) ** 2))
    ss_residual = float(np.sum((log_rt - predicted) ** 2))
    r_squared = 1 - ss_residual / ss_total if ss_total > 0 else 0.0

    return Computed(
        PowerLawFit(
            a=float(math.exp(intercept)),
            b=max(0.0, float(-slope)),
            c=c,
            r_squared=min(1.0, max(0.0, r_squared)),
            n_observations=len(correct),
        )
    )


def analyze_speed_accuracy(
    observations: Sequence[ResponseObservation],
) -> AnalysisResult[SpeedAccuracyAnalysis]:
    """Compare accuracy across RT tertiles (fast / normal / slow)."""
    valid = _valid(observations)
    if len(valid) < MIN_SAT:
        return NotEnoughData(
            reason="speed-accuracy analysis needs more responses",
            required=MIN_SAT,
            available=len(valid),
        )

    ordered = sorted(valid, key=lambda o: o.response_time_ms)
    third = len(ordered) // 3
    fast, normal, slow = ordered[:third], ordered[third : 2 * third], ordered[2 * third :]

    def accuracy(group: list[ResponseObservation]) -> float:
        return sum(o.correct for o in group) / len(group) if group else 0.0

    fast_acc = accuracy(fast)
    slow_acc = accuracy(slow)
    sat = slow_acc - fast_acc

    return Computed(
        SpeedAccuracyAnalysis(
            fast_accuracy=fast_acc,
            normal_accuracy=accuracy(normal),
            slow_accuracy=slow_acc,
            sat_coefficient=sat,
            maintains_accuracy=fast_acc >= 0.7 and sat < 0.15,
        )
    )


# =============================================================================
# Combined level
# =============================================================================


def _rt_score(mean_rt: float) -> float:
    if mean_rt <= RT_EXPERT:
        return 1.0
    if mean_rt <= RT_AUTOMATIC:
        return 0.8 + 0.2 * (RT_AUTOMATIC - mean_rt) / (RT_AUTOMATIC - RT_EXPERT)
    if mean_rt <= RT_FLUENT:
        return 0.5 + 0.3 * (RT_FLUENT - mean_rt) / (RT_FLUENT - RT_AUTOMATIC)
    if mean_rt <= RT_EFFORTFUL:
        return 0.2 + 0.3 * (RT_EFFORTFUL - mean_rt) / (RT_EFFORTFUL - RT_FLUENT)
    return max(0.0, 0.2 * (MAX_RESPONSE_TIME_MS - mean_rt) / (MAX_RESPONSE_TIME_MS - RT_EFFORTFUL))


def automatization_level(observations: Sequence[ResponseObservation]) -> float:
    """
    Automatization level in [0, 1].

    level = 0.4 * CV score + 0.3 * RT score + 0.2 * SAT score + 0.1 * cue-free accuracy
    """
    valid = _valid(observations)
    if len(valid) < MIN_BASIC:
        return 0.0

    correct = [o for o in valid if o.correct]
    if not correct:
        return 0.0

    cv = calculate_cv([o.response_time_ms for o in correct])
    cv_score = max(0.0, 1 - cv.cv / 0.8)
    rt_score = _rt_score(cv.mean_rt)

    sat = analyze_speed_accuracy(valid)
    sat_score = 0.5
    if isinstance(sat, Computed):
        sat_score = 1.0 if sat.value.maintains_accuracy else sat.value.fast_accuracy * 0.8

    cue_free = [o for o in valid if o.cue_level == 0]
    cue_free_score = 0.0
    if len(cue_free) >= MIN_BASIC:
        cue_free_score = sum(o.correct for o in cue_free) / len(cue_free)

    level = 0.40 * cv_score + 0.30 * rt_score + 0.20 * sat_score + 0.10 * cue_free_score
    return min(1.0, max(0.0, level))


def automatization_category(level: float) -> str:
    for limit, label in CATEGORY_THRESHOLDS:
        if level >= limit:
            return label
    return "declarative"


def automated_components(
    observations_by_component: Mapping[ComponentType, Sequence[ResponseObservation]],
    threshold: float = 0.7,
) -> frozenset[ComponentType]:
    """Components whose automatization level reaches ``threshold``."""
    return frozenset(
        component
        for component, observations in observations_by_component.items()
        if automatization_level(observations) >= threshold
    )
