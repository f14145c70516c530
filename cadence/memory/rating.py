"""
Timing-aware rating.

Maps an evaluated attempt (correctness, cue level, latency) onto the 1-4
FSRS grade. The latency cutoffs are heuristics, so they live in a
configurable ``RatingThresholds`` value rather than in the code:

- Incorrect                   -> 1 (Again)
- Correct with any cue        -> 2 (Hard)
- Fast  (rt/ref <= easy)      -> 4 (Easy)
- Normal (rt/ref <= good)     -> 3 (Good)
- Very slow (rt/ref > hard)   -> 2 (Hard)
- Otherwise                   -> 3 (Good)
"""

from __future__ import annotations

from dataclasses import dataclass

from cadence.exceptions import InvalidInputError, require_non_negative
from cadence.memory.fsrs import Rating


@dataclass(frozen=True)
class RatingThresholds:
    easy_ratio: float = 0.8
    good_ratio: float = 1.2
    hard_ratio: float = 1.5
    expected_response_ms: float = 5000.0  # Reference latency without a personal mean

    def __post_init__(self):
        if not 0 < self.easy_ratio <= self.good_ratio <= self.hard_ratio:
            raise InvalidInputError(
                "rating thresholds must satisfy 0 < easy_ratio <= good_ratio <= hard_ratio"
            )
        if self.expected_response_ms <= 0:
            raise InvalidInputError("expected_response_ms must be positive")


DEFAULT_THRESHOLDS = RatingThresholds()


def rating_from_response(
    correct: bool,
    response_time_ms: float | None = None,
    cue_level: int = 0,
    reference_ms: float | None = None,
    thresholds: RatingThresholds = DEFAULT_THRESHOLDS,
) -> Rating:
    """
    Derive the FSRS grade for one attempt.

    Args:
        correct: Whether the answer was right
        response_time_ms: Latency of the attempt (None = unknown, graded Good)
        cue_level: 0 = cue-free, 1-3 = increasing scaffolding
        reference_ms: Learner's typical latency for this item, if known
        thresholds: Ratio cutoffs

    Returns:
        Rating 1-4
    """
    if not 0 <= cue_level <= 3:
        raise InvalidInputError(f"cue_level must be 0-3, got {cue_level}")

    if not correct:
        return Rating.AGAIN
    if cue_level > 0:
        return Rating.HARD
    if response_time_ms is None:
        return Rating.GOOD

    require_non_negative("response_time_ms", response_time_ms)
    reference = reference_ms if reference_ms and reference_ms > 0 else thresholds.expected_response_ms
    ratio = response_time_ms / reference

    if ratio <= thresholds.easy_ratio:
        return Rating.EASY
    if ratio <= thresholds.good_ratio:
        return Rating.GOOD
    if ratio > thresholds.hard_ratio:
        return Rating.HARD
    return Rating.GOOD
