"""
Mastery Stages.

Tracks how far an item has progressed from first exposure to automatic use,
combining the FSRS card with cue-free / cue-assisted accuracy.

Stages:
0 - Unknown: never seen
1 - Recognition: can recognize with cues
2 - Recall: recalls > 60% cue-free
3 - Controlled: reliable production (75%+, week-long stability)
4 - Automatic: near-perfect, month+ stability, minimal scaffolding gap
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime

from cadence.memory.fsrs import DEFAULT_PARAMETERS, FSRSParameters, MemoryCard, schedule
from cadence.memory.rating import DEFAULT_THRESHOLDS, RatingThresholds, rating_from_response

STAGE_ACCURACY = {2: 0.6, 3: 0.75, 4: 0.9}
STAGE_STABILITY = {3: 7.0, 4: 30.0}
AUTOMATIC_GAP = 0.1
CUE_ASSISTED_RATE = 0.2


@dataclass(frozen=True)
class StageResponse:
    """One evaluated attempt, as seen by the mastery tracker."""

    correct: bool
    cue_level: int = 0
    response_time_ms: float | None = None


@dataclass(frozen=True)
class MasteryState:
    stage: int = 0
    card: MemoryCard = field(default_factory=MemoryCard)
    cue_free_accuracy: float = 0.0
    cue_assisted_accuracy: float = 0.0
    exposure_count: int = 0


def update_mastery(
    state: MasteryState,
    response: StageResponse,
    now: datetime,
    params: FSRSParameters = DEFAULT_PARAMETERS,
    thresholds: RatingThresholds = DEFAULT_THRESHOLDS,
) -> MasteryState:
    """Return the state after one attempt; the input state is left untouched."""
    rating = rating_from_response(
        response.correct,
        response.response_time_ms,
        response.cue_level,
        thresholds=thresholds,
    )
    card = schedule(state.card, rating, now, params).card
    exposures = state.exposure_count + 1
    outcome = 1.0 if response.correct else 0.0

    cue_free = state.cue_free_accuracy
    cue_assisted = state.cue_assisted_accuracy
    if response.cue_level == 0:
        # Recency weight shrinks as exposures accumulate
        weight = 1.0 / (exposures * 0.3 + 1.0)
        cue_free = (1 - weight) * cue_free + weight * outcome
    else:
        cue_assisted = (1 - CUE_ASSISTED_RATE) * cue_assisted + CUE_ASSISTED_RATE * outcome

    updated = replace(
        state,
        card=card,
        cue_free_accuracy=cue_free,
        cue_assisted_accuracy=cue_assisted,
        exposure_count=exposures,
    )
    return replace(updated, stage=determine_stage(updated))


def determine_stage(state: MasteryState) -> int:
    if state.exposure_count == 0:
        return 0

    gap = state.cue_assisted_accuracy - state.cue_free_accuracy
    stability = state.card.stability

    if (
        state.cue_free_accuracy >= STAGE_ACCURACY[4]
        and stability > STAGE_STABILITY[4]
        and gap < AUTOMATIC_GAP
    ):
        return 4
    if state.cue_free_accuracy >= STAGE_ACCURACY[3] and stability > STAGE_STABILITY[3]:
        return 3
    if state.cue_free_accuracy >= STAGE_ACCURACY[2] or state.cue_assisted_accuracy >= 0.8:
        return 2
    if state.cue_assisted_accuracy >= 0.5:
        return 1
    return 0


def scaffolding_gap(state: MasteryState) -> float:
    """How much better the learner does with cues than without (>= 0)."""
    return max(0.0, state.cue_assisted_accuracy - state.cue_free_accuracy)


def recommended_cue_level(state: MasteryState) -> int:
    """0 = no cues .. 3 = full cues."""
    gap = scaffolding_gap(state)
    attempts = state.exposure_count

    if gap < 0.1 and attempts > 3:
        return 0
    if gap < 0.2 and attempts > 2:
        return 1
    if gap < 0.3:
        return 2
    return 3
