"""
Memory model.

Per-item forgetting-curve state and everything derived from the response
stream of one (learner, item) pair:

- fsrs: FSRS stability / difficulty / retrievability scheduling
- rating: correctness + latency -> 1-4 review rating
- mastery: stage 0-4 progression with cue-free / cue-assisted accuracy
- automatization: response-time variability and power-law practice effects
"""
from cadence.memory.automatization import (
    CVAnalysis,
    PowerLawFit,
    ResponseObservation,
    SpeedAccuracyAnalysis,
    analyze_speed_accuracy,
    automated_components,
    automatization_category,
    automatization_level,
    calculate_cv,
    fit_power_law,
)
from cadence.memory.fsrs import (
    DEFAULT_PARAMETERS,
    CardState,
    FSRSParameters,
    MemoryCard,
    Rating,
    ScheduleResult,
    create_new_card,
    fsrs_priority,
    is_due,
    next_interval,
    next_review_date,
    retrievability,
    schedule,
    validate_card,
)
from cadence.memory.mastery import (
    MasteryState,
    StageResponse,
    determine_stage,
    recommended_cue_level,
    scaffolding_gap,
    update_mastery,
)
from cadence.memory.rating import DEFAULT_THRESHOLDS, RatingThresholds, rating_from_response

__all__ = [
    # FSRS
    "CardState",
    "DEFAULT_PARAMETERS",
    "FSRSParameters",
    "MemoryCard",
    "Rating",
    "ScheduleResult",
    "create_new_card",
    "fsrs_priority",
    "is_due",
    "next_interval",
    "next_review_date",
    "retrievability",
    "schedule",
    "validate_card",
    # Rating
    "DEFAULT_THRESHOLDS",
    "RatingThresholds",
    "rating_from_response",
    # Mastery
    "MasteryState",
    "StageResponse",
    "determine_stage",
    "recommended_cue_level",
    "scaffolding_gap",
    "update_mastery",
    # Automatization
    "CVAnalysis",
    "PowerLawFit",
    "ResponseObservation",
    "SpeedAccuracyAnalysis",
    "analyze_speed_accuracy",
    "automated_components",
    "automatization_category",
    "automatization_level",
    "calculate_cv",
    "fit_power_law",
]
