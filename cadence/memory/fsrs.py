"""
FSRS-4 Memory Model.

Forgetting-curve state for one (learner, item) pair and the scheduling
update applied after every review.

Memory state:
- Difficulty (D): 1 (easy) .. 10 (hard)
- Stability (S): days, controls the speed of forgetting
- Retrievability (R): recall probability, R = exp(-t / S)

Grade scale:
1 - Again (failed recall)
2 - Hard
3 - Good
4 - Easy

All functions are pure: they take the card and an explicit, immutable
``FSRSParameters`` value and return new values.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum, IntEnum

from loguru import logger

from cadence.exceptions import InvalidInputError, require_range

# =============================================================================
# FSRS-4 CONSTANTS
# =============================================================================

DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.4, 0.6, 2.4, 5.8,        # w0-w3: initial stability by rating
    4.93, 0.94, 0.86, 0.01,    # w4-w7: difficulty (init, init slope, step, mean reversion)
    1.49, 0.14, 0.94,          # w8-w10: recall stability growth
    2.18, 0.05, 0.34, 1.26,    # w11-w14: forget stability
    0.29, 2.61,                # w15-w16: hard penalty, easy bonus
)

SECONDS_PER_DAY = 86400.0

MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0


class Rating(IntEnum):
    """Recall quality for one review."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


class CardState(str, Enum):
    """Lifecycle state of a memory card."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


@dataclass(frozen=True)
class FSRSParameters:
    """Scheduler configuration (immutable, passed into every call)."""

    request_retention: float = 0.9   # Target recall probability at review time
    maximum_interval: float = 36500  # Days (100 years)
    stability_floor: float = 0.1     # Days
    w: tuple[float, ...] = field(default=DEFAULT_WEIGHTS)

    def __post_init__(self):
        if not 0.0 < self.request_retention < 1.0:
            raise InvalidInputError(
                f"request_retention must be in (0, 1), got {self.request_retention}"
            )
        if len(self.w) != 17:
            raise InvalidInputError(f"FSRS needs 17 weights, got {len(self.w)}")
        if self.maximum_interval <= 0 or self.stability_floor <= 0:
            raise InvalidInputError("maximum_interval and stability_floor must be positive")


DEFAULT_PARAMETERS = FSRSParameters()


@dataclass(frozen=True)
class MemoryCard:
    """
    Forgetting-curve state of one (learner, item) pair.

    Attributes:
        difficulty: 1-10
        stability: Days; > 0 once reviewed (0 for a never-seen card)
        retrievability: Recall probability as of ``last_review``
            (1.0 right after a review, 0.0 for a never-seen card)
        last_review: Timestamp of the most recent review
        reps: Total reviews
        lapses: Failed reviews after the first one
        state: Lifecycle state
    """

    difficulty: float = 5.0
    stability: float = 0.0
    retrievability: float = 0.0
    last_review: datetime | None = None
    reps: int = 0
    lapses: int = 0
    state: CardState = CardState.NEW

    @property
    def is_new(self) -> bool:
        return self.state == CardState.NEW or self.last_review is None


@dataclass(frozen=True)
class ScheduleResult:
    """Outcome of one review."""

    card: MemoryCard
    next_review: datetime
    interval_days: float
    retrievability_at_review: float  # R just before the update


def create_new_card() -> MemoryCard:
    """Card for an item the learner has never seen."""
    return MemoryCard()


# =============================================================================
# Forgetting curve
# =============================================================================


def elapsed_days(since: datetime, now: datetime) -> float:
    """Fractional days between two timestamps (never negative)."""
    return max(0.0, (now - since).total_seconds() / SECONDS_PER_DAY)


def retrievability_after(elapsed: float, stability: float, params: FSRSParameters = DEFAULT_PARAMETERS) -> float:
    """R = exp(-t / S); equals 1 at t = 0."""
    if elapsed <= 0:
        return 1.0
    return math.exp(-elapsed / max(stability, params.stability_floor))


def retrievability(card: MemoryCard, now: datetime, params: FSRSParameters = DEFAULT_PARAMETERS) -> float:
    """Current recall probability; 0 for a card that was never reviewed."""
    validate_card(card)
    if card.last_review is None:
        return 0.0
    return retrievability_after(elapsed_days(card.last_review, now), card.stability, params)


def next_interval(stability: float, params: FSRSParameters = DEFAULT_PARAMETERS) -> float:
    """
    Days until recall probability decays to ``request_retention``.

    Inverts R = exp(-t / S): t = -S * ln(R_target), capped at
    ``maximum_interval``. Not rounded, so R at the returned interval equals
    the target retention.
    """
    s = max(stability, params.stability_floor)
    interval = -s * math.log(params.request_retention)
    return min(params.maximum_interval, interval)


def next_review_date(card: MemoryCard, params: FSRSParameters = DEFAULT_PARAMETERS) -> datetime | None:
    """When the card is next due; None for a never-reviewed card."""
    if card.last_review is None:
        return None
    return card.last_review + timedelta(days=next_interval(card.stability, params))


def is_due(card: MemoryCard, now: datetime, params: FSRSParameters = DEFAULT_PARAMETERS) -> bool:
    due = next_review_date(card, params)
    return due is not None and now >= due


def fsrs_priority(card: MemoryCard, now: datetime, params: FSRSParameters = DEFAULT_PARAMETERS) -> float:
    """
    Review priority in [0, 1].

    Low retrievability and low stability both raise priority; a
    never-reviewed card scores 1.0.
    """
    r = retrievability(card, now, params)
    urgency = 1.0 - r
    stability_factor = 1.0 / (1.0 + max(card.stability, 0.0) / 30.0)
    return min(1.0, max(0.0, urgency * 0.7 + stability_factor * 0.3))


# =============================================================================
# Scheduling update
# =============================================================================


def schedule(
    card: MemoryCard,
    rating: int,
    now: datetime,
    params: FSRSParameters = DEFAULT_PARAMETERS,
) -> ScheduleResult:
    """
    Apply one review and compute the next review date.

    Args:
        card: Current card state
        rating: 1=Again, 2=Hard, 3=Good, 4=Easy
        now: Review timestamp
        params: Scheduler configuration

    Returns:
        ScheduleResult with the updated card and next review date
    """
    rating = _validate_rating(rating)
    validate_card(card)

    if card.is_new:
        r_before = 1.0
        new_card = replace(
            card,
            stability=_initial_stability(rating, params),
            difficulty=_initial_difficulty(rating, params),
            state=CardState.LEARNING if rating == Rating.AGAIN else CardState.REVIEW,
        )
    else:
        r_before = retrievability(card, now, params)
        difficulty = _next_difficulty(card.difficulty, rating, params)

        if rating == Rating.AGAIN:
            new_card = replace(
                card,
                difficulty=difficulty,
                stability=_next_forget_stability(card.difficulty, card.stability, params),
                lapses=card.lapses + 1,
                state=CardState.RELEARNING,
            )
        else:
            new_card = replace(
                card,
                difficulty=difficulty,
                stability=_next_recall_stability(
                    card.difficulty, card.stability, r_before, rating, params
                ),
                state=CardState.REVIEW,
            )

    new_card = replace(
        new_card,
        retrievability=1.0,
        last_review=now,
        reps=card.reps + 1,
    )

    interval = next_interval(new_card.stability, params)
    logger.debug(
        f"FSRS review rating={int(rating)} R={r_before:.3f} "
        f"S {card.stability:.2f}->{new_card.stability:.2f} "
        f"D {card.difficulty:.2f}->{new_card.difficulty:.2f} interval={interval:.2f}d"
    )

    return ScheduleResult(
        card=new_card,
        next_review=now + timedelta(days=interval),
        interval_days=interval,
        retrievability_at_review=r_before,
    )


def _validate_rating(rating: int) -> Rating:
    if isinstance(rating, bool):
        raise InvalidInputError(f"rating must be 1-4, got {rating!r}")
    try:
        return Rating(rating)
    except ValueError:
        raise InvalidInputError(f"rating must be 1-4, got {rating!r}") from None


def _clamp_difficulty(d: float) -> float:
    return min(MAX_DIFFICULTY, max(MIN_DIFFICULTY, d))


def _initial_stability(rating: Rating, params: FSRSParameters) -> float:
    return max(params.stability_floor, params.w[rating - 1])


def _initial_difficulty(rating: Rating, params: FSRSParameters) -> float:
    return _clamp_difficulty(params.w[4] - (rating - 3) * params.w[5])


def _next_difficulty(d: float, rating: Rating, params: FSRSParameters) -> float:
    """Step by rating, then revert slightly toward the initial "Good" difficulty."""
    stepped = d - params.w[6] * (rating - 3)
    target = _initial_difficulty(Rating.GOOD, params)
    reverted = params.w[7] * target + (1 - params.w[7]) * stepped
    return _clamp_difficulty(reverted)


def _next_recall_stability(
    d: float, s: float, r: float, rating: Rating, params: FSRSParameters
) -> float:
    """Stability after a successful review; never below the prior value."""
    w = params.w
    s = max(s, params.stability_floor)
    hard_penalty = w[15] if rating == Rating.HARD else 1.0
    easy_bonus = w[16] if rating == Rating.EASY else 1.0

    growth = (
        math.exp(w[8])
        * (11 - d)
        * math.pow(s, -w[9])
        * (math.exp((1 - r) * w[10]) - 1)
        * hard_penalty
        * easy_bonus
    )
    return s * (1 + max(0.0, growth))


def _next_forget_stability(d: float, s: float, params: FSRSParameters) -> float:
    """Stability after a lapse; never above the prior value."""
    w = params.w
    new_s = w[11] * math.pow(d, -w[12]) * (math.pow(s + 1, w[13]) - 1)
    new_s = max(params.stability_floor, new_s)
    return min(max(s, params.stability_floor), new_s)


def validate_card(card: MemoryCard) -> MemoryCard:
    """Reject cards whose numeric fields are out of range."""
    require_range("difficulty", card.difficulty, MIN_DIFFICULTY, MAX_DIFFICULTY)
    require_range("retrievability", card.retrievability, 0.0, 1.0)
    if card.stability < 0 or not math.isfinite(card.stability):
        raise InvalidInputError(f"stability must be >= 0, got {card.stability}")
    if card.reps < 0 or card.lapses < 0:
        raise InvalidInputError("reps and lapses must be >= 0")
    return card
