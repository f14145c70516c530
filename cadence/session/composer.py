"""
Session Composer.

Builds one practice session from ranked candidates:

1. Score:  combined = 0.4·fsrs_priority + 0.4·priority - 0.2·(load / 10)
2. Filter: admit by descending score until max_items or the load budget
           (max_cognitive_load × max_items) is reached; every rejected item
           gets a reason
3. Order:  apply the interleaving strategy (explicit > adaptive by fatigue >
           level-mapped default)
4. Breaks: whenever cumulative load since the last break exceeds
           3 × max_cognitive_load, plus at fixed item-count intervals
5. Predict learning value, retention probability and average load

Admission charges each item its worst-case load (including the
consecutive-same-type penalty), so the loads recomputed in final order can
never exceed the budget.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from loguru import logger

from cadence.exceptions import InvalidInputError, require_finite, require_range
from cadence.memory.fsrs import DEFAULT_PARAMETERS, FSRSParameters, MemoryCard, fsrs_priority
from cadence.priority.load import cognitive_load, worst_case_load
from cadence.session.strategies import (
    CEFR_STRATEGIES,
    InterleavingStrategy,
    ScoredItem,
    estimate_level,
    order_items,
)
from cadence.types import ObjectType

# =============================================================================
# Configuration and inputs
# =============================================================================


@dataclass(frozen=True)
class SessionEngineConfig:
    max_cognitive_load: float = 7.0
    break_interval_minutes: float = 25.0
    default_strategy: InterleavingStrategy = InterleavingStrategy.ADAPTIVE
    level_strategy_map: Mapping[str, InterleavingStrategy] = field(
        default_factory=lambda: dict(CEFR_STRATEGIES)
    )
    target_retention: float = 0.9
    recently_seen_threshold: float = 0.1
    fatigue_blocking_threshold: float = 0.7
    fsrs: FSRSParameters = DEFAULT_PARAMETERS

    def __post_init__(self):
        if self.max_cognitive_load <= 0:
            raise InvalidInputError(f"max_cognitive_load must be > 0, got {self.max_cognitive_load}")
        require_range("target_retention", self.target_retention, 0.0, 1.0)
        if any(s == InterleavingStrategy.ADAPTIVE for s in self.level_strategy_map.values()):
            raise InvalidInputError("level_strategy_map must map to concrete strategies")


DEFAULT_SESSION_ENGINE_CONFIG = SessionEngineConfig()


@dataclass(frozen=True)
class SessionCandidate:
    item_id: str
    object_type: ObjectType
    priority: float
    card: MemoryCard | None = None
    mastery_stage: int = 0
    prerequisites_met: bool = True


@dataclass(frozen=True)
class LearnerSessionState:
    thetas: Mapping[str, float] = field(default_factory=dict)
    fatigue: float = 0.0
    session_minutes: float = 0.0
    cefr_level: str | None = None

    def __post_init__(self):
        require_range("fatigue", self.fatigue, 0.0, 1.0)
        require_finite("session_minutes", self.session_minutes)
        if self.session_minutes < 0:
            raise InvalidInputError(f"session_minutes must be >= 0, got {self.session_minutes}")
        for name, theta in self.thetas.items():
            require_finite(f"theta[{name}]", theta)

    @property
    def average_theta(self) -> float:
        return sum(self.thetas.values()) / len(self.thetas) if self.thetas else 0.0


@dataclass(frozen=True)
class SessionConfig:
    max_items: int = 20
    duration_minutes: float = 30.0  # Informational; breaks follow learner_state.session_minutes
    now: datetime | None = None  # Defaults to the current time

    def __post_init__(self):
        if self.max_items < 0:
            raise InvalidInputError(f"max_items must be >= 0, got {self.max_items}")


# =============================================================================
# Outputs
# =============================================================================


class ExclusionReason(str, Enum):
    PREREQUISITE_NOT_MET = "prerequisite_not_met"
    RECENTLY_SEEN = "recently_seen"
    LOW_PRIORITY = "low_priority"
    COGNITIVE_OVERLOAD = "cognitive_overload"


@dataclass(frozen=True)
class SessionItemPlacement:
    item_id: str
    position: int
    placement_reason: str
    fsrs_priority: float
    cognitive_load: float
    object_type: ObjectType


@dataclass(frozen=True)
class ExcludedItem:
    item_id: str
    reason: ExclusionReason


@dataclass(frozen=True)
class SessionEfficiency:
    learning_value: float = 0.0
    retention_probability: float = 0.0
    cognitive_load_average: float = 0.0


@dataclass(frozen=True)
class SessionPlan:
    placements: list[SessionItemPlacement]
    applied_strategy: InterleavingStrategy
    recommended_breaks: list[int]
    expected_efficiency: SessionEfficiency
    excluded: list[ExcludedItem] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def total_load(self) -> float:
        return sum(p.cognitive_load for p in self.placements)

    @property
    def item_ids(self) -> list[str]:
        return [p.item_id for p in self.placements]


@dataclass(frozen=True)
class SessionRequest:
    candidates: Sequence[SessionCandidate]
    learner_state: LearnerSessionState
    session_config: SessionConfig
    strategy: InterleavingStrategy | None = None


@dataclass(frozen=True)
class _Scored:
    candidate: SessionCandidate
    item: ScoredItem
    worst_load: float


# =============================================================================
# Composer
# =============================================================================


class SessionComposer:
    """
    Stateless session planner.

    Holds only its immutable configuration; every call is independent.
    """

    def __init__(self, config: SessionEngineConfig = DEFAULT_SESSION_ENGINE_CONFIG):
        self.config = config

    def process(
        self,
        candidates: Sequence[SessionCandidate],
        learner_state: LearnerSessionState,
        session_config: SessionConfig,
        strategy: InterleavingStrategy | None = None,
    ) -> SessionPlan:
        """
        Compose a session plan.

        Args:
            candidates: Ranked (or unranked) candidate items
            learner_state: Abilities, fatigue, elapsed minutes
            session_config: Item limit and clock
            strategy: Explicit ordering strategy (overrides adaptive choice)

        Returns:
            SessionPlan; empty with zero efficiency when nothing is admitted
        """
        applied = self.resolve_strategy(learner_state, strategy)
        now = session_config.now or _current_time(candidates)

        scored = [self._score(c, now) for c in candidates]
        admitted, excluded = self._filter(scored, session_config.max_items)

        if not admitted:
            return SessionPlan(
                placements=[],
                applied_strategy=applied,
                recommended_breaks=[],
                expected_efficiency=SessionEfficiency(),
                excluded=excluded,
                confidence=self._confidence(candidates, learner_state),
            )

        by_id = {s.item.item_id: s for s in admitted}
        ordered = order_items([s.item for s in admitted], applied)
        placements = self._place([by_id[item.item_id] for item in ordered], applied)

        budget = self.config.max_cognitive_load * session_config.max_items
        total = sum(p.cognitive_load for p in placements)

        plan = SessionPlan(
            placements=placements,
            applied_strategy=applied,
            recommended_breaks=self._breaks(placements, learner_state),
            expected_efficiency=self._efficiency(placements, learner_state),
            excluded=excluded,
            confidence=self._confidence(candidates, learner_state),
        )
        logger.debug(
            f"Session plan: {len(placements)} items, strategy={applied.value}, "
            f"load={total:.1f}/{budget:.1f}, excluded={len(excluded)}"
        )
        return plan

    def process_batch(self, requests: Iterable[SessionRequest]) -> list[SessionPlan]:
        """Plan several independent sessions (e.g. one per learner)."""
        return [
            self.process(r.candidates, r.learner_state, r.session_config, r.strategy)
            for r in requests
        ]

    # -------------------------------------------------------------------------
    # Strategy
    # -------------------------------------------------------------------------

    def resolve_strategy(
        self,
        learner_state: LearnerSessionState,
        strategy: InterleavingStrategy | None = None,
    ) -> InterleavingStrategy:
        """Concrete strategy: explicit > adaptive by fatigue > level-mapped default."""
        requested = strategy or self.config.default_strategy
        if requested != InterleavingStrategy.ADAPTIVE:
            return requested

        if learner_state.fatigue > self.config.fatigue_blocking_threshold:
            return InterleavingStrategy.PURE_BLOCKING

        level = (learner_state.cefr_level or estimate_level(learner_state.average_theta)).upper()
        return self.config.level_strategy_map.get(level, InterleavingStrategy.HYBRID)

    # -------------------------------------------------------------------------
    # Scoring and filtering
    # -------------------------------------------------------------------------

    def _score(self, candidate: SessionCandidate, now: datetime) -> _Scored:
        require_finite(f"priority[{candidate.item_id}]", candidate.priority)
        card = candidate.card
        if card is None or card.is_new:
            fsrs_p = 1.0
        else:
            fsrs_p = fsrs_priority(card, now, self.config.fsrs)

        load = cognitive_load(candidate.object_type, candidate.mastery_stage)
        combined = fsrs_p * 0.4 + candidate.priority * 0.4 - (load / 10) * 0.2

        return _Scored(
            candidate=candidate,
            item=ScoredItem(
                item_id=candidate.item_id,
                object_type=candidate.object_type,
                fsrs_priority=fsrs_p,
                combined_score=combined,
                mastery_stage=candidate.mastery_stage,
            ),
            worst_load=worst_case_load(candidate.object_type, candidate.mastery_stage),
        )

    def _filter(
        self, scored: list[_Scored], max_items: int
    ) -> tuple[list[_Scored], list[ExcludedItem]]:
        budget = self.config.max_cognitive_load * max_items
        admitted: list[_Scored] = []
        excluded: list[ExcludedItem] = []
        total = 0.0

        for s in sorted(scored, key=lambda s: (-s.item.combined_score, s.item.item_id)):
            item_id = s.item.item_id
            if not s.candidate.prerequisites_met:
                excluded.append(ExcludedItem(item_id, ExclusionReason.PREREQUISITE_NOT_MET))
            elif s.item.fsrs_priority < self.config.recently_seen_threshold:
                excluded.append(ExcludedItem(item_id, ExclusionReason.RECENTLY_SEEN))
            elif len(admitted) >= max_items:
                excluded.append(ExcludedItem(item_id, ExclusionReason.LOW_PRIORITY))
            elif total + s.worst_load > budget:
                excluded.append(ExcludedItem(item_id, ExclusionReason.COGNITIVE_OVERLOAD))
            else:
                admitted.append(s)
                total += s.worst_load

        return admitted, excluded

    # -------------------------------------------------------------------------
    # Placement, breaks, efficiency
    # -------------------------------------------------------------------------

    def _place(
        self, ordered: list[_Scored], strategy: InterleavingStrategy
    ) -> list[SessionItemPlacement]:
        placements = []
        previous: ObjectType | None = None
        for position, s in enumerate(ordered):
            load = cognitive_load(s.item.object_type, s.item.mastery_stage, previous)
            placements.append(
                SessionItemPlacement(
                    item_id=s.item.item_id,
                    position=position,
                    placement_reason=_placement_reason(s.item.fsrs_priority, load, position, strategy),
                    fsrs_priority=s.item.fsrs_priority,
                    cognitive_load=load,
                    object_type=s.item.object_type,
                )
            )
            previous = s.item.object_type
        return placements

    def _breaks(
        self, placements: list[SessionItemPlacement], learner_state: LearnerSessionState
    ) -> list[int]:
        breaks = set()
        cumulative = 0.0
        for index, p in enumerate(placements):
            cumulative += p.cognitive_load
            if cumulative > self.config.max_cognitive_load * 3:
                breaks.add(index)
                cumulative = 0.0

        # Pomodoro-style item-count interval
        items_per_break = math.floor(
            self.config.break_interval_minutes * 2 / (learner_state.session_minutes or 1)
        )
        if items_per_break > 0:
            breaks.update(range(items_per_break, len(placements), items_per_break))

        return sorted(breaks)

    def _efficiency(
        self, placements: list[SessionItemPlacement], learner_state: LearnerSessionState
    ) -> SessionEfficiency:
        n = len(placements)
        average_load = sum(p.cognitive_load for p in placements) / n
        learning_value = sum(p.fsrs_priority for p in placements) / n

        load_factor = 1.0 if average_load <= self.config.max_cognitive_load else 0.8
        fatigue_factor = 1 - learner_state.fatigue * 0.3

        return SessionEfficiency(
            learning_value=learning_value,
            retention_probability=self.config.target_retention * load_factor * fatigue_factor,
            cognitive_load_average=average_load,
        )

    def _confidence(
        self, candidates: Sequence[SessionCandidate], learner_state: LearnerSessionState
    ) -> float:
        item_confidence = min(1.0, len(candidates) / 20)
        theta_confidence = 0.9 if learner_state.thetas else 0.6
        return (item_confidence + theta_confidence) / 2


def _placement_reason(
    fsrs_p: float, load: float, position: int, strategy: InterleavingStrategy
) -> str:
    if fsrs_p > 0.7:
        return "High FSRS priority - due for review"
    if load < 3:
        return "Low cognitive load - good for warm-up or fatigue recovery"
    if position < 3:
        return "High combined score - optimal for session start"
    return f"{strategy.value} strategy placement"


def _current_time(candidates: Sequence[SessionCandidate]) -> datetime:
    """Now, matching the timezone-awareness of the candidates' review timestamps."""
    for c in candidates:
        if c.card is not None and c.card.last_review is not None:
            if c.card.last_review.tzinfo is None:
                return datetime.now()
            return datetime.now(timezone.utc)
    return datetime.now(timezone.utc)
