"""
Boundary records.

Pydantic models for the records exchanged with persistence, response
evaluation and session execution. They validate ranges on the way in and
convert to the frozen dataclasses the algorithms work on via ``to_domain()``.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from cadence.ability.models import IRTResponse, ItemParameter
from cadence.bottleneck.detector import BottleneckResponse
from cadence.memory.automatization import ResponseObservation
from cadence.memory.fsrs import CardState, MemoryCard
from cadence.memory.mastery import MasteryState, StageResponse
from cadence.priority.engine import (
    DEFAULT_PRIORITY_CONFIG,
    LearningItem,
    PriorityConfig,
    UserState,
    build_learning_queue,
)
from cadence.priority.vectors import vector_from_dict
from cadence.session.composer import (
    LearnerSessionState,
    SessionCandidate,
    SessionConfig,
    SessionRequest,
)
from cadence.session.strategies import InterleavingStrategy
from cadence.types import ComponentType, ObjectType, component_of

# ========================================
# Responses
# ========================================


class ResponseEventRecord(BaseModel):
    """Model for one evaluated attempt."""

    id: str | None = Field(None, description="Response identifier")
    item_id: str = Field(..., description="Item that was answered")
    correct: bool = Field(..., description="Evaluated correctness")
    cue_level: int = Field(0, ge=0, le=3, description="Hint level used (0 = none)")
    response_time_ms: float | None = Field(None, ge=0, description="Latency of the answer")
    timestamp: datetime | None = Field(None, description="When the answer was given")
    component: ComponentType = Field(..., description="Skill component of the item")
    session_id: str = Field("", description="Session the answer belongs to")
    content: str = Field("", description="Item content, used for error patterns")

    def to_domain(self) -> BottleneckResponse:
        return BottleneckResponse(
            id=self.id or self.item_id,
            correct=self.correct,
            component=self.component,
            session_id=self.session_id,
            content=self.content,
            timestamp=self.timestamp,
        )

    def to_irt_response(self) -> IRTResponse:
        return IRTResponse(
            item_id=self.item_id,
            correct=self.correct,
            response_time_ms=self.response_time_ms,
        )

    def to_stage_response(self) -> StageResponse:
        return StageResponse(
            correct=self.correct,
            cue_level=self.cue_level,
            response_time_ms=self.response_time_ms,
        )

    def to_observation(self) -> ResponseObservation | None:
        """Timing observation; None when the latency was not recorded."""
        if self.response_time_ms is None:
            return None
        return ResponseObservation(
            response_time_ms=self.response_time_ms,
            correct=self.correct,
            cue_level=self.cue_level,
            timestamp=self.timestamp.timestamp() if self.timestamp else 0.0,
        )


# ========================================
# Items and cards
# ========================================


class ItemRecord(BaseModel):
    """Model for item metadata as stored alongside the content."""

    id: str = Field(..., description="Item identifier")
    object_type: ObjectType = Field(..., description="Kind of learnable object")
    content: str = Field("", description="Display content (not used for ranking)")
    frequency: float = Field(..., ge=0, le=1, description="Normalized corpus frequency")
    relational_density: float = Field(..., ge=0, le=1, description="Normalized link density")
    contextual_contribution: float = Field(
        ..., ge=0, le=1, description="Normalized contribution to comprehension"
    )
    irt_difficulty: float = Field(0.0, ge=-3, le=3, description="IRT b on the theta scale")
    irt_discrimination: float = Field(1.0, gt=0, description="IRT a")
    irt_guessing: float | None = Field(None, ge=0, le=0.35, description="IRT c (3PL only)")
    l1_transfer_coefficient: float = Field(0.0, ge=0, le=1, description="Positive L1 transfer")
    prerequisites_satisfied: bool = Field(True, description="Item-level prerequisites met")
    vector: dict[str, Any] | None = Field(
        None, description="Component vector fields for this item's component"
    )

    def to_domain(self) -> LearningItem:
        vector = None
        if self.vector is not None:
            vector = vector_from_dict(component_of(self.object_type), self.vector)
        return LearningItem(
            id=self.id,
            object_type=self.object_type,
            frequency=self.frequency,
            relational_density=self.relational_density,
            contextual_contribution=self.contextual_contribution,
            irt_difficulty=self.irt_difficulty,
            l1_transfer_coefficient=self.l1_transfer_coefficient,
            vector=vector,
            prerequisites_satisfied=self.prerequisites_satisfied,
        )

    def to_item_parameter(self) -> ItemParameter:
        return ItemParameter(
            id=self.id,
            a=self.irt_discrimination,
            b=self.irt_difficulty,
            c=self.irt_guessing,
        )


class MemoryCardRecord(BaseModel):
    """Model for a persisted memory card row."""

    difficulty: float = Field(5.0, ge=1, le=10, description="FSRS difficulty")
    stability: float = Field(0.0, ge=0, description="FSRS stability in days")
    retrievability: float = Field(0.0, ge=0, le=1, description="Recall probability at last review")
    last_review: datetime | None = Field(None, description="Most recent review")
    reps: int = Field(0, ge=0, description="Total reviews")
    lapses: int = Field(0, ge=0, description="Failed reviews")
    state: CardState = Field(CardState.NEW, description="Lifecycle state")
    mastery_stage: int = Field(0, ge=0, le=4, description="Mastery stage 0-4")

    def to_domain(self) -> MemoryCard:
        return MemoryCard(
            difficulty=self.difficulty,
            stability=self.stability,
            retrievability=self.retrievability,
            last_review=self.last_review,
            reps=self.reps,
            lapses=self.lapses,
            state=self.state,
        )

    def to_mastery(self) -> MasteryState:
        return MasteryState(stage=self.mastery_stage, card=self.to_domain())

    @classmethod
    def from_domain(cls, card: MemoryCard, mastery_stage: int = 0) -> MemoryCardRecord:
        return cls(
            difficulty=card.difficulty,
            stability=card.stability,
            retrievability=card.retrievability,
            last_review=card.last_review,
            reps=card.reps,
            lapses=card.lapses,
            state=card.state,
            mastery_stage=mastery_stage,
        )


# ========================================
# Learner and session
# ========================================


class LearnerStateRecord(BaseModel):
    """Model for the learner-level state supplied by session execution."""

    learner_id: str = Field("", description="Learner identifier")
    thetas: dict[str, float] = Field(default_factory=dict, description="Ability per dimension")
    fatigue: float = Field(0.0, ge=0, le=1, description="Current fatigue estimate")
    session_minutes: float = Field(0.0, ge=0, description="Minutes elapsed in the session")
    cefr_level: str | None = Field(None, description="Known CEFR level, if any")
    automated_components: list[ComponentType] | None = Field(
        None, description="Components above the automatization threshold"
    )

    def to_domain(self) -> LearnerSessionState:
        return LearnerSessionState(
            thetas=dict(self.thetas),
            fatigue=self.fatigue,
            session_minutes=self.session_minutes,
            cefr_level=self.cefr_level,
        )

    def to_user_state(self) -> UserState:
        automated = None
        if self.automated_components is not None:
            automated = frozenset(self.automated_components)
        return UserState(
            theta=self.to_domain().average_theta,
            automated_components=automated,
        )


class SessionRequestRecord(BaseModel):
    """Model for a request to plan one practice session."""

    items: list[ItemRecord] = Field(default_factory=list, description="Candidate items")
    cards: dict[str, MemoryCardRecord] = Field(
        default_factory=dict, description="Memory cards keyed by item id"
    )
    learner: LearnerStateRecord = Field(default_factory=LearnerStateRecord)
    max_items: int = Field(20, ge=0, description="Items to place")
    duration_minutes: float = Field(30.0, gt=0, description="Planned session length")
    strategy: InterleavingStrategy | None = Field(None, description="Explicit ordering strategy")
    now: datetime | None = Field(None, description="Planning time (defaults to now, matching the cards)")

    def to_domain(self, config: PriorityConfig = DEFAULT_PRIORITY_CONFIG) -> SessionRequest:
        """Rank the items and wrap them as session candidates."""
        now = self.now or _current_time(self.cards.values())
        items = [record.to_domain() for record in self.items]
        mastery_map = {item_id: card.to_mastery() for item_id, card in self.cards.items()}
        queue = build_learning_queue(items, self.learner.to_user_state(), mastery_map, now, config)

        prerequisites = {item.id: item.prerequisites_satisfied for item in items}
        candidates = [
            SessionCandidate(
                item_id=q.item_id,
                object_type=q.object_type,
                priority=q.priority,
                card=mastery_map[q.item_id].card if q.item_id in mastery_map else None,
                mastery_stage=q.mastery_stage,
                prerequisites_met=prerequisites[q.item_id],
            )
            for q in queue
        ]
        return SessionRequest(
            candidates=candidates,
            learner_state=self.learner.to_domain(),
            session_config=SessionConfig(
                max_items=self.max_items,
                duration_minutes=self.duration_minutes,
                now=now,
            ),
            strategy=self.strategy,
        )


def _current_time(cards: Iterable[MemoryCardRecord]) -> datetime:
    """Now, naive when the cards carry naive review timestamps."""
    for card in cards:
        if card.last_review is not None:
            if card.last_review.tzinfo is None:
                return datetime.now()
            break
    return datetime.now(timezone.utc)
