"""
Priority Engine.

Ranks learnable items by how much learning value a review buys right now.

    FRE      = w_F·frequency + w_R·relational_density + w_E·contextual_contribution
    cost     = f(IRT difficulty, ability gap, component vector)
    base     = FRE / max(min_cost, cost - transfer_bonus + prerequisite_penalty)
    priority = base + urgency_weight · urgency

Urgency tiers (from the memory card):
- due / overdue:  (1 - R) / (1 - target), >= 1, capped at max_urgency
- never seen:     new_item_urgency (0.5)
- not yet due:    not_due_scale · (1 - R) / (1 - target), < not_due_scale

Prerequisite penalty applies while a lower layer of the component chain
(PHON -> MORPH -> LEX -> SYNT -> PRAG) is not yet automated, or when the item's
own prerequisites are unmet. Bottleneck analysis adds an urgency boost for
the root-cause component and extra penalty for the components above it.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from cadence.bottleneck.detector import BottleneckAnalysis
from cadence.cache import BoundedCache
from cadence.exceptions import InvalidInputError, require_finite, require_range
from cadence.memory.fsrs import (
    DEFAULT_PARAMETERS,
    FSRSParameters,
    MemoryCard,
    fsrs_priority,
    is_due,
    retrievability,
    validate_card,
)
from cadence.memory.mastery import MasteryState
from cadence.priority.load import cognitive_load
from cadence.priority.vectors import ComponentVector, component_cost_modifier
from cadence.types import ComponentType, ObjectType, component_of, downstream_components, upstream_components

# =============================================================================
# Weights
# =============================================================================


@dataclass(frozen=True)
class PriorityWeights:
    f: float = 0.4  # Frequency
    r: float = 0.3  # Relational density
    e: float = 0.3  # Contextual contribution

    def __post_init__(self):
        for name in ("f", "r", "e"):
            value = getattr(self, name)
            require_finite(name, value)
            if value < 0:
                raise InvalidInputError(f"priority weight {name} must be >= 0, got {value}")
        if self.f + self.r + self.e <= 0:
            raise InvalidInputError("priority weights must not all be zero")


DEFAULT_WEIGHTS = PriorityWeights()

LEVEL_WEIGHTS: dict[str, PriorityWeights] = {
    "beginner": PriorityWeights(f=0.5, r=0.25, e=0.25),
    "intermediate": PriorityWeights(f=0.4, r=0.3, e=0.3),
    "advanced": PriorityWeights(f=0.3, r=0.3, e=0.4),
}


def infer_level(theta: float) -> str:
    require_finite("theta", theta)
    if theta < -1:
        return "beginner"
    if theta < 1:
        return "intermediate"
    return "advanced"


def weights_for_level(level: str) -> PriorityWeights:
    return LEVEL_WEIGHTS.get(level, DEFAULT_WEIGHTS)


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class PriorityConfig:
    prerequisite_penalty: float = 0.5
    transfer_scale: float = 0.2
    urgency_weight: float = 1.0
    max_urgency: float = 3.0
    new_item_urgency: float = 0.5
    not_due_scale: float = 0.1
    min_cost: float = 0.1
    fsrs: FSRSParameters = DEFAULT_PARAMETERS


DEFAULT_PRIORITY_CONFIG = PriorityConfig()


@dataclass(frozen=True)
class LearningItem:
    """
    Item metadata needed for ranking.

    FRE inputs are normalized to [0, 1]; ``irt_difficulty`` is b on the θ scale.
    """

    id: str
    object_type: ObjectType
    frequency: float
    relational_density: float
    contextual_contribution: float
    irt_difficulty: float = 0.0
    l1_transfer_coefficient: float = 0.0
    vector: ComponentVector | None = None
    prerequisites_satisfied: bool = True

    def __post_init__(self):
        require_range("frequency", self.frequency, 0.0, 1.0)
        require_range("relational_density", self.relational_density, 0.0, 1.0)
        require_range("contextual_contribution", self.contextual_contribution, 0.0, 1.0)
        require_range("l1_transfer_coefficient", self.l1_transfer_coefficient, 0.0, 1.0)
        require_finite("irt_difficulty", self.irt_difficulty)

    @property
    def component(self) -> ComponentType:
        return component_of(self.object_type)


@dataclass(frozen=True)
class PriorityAdjustments:
    """Bottleneck feedback: boost the root cause, hold back what depends on it."""

    root_component: ComponentType | None = None
    urgency_boost: float = 0.0
    downstream: frozenset[ComponentType] = frozenset()
    downstream_penalty: float = 0.0

    def urgency_for(self, component: ComponentType) -> float:
        return self.urgency_boost if component == self.root_component else 0.0

    def penalty_for(self, component: ComponentType) -> float:
        return self.downstream_penalty if component in self.downstream else 0.0


NO_ADJUSTMENTS = PriorityAdjustments()


@dataclass(frozen=True)
class UserState:
    """
    Learner-level inputs to ranking.

    ``automated_components=None`` means no automatization data is available,
    in which case the component chain adds no penalty.
    """

    theta: float = 0.0
    weights: PriorityWeights | None = None
    automated_components: frozenset[ComponentType] | None = None
    adjustments: PriorityAdjustments = NO_ADJUSTMENTS

    def __post_init__(self):
        require_finite("theta", self.theta)

    def effective_weights(self) -> PriorityWeights:
        return self.weights or weights_for_level(infer_level(self.theta))


def adjustments_from_bottleneck(
    analysis: BottleneckAnalysis,
    root_urgency_boost: float = 0.5,
    downstream_penalty: float = 0.25,
) -> PriorityAdjustments:
    """Translate a bottleneck analysis into priority adjustments, scaled by confidence."""
    root = analysis.primary_bottleneck
    if not analysis.sufficient_data or root is None:
        return NO_ADJUSTMENTS

    if analysis.cascade is not None and analysis.cascade.affected_components:
        affected = frozenset(analysis.cascade.affected_components)
    else:
        affected = frozenset(downstream_components(root))

    return PriorityAdjustments(
        root_component=root,
        urgency_boost=root_urgency_boost * analysis.confidence,
        downstream=affected,
        downstream_penalty=downstream_penalty * analysis.confidence,
    )


# =============================================================================
# Outputs
# =============================================================================


@dataclass(frozen=True)
class CostFactors:
    base_difficulty: float
    exposure_need: float
    component_modifier: float | None = None  # None without a component vector

    @property
    def cost(self) -> float:
        if self.component_modifier is None:
            return self.base_difficulty + self.exposure_need
        return self.component_modifier * (0.5 + self.base_difficulty) + self.exposure_need


@dataclass(frozen=True)
class PriorityRecord:
    item_id: str
    fre: float
    cost: float
    transfer_bonus: float
    prerequisite_penalty: float
    base_priority: float
    urgency: float
    priority: float


@dataclass(frozen=True)
class QueueItem:
    item_id: str
    object_type: ObjectType
    component: ComponentType
    priority: float
    urgency: float
    mastery_stage: int
    fsrs_priority: float
    cognitive_load: float
    is_new: bool
    record: PriorityRecord


class PriorityCache(BoundedCache[PriorityRecord]):
    """Per-pass memo of priority records keyed by the full request signature."""

    def record_for(
        self,
        item: LearningItem,
        user_state: UserState,
        card: MemoryCard | None,
        now: datetime | None,
        config: PriorityConfig,
    ) -> PriorityRecord:
        return self.get_or_compute(
            (item, user_state, card, now, config),
            lambda: compute_priority_record(item, user_state, card, now, config),
        )


# =============================================================================
# Computation
# =============================================================================


def compute_fre(item: LearningItem, weights: PriorityWeights = DEFAULT_WEIGHTS) -> float:
    return (
        weights.f * item.frequency
        + weights.r * item.relational_density
        + weights.e * item.contextual_contribution
    )


def estimate_cost_factors(item: LearningItem, user_state: UserState) -> CostFactors:
    base_difficulty = min(1.0, max(0.0, (item.irt_difficulty + 3) / 6))
    ability_gap = max(0.0, item.irt_difficulty - user_state.theta)
    exposure_need = min(1.0, ability_gap / 3)
    modifier = component_cost_modifier(item.vector) if item.vector is not None else None
    return CostFactors(
        base_difficulty=base_difficulty,
        exposure_need=exposure_need,
        component_modifier=modifier,
    )


def prerequisite_penalty(
    item: LearningItem, user_state: UserState, config: PriorityConfig = DEFAULT_PRIORITY_CONFIG
) -> float:
    penalty = 0.0
    chain_unmet = user_state.automated_components is not None and any(
        upstream not in user_state.automated_components
        for upstream in upstream_components(item.component)
    )
    if chain_unmet or not item.prerequisites_satisfied:
        penalty += config.prerequisite_penalty
    return penalty + user_state.adjustments.penalty_for(item.component)


def compute_urgency(
    card: MemoryCard | None,
    now: datetime | None,
    config: PriorityConfig = DEFAULT_PRIORITY_CONFIG,
) -> float:
    """Review urgency >= 0 (see tiers in the module docstring)."""
    if card is None or card.is_new:
        return config.new_item_urgency
    if now is None:
        raise InvalidInputError("now is required to compute urgency for a reviewed card")

    target = config.fsrs.request_retention
    decay = (1.0 - retrievability(card, now, config.fsrs)) / (1.0 - target)
    if is_due(card, now, config.fsrs):
        return min(config.max_urgency, max(1.0, decay))
    return config.not_due_scale * min(decay, 1.0)


def compute_priority_record(
    item: LearningItem,
    user_state: UserState,
    card: MemoryCard | None = None,
    now: datetime | None = None,
    config: PriorityConfig = DEFAULT_PRIORITY_CONFIG,
) -> PriorityRecord:
    if card is not None:
        validate_card(card)
    fre = compute_fre(item, user_state.effective_weights())
    cost = estimate_cost_factors(item, user_state).cost
    transfer = config.transfer_scale * item.l1_transfer_coefficient
    penalty = prerequisite_penalty(item, user_state, config)

    effective_cost = max(config.min_cost, cost - transfer + penalty)
    base = fre / effective_cost

    urgency = compute_urgency(card, now, config) + user_state.adjustments.urgency_for(item.component)
    priority = base + config.urgency_weight * urgency
    if not math.isfinite(priority):
        raise InvalidInputError(f"Non-finite priority for item {item.id}")

    return PriorityRecord(
        item_id=item.id,
        fre=fre,
        cost=cost,
        transfer_bonus=transfer,
        prerequisite_penalty=penalty,
        base_priority=base,
        urgency=urgency,
        priority=priority,
    )


def compute_priority(
    item: LearningItem,
    user_state: UserState,
    card: MemoryCard | None = None,
    now: datetime | None = None,
    config: PriorityConfig = DEFAULT_PRIORITY_CONFIG,
) -> float:
    return compute_priority_record(item, user_state, card, now, config).priority


def build_learning_queue(
    items: Iterable[LearningItem],
    user_state: UserState,
    mastery_map: Mapping[str, MasteryState],
    now: datetime,
    config: PriorityConfig = DEFAULT_PRIORITY_CONFIG,
    cache: PriorityCache | None = None,
) -> list[QueueItem]:
    """
    Rank every item, highest priority first.

    Ties are broken by item id, so identical input always yields identical
    order.
    """
    queue = []
    for item in items:
        mastery = mastery_map.get(item.id)
        card = mastery.card if mastery is not None else None
        stage = mastery.stage if mastery is not None else 0

        if cache is not None:
            record = cache.record_for(item, user_state, card, now, config)
        else:
            record = compute_priority_record(item, user_state, card, now, config)

        is_new = card is None or card.is_new
        queue.append(
            QueueItem(
                item_id=item.id,
                object_type=item.object_type,
                component=item.component,
                priority=record.priority,
                urgency=record.urgency,
                mastery_stage=stage,
                fsrs_priority=1.0 if is_new else fsrs_priority(card, now, config.fsrs),
                cognitive_load=cognitive_load(item.object_type, stage),
                is_new=is_new,
                record=record,
            )
        )

    queue.sort(key=lambda q: (-q.priority, q.item_id))
    logger.debug(f"Built learning queue of {len(queue)} items")
    return queue


def select_session_items(
    queue: Sequence[QueueItem],
    size: int,
    new_item_ratio: float = 0.3,
) -> list[QueueItem]:
    """
    Pick up to ``size`` items, reserving at most ``new_item_ratio`` for new ones.

    Due reviews fill the remaining slots first; any slots still empty are
    backfilled from the rest of the queue in rank order.
    """
    if size < 0:
        raise InvalidInputError(f"size must be >= 0, got {size}")
    require_range("new_item_ratio", new_item_ratio, 0.0, 1.0)

    max_new = math.floor(size * new_item_ratio)
    max_due = size - max_new

    due = [q for q in queue if not q.is_new and q.urgency >= 1.0][:max_due]
    new = [q for q in queue if q.is_new][:max_new]
    chosen = {q.item_id for q in due} | {q.item_id for q in new}

    selected = due + new
    for q in queue:
        if len(selected) >= size:
            break
        if q.item_id not in chosen:
            selected.append(q)
            chosen.add(q.item_id)

    selected.sort(key=lambda q: (-q.priority, q.item_id))
    return selected[:size]
