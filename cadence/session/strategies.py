"""
Interleaving Strategies.

Ordering rules for the items admitted to a session:

- pure_blocking:     same type together (AAA BBB CCC)
- pure_interleaving: never repeat the previous type unless forced (ABC ABC)
- hybrid:            block the first half, interleave the second
- related:           prefer moderately related neighbours (desirable difficulty)
- adaptive:          pick one of the above from proficiency and fatigue

Research basis: Rohrer & Taylor (2007) interleaved practice; Bjork (1994)
desirable difficulties.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from cadence.exceptions import InvalidInputError, require_finite
from cadence.priority.load import relatedness
from cadence.types import ObjectType


class InterleavingStrategy(str, Enum):
    PURE_BLOCKING = "pure_blocking"
    PURE_INTERLEAVING = "pure_interleaving"
    HYBRID = "hybrid"
    RELATED = "related"
    ADAPTIVE = "adaptive"


STRATEGY_DESCRIPTIONS: dict[InterleavingStrategy, str] = {
    InterleavingStrategy.PURE_BLOCKING: "Same type items together (AAA BBB CCC)",
    InterleavingStrategy.PURE_INTERLEAVING: "Maximum mixing (ABC ABC ABC)",
    InterleavingStrategy.HYBRID: "Initial blocking, then interleaving",
    InterleavingStrategy.RELATED: "Interleave related items",
    InterleavingStrategy.ADAPTIVE: "Adjust based on learner state",
}

CEFR_STRATEGIES: dict[str, InterleavingStrategy] = {
    "A1": InterleavingStrategy.PURE_BLOCKING,
    "A2": InterleavingStrategy.HYBRID,
    "B1": InterleavingStrategy.HYBRID,
    "B2": InterleavingStrategy.RELATED,
    "C1": InterleavingStrategy.PURE_INTERLEAVING,
    "C2": InterleavingStrategy.PURE_INTERLEAVING,
}


def strategy_descriptions() -> list[tuple[InterleavingStrategy, str]]:
    return list(STRATEGY_DESCRIPTIONS.items())


def recommended_strategy(cefr_level: str) -> InterleavingStrategy:
    """CEFR-level default; unknown levels fall back to adaptive."""
    return CEFR_STRATEGIES.get(cefr_level.upper(), InterleavingStrategy.ADAPTIVE)


def estimate_level(average_theta: float) -> str:
    """Map mean ability onto a CEFR band."""
    require_finite("average_theta", average_theta)
    if average_theta < -2:
        return "A1"
    if average_theta < -1:
        return "A2"
    if average_theta < 0:
        return "B1"
    if average_theta < 1:
        return "B2"
    if average_theta < 2:
        return "C1"
    return "C2"


@dataclass(frozen=True)
class ScoredItem:
    """An admitted candidate with the scores ordering decisions use."""

    item_id: str
    object_type: ObjectType
    fsrs_priority: float
    combined_score: float
    mastery_stage: int = 0


def _by_score(items: Sequence[ScoredItem]) -> list[ScoredItem]:
    return sorted(items, key=lambda s: (-s.combined_score, s.item_id))


# =============================================================================
# Orderings
# =============================================================================


def order_blocking(items: Sequence[ScoredItem]) -> list[ScoredItem]:
    """Group by type (groups led by their best item), best first within a group."""
    groups: dict[ObjectType, list[ScoredItem]] = {}
    for scored in _by_score(items):
        groups.setdefault(scored.object_type, []).append(scored)
    return [scored for group in groups.values() for scored in group]


def order_interleaving(
    items: Sequence[ScoredItem], previous_type: ObjectType | None = None
) -> list[ScoredItem]:
    """
    Best-scoring item whose type differs from the last one placed.

    Greedy, one step of lookahead: when one type dominates the pool, an early
    choice can use up the other types and force repeats at the tail (scores
    A10 C9 B8 A7 A6 give A C B A A, although A B A C A exists).
    """
    remaining = _by_score(items)
    result: list[ScoredItem] = []
    last_type = previous_type

    while remaining:
        next_item = next((s for s in remaining if s.object_type != last_type), remaining[0])
        remaining.remove(next_item)
        result.append(next_item)
        last_type = next_item.object_type

    return result


def order_hybrid(items: Sequence[ScoredItem]) -> list[ScoredItem]:
    ranked = _by_score(items)
    half = len(ranked) // 2
    blocked = order_blocking(ranked[:half])
    last_type = blocked[-1].object_type if blocked else None
    return blocked + order_interleaving(ranked[half:], previous_type=last_type)


def order_related(items: Sequence[ScoredItem]) -> list[ScoredItem]:
    """
    Greedy walk from the best item, maximizing

        (1 - |relatedness - 0.5| · 2) + 0.5 · combined_score

    against the previously placed item.
    """
    remaining = _by_score(items)
    if not remaining:
        return []

    result = [remaining.pop(0)]
    while remaining:
        last = result[-1]

        def desirability(s: ScoredItem) -> float:
            moderate = 1 - abs(relatedness(last.object_type, s.object_type) - 0.5) * 2
            return moderate + s.combined_score * 0.5

        best = max(remaining, key=lambda s: (desirability(s), -remaining.index(s)))
        remaining.remove(best)
        result.append(best)

    return result


def order_items(items: Sequence[ScoredItem], strategy: InterleavingStrategy) -> list[ScoredItem]:
    """Apply a concrete strategy; adaptive must be resolved by the caller first."""
    if strategy == InterleavingStrategy.PURE_BLOCKING:
        return order_blocking(items)
    if strategy == InterleavingStrategy.PURE_INTERLEAVING:
        return order_interleaving(items)
    if strategy == InterleavingStrategy.HYBRID:
        return order_hybrid(items)
    if strategy == InterleavingStrategy.RELATED:
        return order_related(items)
    raise InvalidInputError(f"Strategy {strategy!r} must be resolved to a concrete ordering")
