"""
Session composition.

Selects, orders and paces one practice session under a cognitive-load
budget using one of the interleaving strategies.
"""
from cadence.session.composer import (
    DEFAULT_SESSION_ENGINE_CONFIG,
    ExcludedItem,
    ExclusionReason,
    LearnerSessionState,
    SessionCandidate,
    SessionComposer,
    SessionConfig,
    SessionEfficiency,
    SessionEngineConfig,
    SessionItemPlacement,
    SessionPlan,
    SessionRequest,
)
from cadence.session.strategies import (
    InterleavingStrategy,
    ScoredItem,
    estimate_level,
    order_items,
    recommended_strategy,
    strategy_descriptions,
)

__all__ = [
    "DEFAULT_SESSION_ENGINE_CONFIG",
    "ExcludedItem",
    "ExclusionReason",
    "LearnerSessionState",
    "SessionCandidate",
    "SessionComposer",
    "SessionConfig",
    "SessionEfficiency",
    "SessionEngineConfig",
    "SessionItemPlacement",
    "SessionPlan",
    "SessionRequest",
    "InterleavingStrategy",
    "ScoredItem",
    "estimate_level",
    "order_items",
    "recommended_strategy",
    "strategy_descriptions",
]
