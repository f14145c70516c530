"""
Priority engine.

Ranks learnable items by intrinsic value (FRE) over learning cost plus
review urgency, and estimates per-item cognitive load.
"""
from cadence.priority.engine import (
    DEFAULT_PRIORITY_CONFIG,
    LEVEL_WEIGHTS,
    NO_ADJUSTMENTS,
    CostFactors,
    LearningItem,
    PriorityAdjustments,
    PriorityCache,
    PriorityConfig,
    PriorityRecord,
    PriorityWeights,
    QueueItem,
    UserState,
    adjustments_from_bottleneck,
    build_learning_queue,
    compute_fre,
    compute_priority,
    compute_priority_record,
    compute_urgency,
    estimate_cost_factors,
    infer_level,
    prerequisite_penalty,
    select_session_items,
    weights_for_level,
)
from cadence.priority.load import cognitive_load, relatedness, worst_case_load
from cadence.priority.vectors import (
    ComponentVector,
    LexVector,
    MorphVector,
    PhonVector,
    PragVector,
    SyntVector,
    component_cost_modifier,
    vector_from_dict,
)

__all__ = [
    "DEFAULT_PRIORITY_CONFIG",
    "LEVEL_WEIGHTS",
    "NO_ADJUSTMENTS",
    "CostFactors",
    "LearningItem",
    "PriorityAdjustments",
    "PriorityCache",
    "PriorityConfig",
    "PriorityRecord",
    "PriorityWeights",
    "QueueItem",
    "UserState",
    "adjustments_from_bottleneck",
    "build_learning_queue",
    "compute_fre",
    "compute_priority",
    "compute_priority_record",
    "compute_urgency",
    "estimate_cost_factors",
    "infer_level",
    "prerequisite_penalty",
    "select_session_items",
    "weights_for_level",
    # Load
    "cognitive_load",
    "relatedness",
    "worst_case_load",
    # Component vectors
    "ComponentVector",
    "LexVector",
    "MorphVector",
    "PhonVector",
    "PragVector",
    "SyntVector",
    "component_cost_modifier",
    "vector_from_dict",
]
