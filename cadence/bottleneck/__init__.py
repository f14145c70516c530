"""
Bottleneck detection.

Finds the skill component whose errors are holding the learner back, and
traces cascades along PHON -> MORPH -> LEX -> SYNT -> PRAG.
"""
from cadence.bottleneck.detector import (
    DEFAULT_BOTTLENECK_CONFIG,
    BottleneckAnalysis,
    BottleneckDetectionConfig,
    BottleneckEvidence,
    BottleneckResponse,
    CascadeAnalysis,
    analyze_bottleneck,
    analyze_cascading_errors,
    analyze_error_patterns,
    calculate_improvement_trend,
    find_cooccurring_errors,
    summarize_bottleneck,
)
from cadence.types import (
    can_cause_errors,
    cascade_position,
    downstream_components,
    upstream_components,
)

__all__ = [
    "DEFAULT_BOTTLENECK_CONFIG",
    "BottleneckAnalysis",
    "BottleneckDetectionConfig",
    "BottleneckEvidence",
    "BottleneckResponse",
    "CascadeAnalysis",
    "analyze_bottleneck",
    "analyze_cascading_errors",
    "analyze_error_patterns",
    "calculate_improvement_trend",
    "find_cooccurring_errors",
    "summarize_bottleneck",
    "can_cause_errors",
    "cascade_position",
    "downstream_components",
    "upstream_components",
]
