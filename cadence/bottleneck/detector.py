"""
Bottleneck Detection.

Identifies which skill component is holding the learner back.

Errors cascade up the component chain:

    PHON -> MORPH -> LEX -> SYNT -> PRAG

A morphology problem (e.g. verb endings) also shows up as lexical and
syntactic errors, so the detector looks for the ROOT cause (the earliest
component with elevated errors whose downstream components are also
elevated) instead of just the highest error rate.
"""

from __future__ import annotations

import re
from collections import Counter, defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from cadence.exceptions import InvalidInputError
from cadence.results import AnalysisResult, Computed, NotEnoughData
from cadence.types import (
    CASCADE_ORDER,
    COMPONENT_NAMES,
    COMPONENT_SHORT,
    ComponentType,
    downstream_components,
)

DOWNSTREAM_FACTOR = 0.67
RECENT_FRACTION = 0.25
MIN_TREND_RESPONSES = 4


@dataclass(frozen=True)
class BottleneckDetectionConfig:
    min_responses: int = 20
    min_responses_per_type: int = 5
    error_rate_threshold: float = 0.3
    cascade_confidence_threshold: float = 0.7
    window_size: int = 200  # Most recent responses considered

    def __post_init__(self):
        if self.min_responses < 1 or self.min_responses_per_type < 1 or self.window_size < 1:
            raise InvalidInputError("bottleneck minimums and window_size must be >= 1")
        if not 0.0 < self.error_rate_threshold <= 1.0:
            raise InvalidInputError(
                f"error_rate_threshold must be in (0, 1], got {self.error_rate_threshold}"
            )


DEFAULT_BOTTLENECK_CONFIG = BottleneckDetectionConfig()


@dataclass(frozen=True)
class BottleneckResponse:
    id: str
    correct: bool
    component: ComponentType
    session_id: str
    content: str = ""
    timestamp: datetime | None = None


@dataclass(frozen=True)
class BottleneckEvidence:
    component: ComponentType
    error_rate: float
    response_count: int
    recent_error_rate: float
    improvement: float  # Positive = improving
    error_patterns: list[str] = field(default_factory=list)
    cooccurring_components: list[ComponentType] = field(default_factory=list)
    flagged: bool = False


@dataclass(frozen=True)
class CascadeAnalysis:
    root_cause: ComponentType
    chain: list[ComponentType]
    confidence: float

    @property
    def affected_components(self) -> list[ComponentType]:
        return self.chain[1:]


@dataclass(frozen=True)
class BottleneckAnalysis:
    primary_bottleneck: ComponentType | None
    confidence: float
    evidence: list[BottleneckEvidence]
    recommendation: str
    cascade: CascadeAnalysis | None = None
    sufficient_data: bool = True

    def evidence_for(self, component: ComponentType) -> BottleneckEvidence | None:
        for ev in self.evidence:
            if ev.component == component:
                return ev
        return None


# =============================================================================
# Entry point
# =============================================================================


def analyze_bottleneck(
    responses: Sequence[BottleneckResponse],
    config: BottleneckDetectionConfig = DEFAULT_BOTTLENECK_CONFIG,
) -> BottleneckAnalysis:
    """
    Detect the component blocking progress.

    Args:
        responses: Recent responses (any order; sorted by timestamp here)
        config: Detection thresholds

    Returns:
        BottleneckAnalysis; ``sufficient_data=False`` with an empty evidence
        list when there are fewer than ``min_responses`` responses
    """
    window = _chronological(responses)[-config.window_size :]

    if len(window) < config.min_responses:
        return BottleneckAnalysis(
            primary_bottleneck=None,
            confidence=0.0,
            evidence=[],
            recommendation=(
                f"Need more data for analysis ({len(window)}/{config.min_responses} responses)"
            ),
            sufficient_data=False,
        )

    evidence = _build_evidence(window, config)
    cascade = analyze_cascading_errors(evidence, config)

    primary = cascade.root_cause if cascade is not None else _highest_error_rate(evidence, config)
    confidence = _confidence(evidence, len(window), cascade)
    recommendation = _recommendation(primary, evidence, cascade)

    if primary is not None:
        logger.debug(
            f"Bottleneck: {primary.value} (confidence={confidence:.2f}, "
            f"cascade={'yes' if cascade else 'no'})"
        )

    return BottleneckAnalysis(
        primary_bottleneck=primary,
        confidence=confidence,
        evidence=sorted(evidence, key=lambda ev: (-ev.error_rate, CASCADE_ORDER.index(ev.component))),
        recommendation=recommendation,
        cascade=cascade,
    )


def _chronological(responses: Sequence[BottleneckResponse]) -> list[BottleneckResponse]:
    # Responses without a timestamp keep their given order, ahead of timed ones
    indexed = list(enumerate(responses))
    indexed.sort(key=lambda pair: (pair[1].timestamp is not None, pair[1].timestamp or datetime.min, pair[0]))
    return [r for _, r in indexed]


# =============================================================================
# Evidence
# =============================================================================


def _build_evidence(
    responses: list[BottleneckResponse], config: BottleneckDetectionConfig
) -> list[BottleneckEvidence]:
    recent_start = int(len(responses) * (1 - RECENT_FRACTION))

    totals: Counter = Counter()
    errors: Counter = Counter()
    recent_totals: Counter = Counter()
    recent_errors: Counter = Counter()
    error_responses: dict[ComponentType, list[BottleneckResponse]] = defaultdict(list)

    for i, r in enumerate(responses):
        totals[r.component] += 1
        if not r.correct:
            errors[r.component] += 1
            error_responses[r.component].append(r)
        if i >= recent_start:
            recent_totals[r.component] += 1
            if not r.correct:
                recent_errors[r.component] += 1

    evidence = []
    for component in CASCADE_ORDER:
        total = totals[component]
        if total < config.min_responses_per_type:
            continue

        error_rate = errors[component] / total
        recent_rate = (
            recent_errors[component] / recent_totals[component] if recent_totals[component] else 0.0
        )
        evidence.append(
            BottleneckEvidence(
                component=component,
                error_rate=error_rate,
                response_count=total,
                recent_error_rate=recent_rate,
                improvement=error_rate - recent_rate,
                error_patterns=analyze_error_patterns(error_responses[component]),
                cooccurring_components=find_cooccurring_errors(component, responses),
                flagged=error_rate >= config.error_rate_threshold,
            )
        )
    return evidence


def _error_pattern(response: BottleneckResponse) -> str:
    content = response.content.lower()
    component = response.component

    if component == ComponentType.PHON:
        if "th" in content:
            return "th-sounds"
        if "r" in content or "l" in content:
            return "r/l distinction"
        if re.search(r"[aeiou]{2}", content):
            return "vowel combinations"
        return "other pronunciation"

    if component == ComponentType.MORPH:
        if content.endswith("ing"):
            return "-ing endings"
        if content.endswith("ed"):
            return "-ed endings"
        if content.endswith("tion"):
            return "-tion nominalizations"
        if content.endswith("s"):
            return "plurals/3rd person"
        return "other word forms"

    if component == ComponentType.LEX:
        if len(content) > 10:
            return "complex vocabulary"
        if len(content) <= 4:
            return "basic vocabulary"
        return "intermediate vocabulary"

    if component == ComponentType.SYNT:
        if "if" in content or "when" in content:
            return "conditional clauses"
        if "who" in content or "which" in content:
            return "relative clauses"
        if "," in content:
            return "compound sentences"
        return "simple sentence patterns"

    if component == ComponentType.PRAG:
        if "please" in content or "could" in content:
            return "politeness markers"
        if "sorry" in content or "excuse" in content:
            return "apology patterns"
        return "discourse markers"

    raise InvalidInputError(f"Unknown component: {component!r}")


def analyze_error_patterns(errors: Sequence[BottleneckResponse]) -> list[str]:
    """Recurring error categories ("pattern (n×)"), at least 2 occurrences, top 5."""
    counts = Counter(_error_pattern(e) for e in errors)
    recurring = [(pattern, n) for pattern, n in counts.items() if n >= 2]
    recurring.sort(key=lambda pair: (-pair[1], pair[0]))
    return [f"{pattern} ({n}×)" for pattern, n in recurring[:5]]


def find_cooccurring_errors(
    component: ComponentType, responses: Sequence[BottleneckResponse]
) -> list[ComponentType]:
    """Components that fail in the same sessions as ``component`` (>= 2 sessions)."""
    session_errors: dict[str, set[ComponentType]] = defaultdict(set)
    for r in responses:
        if not r.correct:
            session_errors[r.session_id].add(r.component)

    counts: Counter = Counter()
    for failed in session_errors.values():
        if component in failed:
            counts.update(c for c in failed if c != component)

    frequent = [(c, n) for c, n in counts.items() if n >= 2]
    frequent.sort(key=lambda pair: (-pair[1], CASCADE_ORDER.index(pair[0])))
    return [c for c, _ in frequent]


# =============================================================================
# Cascade
# =============================================================================


def analyze_cascading_errors(
    evidence: Sequence[BottleneckEvidence],
    config: BottleneckDetectionConfig = DEFAULT_BOTTLENECK_CONFIG,
) -> CascadeAnalysis | None:
    """
    Earliest component at or above the error threshold whose downstream
    components are also elevated (>= 0.67 × threshold). None if no cascade.
    """
    by_component = {ev.component: ev for ev in evidence}
    downstream_threshold = config.error_rate_threshold * DOWNSTREAM_FACTOR

    for component in CASCADE_ORDER:
        ev = by_component.get(component)
        if ev is None or ev.error_rate < config.error_rate_threshold:
            continue

        elevated = [
            c
            for c in downstream_components(component)
            if c in by_component and by_component[c].error_rate >= downstream_threshold
        ]
        if elevated:
            return CascadeAnalysis(
                root_cause=component,
                chain=[component, *elevated],
                confidence=config.cascade_confidence_threshold,
            )
    return None


def _highest_error_rate(
    evidence: Sequence[BottleneckEvidence], config: BottleneckDetectionConfig
) -> ComponentType | None:
    best: BottleneckEvidence | None = None
    for ev in evidence:
        if ev.error_rate >= config.error_rate_threshold and (best is None or ev.error_rate > best.error_rate):
            best = ev
    return best.component if best is not None else None


def _confidence(
    evidence: Sequence[BottleneckEvidence], total: int, cascade: CascadeAnalysis | None
) -> float:
    if not evidence:
        return 0.0
    data = min(1.0, total / 50)
    cascade_boost = 0.2 if cascade is not None else 0.0
    rates = sorted((ev.error_rate for ev in evidence), reverse=True)
    differentiation = rates[0] - rates[1] if len(rates) >= 2 else 0.0
    return min(1.0, data + cascade_boost + min(0.2, differentiation))


def _recommendation(
    primary: ComponentType | None,
    evidence: Sequence[BottleneckEvidence],
    cascade: CascadeAnalysis | None,
) -> str:
    if primary is None:
        return "No significant bottleneck detected. Continue balanced practice across all areas."

    ev = next((e for e in evidence if e.component == primary), None)
    percent = round(ev.error_rate * 100) if ev else 0
    text = f"Focus on {COMPONENT_NAMES[primary]} ({percent}% error rate)."

    if cascade is not None and cascade.root_cause == primary and cascade.affected_components:
        downstream = ", ".join(COMPONENT_SHORT[c] for c in cascade.affected_components)
        text += f" Improving this will also help with {downstream}."

    if ev is not None and ev.error_patterns:
        text += f" Specifically practice: {ev.error_patterns[0].split(' (')[0]}."

    if ev is not None and ev.improvement > 0.05:
        text += " (Already improving - keep it up!)"
    elif ev is not None and ev.improvement < -0.05:
        text += " (Needs extra attention - performance declining.)"

    return text


# =============================================================================
# Helpers
# =============================================================================


def calculate_improvement_trend(
    component: ComponentType, responses: Sequence[BottleneckResponse]
) -> AnalysisResult[float]:
    """First-half error rate minus second-half error rate (positive = improving)."""
    own = [r for r in _chronological(responses) if r.component == component]
    if len(own) < MIN_TREND_RESPONSES:
        return NotEnoughData(
            reason=f"trend for {component.value} needs more responses",
            required=MIN_TREND_RESPONSES,
            available=len(own),
        )

    mid = len(own) // 2
    first, second = own[:mid], own[mid:]
    first_rate = sum(not r.correct for r in first) / len(first)
    second_rate = sum(not r.correct for r in second) / len(second)
    return Computed(first_rate - second_rate)


def summarize_bottleneck(analysis: BottleneckAnalysis) -> str:
    if analysis.primary_bottleneck is None:
        return "No bottleneck detected"

    short = COMPONENT_SHORT[analysis.primary_bottleneck]
    ev = analysis.evidence_for(analysis.primary_bottleneck)
    if ev is None:
        return f"Bottleneck: {short}"
    return f"{short} ({round(ev.error_rate * 100)}% errors)"
