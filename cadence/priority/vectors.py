"""
Component Vectors.

Per-component linguistic profiles of an item. Each vector kind carries the
dimensions that make that kind of item harder or easier to learn, and maps
them onto a cost modifier in [0.5, 2.0] (1.0 = neutral):

- PHON: irregular spelling, L1 transfer difficulty, dense neighborhoods
- MORPH: low productivity, opaque meaning, complex paradigms
  (large word families lower cost)
- LEX: abstract, polysemous, late-acquired words (cognates lower cost,
  false friends raise it)
- SYNT: structural complexity, embedding, dependency distance
- PRAG: cultural load, politeness and face-threat demands
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from cadence.exceptions import InvalidInputError
from cadence.types import ComponentType

MIN_COST_MODIFIER = 0.5
MAX_COST_MODIFIER = 2.0


@dataclass(frozen=True)
class PhonVector:
    grapheme_phoneme_regularity: float = 1.0
    l1_transfer_difficulty: float = 0.0
    neighborhood_density: float = 0.0
    has_silent_letters: bool = False

    component = ComponentType.PHON


@dataclass(frozen=True)
class MorphVector:
    productivity: float = 0.5
    transparency: float = 0.5
    paradigm_complexity: float = 0.0
    derivational_depth: int = 0
    allomorph_count: int = 1
    family_size: int = 0

    component = ComponentType.MORPH


@dataclass(frozen=True)
class LexVector:
    concreteness: float = 0.5
    polysemy_count: int = 1
    age_of_acquisition: float = 5.0  # Years
    register_flexibility: float = 0.5
    is_cognate: bool = False
    false_friend_risk: bool = False

    component = ComponentType.LEX


@dataclass(frozen=True)
class SyntVector:
    complexity_score: float = 0.0
    embedding_depth: int = 0
    argument_complexity: float = 0.0
    avg_dependency_distance: float = 0.0
    processability_stage: int = 1  # Pienemann stages 1-5

    component = ComponentType.SYNT


@dataclass(frozen=True)
class PragVector:
    cultural_load: float = 0.0
    politeness_complexity: float = 0.0
    face_threat_potential: float = 0.0
    pragmatic_transfer_risk: float = 0.0
    indirectness_level: float = 0.0

    component = ComponentType.PRAG


ComponentVector = Union[PhonVector, MorphVector, LexVector, SyntVector, PragVector]


def _clamp(modifier: float) -> float:
    return min(MAX_COST_MODIFIER, max(MIN_COST_MODIFIER, modifier))


def _phon_cost(v: PhonVector) -> float:
    cost = 1.0
    cost += (1 - v.grapheme_phoneme_regularity) * 0.5
    cost += v.l1_transfer_difficulty * 0.3
    cost += 0.1 if v.neighborhood_density > 0.7 else 0.0
    cost += 0.1 if v.has_silent_letters else 0.0
    return cost


def _morph_cost(v: MorphVector) -> float:
    cost = 1.0
    cost += (1 - v.productivity) * 0.3
    cost += (1 - v.transparency) * 0.4
    cost += v.paradigm_complexity * 0.2
    cost += min(0.2, v.derivational_depth * 0.05)
    cost += min(0.15, (v.allomorph_count - 1) * 0.05)
    cost -= min(0.3, v.family_size / 30 * 0.3)
    return cost


def _lex_cost(v: LexVector) -> float:
    cost = 1.0
    cost += (1 - v.concreteness) * 0.25
    cost += min(0.3, v.polysemy_count / 10 * 0.3)
    cost += min(0.25, (v.age_of_acquisition - 5) / 15 * 0.25)
    cost += (1 - v.register_flexibility) * 0.1
    if v.false_friend_risk:
        cost += 0.2
    elif v.is_cognate:
        cost -= 0.2
    return cost


def _synt_cost(v: SyntVector) -> float:
    cost = 1.0
    cost += v.complexity_score * 0.4
    cost += min(0.3, v.embedding_depth * 0.1)
    cost += v.argument_complexity * 0.15
    cost += min(0.15, v.avg_dependency_distance / 10 * 0.15)
    cost += (v.processability_stage - 1) * 0.05
    return cost


def _prag_cost(v: PragVector) -> float:
    cost = 1.0
    cost += v.cultural_load * 0.35
    cost += v.politeness_complexity * 0.25
    cost += v.face_threat_potential * 0.2
    cost += v.pragmatic_transfer_risk * 0.1
    cost += v.indirectness_level * 0.1
    return cost


def component_cost_modifier(vector: ComponentVector) -> float:
    """Learning-cost multiplier in [0.5, 2.0] for any vector kind."""
    if isinstance(vector, PhonVector):
        return _clamp(_phon_cost(vector))
    if isinstance(vector, MorphVector):
        return _clamp(_morph_cost(vector))
    if isinstance(vector, LexVector):
        return _clamp(_lex_cost(vector))
    if isinstance(vector, SyntVector):
        return _clamp(_synt_cost(vector))
    if isinstance(vector, PragVector):
        return _clamp(_prag_cost(vector))
    raise InvalidInputError(f"Unknown component vector kind: {type(vector).__name__}")


VECTOR_KINDS: dict[ComponentType, type] = {
    ComponentType.PHON: PhonVector,
    ComponentType.MORPH: MorphVector,
    ComponentType.LEX: LexVector,
    ComponentType.SYNT: SyntVector,
    ComponentType.PRAG: PragVector,
}


def vector_from_dict(component: ComponentType | str, fields: dict) -> ComponentVector:
    """Build the vector kind for ``component`` from plain field values."""
    try:
        kind = VECTOR_KINDS[ComponentType(component)]
    except (KeyError, ValueError):
        raise InvalidInputError(f"Unknown component vector kind: {component!r}") from None
    try:
        return kind(**fields)
    except TypeError as e:
        raise InvalidInputError(f"Invalid {kind.__name__} fields: {e}") from e
