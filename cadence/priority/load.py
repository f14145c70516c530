"""
Cognitive load estimates.

Load is a unitless 1-10 estimate of the processing burden of practicing one
item: a base load per object type, scaled down as mastery grows, plus a small
penalty for repeating the previous item's type.
"""

from __future__ import annotations

from cadence.types import ObjectType

MIN_LOAD = 1.0
MAX_LOAD = 10.0

BASE_LOADS: dict[ObjectType, float] = {
    ObjectType.LEX: 2.0,
    ObjectType.MWE: 4.0,
    ObjectType.TERM: 3.0,
    ObjectType.MORPH: 5.0,
    ObjectType.G2P: 4.0,
    ObjectType.SYNT: 6.0,
    ObjectType.PRAG: 7.0,
}

# Mastery stage 0 (new) .. 4 (automatic)
MASTERY_MULTIPLIERS: dict[int, float] = {0: 1.5, 1: 1.3, 2: 1.0, 3: 0.8, 4: 0.5}

CONSECUTIVE_PENALTY = 0.3

RELATED_TYPES: dict[ObjectType, tuple[ObjectType, ...]] = {
    ObjectType.LEX: (ObjectType.MWE, ObjectType.TERM, ObjectType.MORPH),
    ObjectType.MWE: (ObjectType.LEX, ObjectType.SYNT, ObjectType.PRAG),
    ObjectType.MORPH: (ObjectType.LEX, ObjectType.G2P),
    ObjectType.G2P: (ObjectType.MORPH, ObjectType.LEX),
    ObjectType.SYNT: (ObjectType.MWE, ObjectType.PRAG),
    ObjectType.PRAG: (ObjectType.SYNT, ObjectType.MWE),
    ObjectType.TERM: (ObjectType.LEX, ObjectType.MWE),
}


def cognitive_load(
    object_type: ObjectType,
    mastery_stage: int = 0,
    previous_type: ObjectType | None = None,
) -> float:
    load = BASE_LOADS.get(object_type, 3.0) * MASTERY_MULTIPLIERS.get(mastery_stage, 1.0)
    if previous_type is not None and previous_type == object_type:
        load += CONSECUTIVE_PENALTY
    return min(MAX_LOAD, max(MIN_LOAD, load))


def worst_case_load(object_type: ObjectType, mastery_stage: int = 0) -> float:
    """Upper bound on the item's load wherever it ends up in a sequence."""
    return cognitive_load(object_type, mastery_stage, previous_type=object_type)


def relatedness(type_a: ObjectType, type_b: ObjectType) -> float:
    """1.0 same type, 0.5 related types, 0.1 unrelated."""
    if type_a == type_b:
        return 1.0
    if type_b in RELATED_TYPES.get(type_a, ()):
        return 0.5
    return 0.1
