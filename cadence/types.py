"""
Shared vocabulary for the scheduling core.

Skill components form a fixed dependency chain:

    PHON -> MORPH -> LEX -> SYNT -> PRAG

Lower-layer deficits propagate upward, so the chain order is used both by
the bottleneck detector (root-cause attribution) and the priority engine
(prerequisite penalties).

Learnable items carry a finer-grained object type (e.g. a multi-word
expression is a lexical item for cascade purposes).
"""

from __future__ import annotations

from enum import Enum


class ComponentType(str, Enum):
    """Skill component of a learnable item."""

    PHON = "PHON"    # Phonology (sounds and pronunciation)
    MORPH = "MORPH"  # Morphology (word forms and structure)
    LEX = "LEX"      # Vocabulary (word meanings)
    SYNT = "SYNT"    # Syntax (sentence structure)
    PRAG = "PRAG"    # Pragmatics (context and usage)


class ObjectType(str, Enum):
    """Kind of learnable object."""

    LEX = "LEX"      # Single word
    MWE = "MWE"      # Multi-word expression
    TERM = "TERM"    # Domain term
    MORPH = "MORPH"  # Morpheme / word-formation pattern
    G2P = "G2P"      # Grapheme-phoneme correspondence
    SYNT = "SYNT"    # Syntactic construction
    PRAG = "PRAG"    # Pragmatic pattern


# Foundational -> advanced
CASCADE_ORDER: tuple[ComponentType, ...] = (
    ComponentType.PHON,
    ComponentType.MORPH,
    ComponentType.LEX,
    ComponentType.SYNT,
    ComponentType.PRAG,
)

OBJECT_COMPONENT: dict[ObjectType, ComponentType] = {
    ObjectType.LEX: ComponentType.LEX,
    ObjectType.MWE: ComponentType.LEX,
    ObjectType.TERM: ComponentType.LEX,
    ObjectType.MORPH: ComponentType.MORPH,
    ObjectType.G2P: ComponentType.PHON,
    ObjectType.SYNT: ComponentType.SYNT,
    ObjectType.PRAG: ComponentType.PRAG,
}

COMPONENT_NAMES: dict[ComponentType, str] = {
    ComponentType.PHON: "Phonology (sounds and pronunciation)",
    ComponentType.MORPH: "Morphology (word forms and structure)",
    ComponentType.LEX: "Vocabulary (word meanings)",
    ComponentType.SYNT: "Syntax (sentence structure)",
    ComponentType.PRAG: "Pragmatics (context and usage)",
}

COMPONENT_SHORT: dict[ComponentType, str] = {
    ComponentType.PHON: "pronunciation",
    ComponentType.MORPH: "word forms",
    ComponentType.LEX: "vocabulary",
    ComponentType.SYNT: "grammar",
    ComponentType.PRAG: "usage",
}


def component_of(object_type: ObjectType) -> ComponentType:
    """Map an object type onto its skill component."""
    return OBJECT_COMPONENT[object_type]


def cascade_position(component: ComponentType) -> int:
    """Position in the cascade (lower = more foundational)."""
    return CASCADE_ORDER.index(component)


def upstream_components(component: ComponentType) -> list[ComponentType]:
    """Components that can be root causes for errors in ``component``."""
    return list(CASCADE_ORDER[: cascade_position(component)])


def downstream_components(component: ComponentType) -> list[ComponentType]:
    """Components whose errors ``component`` can cause."""
    return list(CASCADE_ORDER[cascade_position(component) + 1 :])


def can_cause_errors(upstream: ComponentType, downstream: ComponentType) -> bool:
    return cascade_position(upstream) < cascade_position(downstream)
