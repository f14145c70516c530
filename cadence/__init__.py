"""
cadence: adaptive learning scheduling core.

Decides what a learner should practice next, when each item is due again,
and how to arrange a bounded session:

- memory: FSRS forgetting curve, timing-aware ratings, mastery stages
- ability: IRT theta estimation, adaptive item selection, EM calibration
- priority: FRE / cost / urgency ranking into a learning queue
- bottleneck: component error clustering and cascade detection
- session: load-budgeted selection, interleaving and break planning

Every operation is a pure function of explicit state values; configuration
is passed in as immutable parameter objects (see ``cadence.config``).
"""

from cadence.ability import (
    ItemParameter,
    ThetaEstimate,
    calibrate_items,
    estimate_theta_eap,
    estimate_theta_mle,
    select_next_item,
)
from cadence.bottleneck import BottleneckAnalysis, analyze_bottleneck
from cadence.exceptions import CadenceError, InvalidInputError
from cadence.memory import FSRSParameters, MemoryCard, Rating, schedule
from cadence.priority import (
    LearningItem,
    PriorityConfig,
    UserState,
    build_learning_queue,
    compute_priority,
)
from cadence.results import Computed, NotEnoughData, is_computed
from cadence.session import (
    InterleavingStrategy,
    LearnerSessionState,
    SessionComposer,
    SessionConfig,
    SessionPlan,
)
from cadence.types import ComponentType, ObjectType

__version__ = "0.1.0"

__all__ = [
    "BottleneckAnalysis",
    "CadenceError",
    "ComponentType",
    "Computed",
    "FSRSParameters",
    "InterleavingStrategy",
    "InvalidInputError",
    "ItemParameter",
    "LearnerSessionState",
    "LearningItem",
    "MemoryCard",
    "NotEnoughData",
    "ObjectType",
    "PriorityConfig",
    "Rating",
    "SessionComposer",
    "SessionConfig",
    "SessionPlan",
    "ThetaEstimate",
    "UserState",
    "analyze_bottleneck",
    "build_learning_queue",
    "calibrate_items",
    "compute_priority",
    "estimate_theta_eap",
    "estimate_theta_mle",
    "is_computed",
    "schedule",
    "select_next_item",
]
