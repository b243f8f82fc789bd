from meridian.platform.state.checklist import checklist_complete, ensure_checklist_complete, incomplete_items
from meridian.platform.state.dedupe import (
    DedupeRecord,
    ThrottleWindow,
    as_utc,
    is_duplicate,
    resolve_window,
    within_throttle,
)
from meridian.platform.state.errors import (
    CycleDetectedError,
    InvalidTransitionError,
    PreconditionNotMetError,
    StateGuardError,
    UnknownTransitionDomainError,
)
from meridian.platform.state.graph import DependencyEdgeRef, NodeRef, ensure_no_cycle, would_create_cycle
from meridian.platform.state.guards import allowed_transitions, assert_transition, can_transition, get_table
from meridian.platform.state.tables import TRANSITION_TABLES, SelfTransitionPolicy, TransitionDomain

__all__ = [
    "TRANSITION_TABLES",
    "CycleDetectedError",
    "DedupeRecord",
    "DependencyEdgeRef",
    "InvalidTransitionError",
    "NodeRef",
    "PreconditionNotMetError",
    "SelfTransitionPolicy",
    "StateGuardError",
    "ThrottleWindow",
    "TransitionDomain",
    "UnknownTransitionDomainError",
    "allowed_transitions",
    "as_utc",
    "assert_transition",
    "can_transition",
    "checklist_complete",
    "ensure_checklist_complete",
    "ensure_no_cycle",
    "get_table",
    "incomplete_items",
    "is_duplicate",
    "resolve_window",
    "within_throttle",
]
