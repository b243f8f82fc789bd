from meridian.platform.security.context import AuthContext
from meridian.platform.security.errors import AuthorizationError, OrgScopeError
from meridian.platform.security.repository import BaseRepository
from meridian.platform.state import (
    CycleDetectedError,
    InvalidTransitionError,
    PreconditionNotMetError,
    TransitionDomain,
    assert_transition,
    can_transition,
)

__all__ = [
    "AuthContext",
    "AuthorizationError",
    "OrgScopeError",
    "BaseRepository",
    "CycleDetectedError",
    "InvalidTransitionError",
    "PreconditionNotMetError",
    "TransitionDomain",
    "assert_transition",
    "can_transition",
]
