from meridian.platform.security.context import AuthContext
from meridian.platform.security.errors import AuthorizationError, OrgScopeError
from meridian.platform.security.repository import BaseRepository
from meridian.platform.security.scope import apply_org_filter, validate_org_write

__all__ = [
    "AuthContext",
    "AuthorizationError",
    "OrgScopeError",
    "BaseRepository",
    "apply_org_filter",
    "validate_org_write",
]
