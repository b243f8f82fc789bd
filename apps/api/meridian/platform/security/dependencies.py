from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request, status

from meridian.context import get_correlation_id
from meridian.core.auth import AuthUser, get_current_user
from meridian.core.config import get_settings
from meridian.platform.security.context import AuthContext


def get_auth_context(
    request: Request,
    auth_user: AuthUser = Depends(get_current_user),
    org_id_header: str | None = Header(default=None, alias="x-org-id"),
) -> AuthContext:
    correlation_id = get_correlation_id() or getattr(getattr(request.state, "context", None), "request_id", None)
    if org_id_header:
        try:
            org_id = int(org_id_header)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="x-org-id must be an integer")
    elif auth_user.org_id is not None:
        org_id = auth_user.org_id
    else:
        org_id = get_settings().default_org_id

    roles = [str(item) for item in auth_user.roles]
    normalized = {item.lower() for item in roles}
    return AuthContext(
        user_id=auth_user.sub,
        org_id=org_id,
        correlation_id=correlation_id,
        is_super_admin=("admin" in normalized or "system.admin" in normalized),
        roles=roles,
        permissions=roles,
    )
