from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.sql import Select

from meridian.metrics import observe_org_scope_denied
from meridian.platform.security.context import AuthContext
from meridian.platform.security.errors import OrgScopeError


logger = logging.getLogger("meridian.security")


def apply_org_filter(query: Select[Any], ctx: AuthContext) -> Select[Any]:
    """Restrict a select to rows owned by the caller's organization."""

    for description in query.column_descriptions:
        model = description.get("entity")
        if model is None:
            continue
        if hasattr(model, "org_id"):
            query = query.where(getattr(model, "org_id") == ctx.org_id)
    return query


def validate_org_write(resource: str, payload: dict[str, Any], ctx: AuthContext, *, action: str = "write") -> None:
    target = payload.get("org_id")
    if target is None or int(target) == ctx.org_id:
        return
    _emit_denied(resource=resource, action=action, ctx=ctx, target_org_id=int(target))
    raise OrgScopeError(resource=resource, org_id=ctx.org_id, target_org_id=int(target))


def _emit_denied(*, resource: str, action: str, ctx: AuthContext, target_org_id: int) -> None:
    observe_org_scope_denied(resource=resource, action=action)
    logger.warning(
        "org_scope.denied",
        extra={
            "entity_type": resource,
            "org_id": ctx.org_id,
            "reason": f"{action} targeted org {target_org_id}",
        },
    )
