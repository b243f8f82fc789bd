from __future__ import annotations

import uuid
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from meridian.platform.security.context import AuthContext
from meridian.platform.security.scope import apply_org_filter, validate_org_write


ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    resource = ""
    model: type[ModelT]

    def apply_scope_query(self, query: Select[Any], ctx: AuthContext) -> Select[Any]:
        return apply_org_filter(query, ctx)

    def validate_write_security(self, payload: dict[str, Any], ctx: AuthContext, *, action: str = "write") -> None:
        validate_org_write(self.resource, payload, ctx, action=action)

    def query(self, ctx: AuthContext) -> Select[Any]:
        return self.apply_scope_query(select(self.model), ctx)

    def get(self, session: Session, ctx: AuthContext, record_id: uuid.UUID) -> ModelT | None:
        """Fetch by id inside the caller's organization; other orgs read as missing."""

        return session.scalar(self.query(ctx).where(getattr(self.model, "id") == record_id))

    def list_records(self, session: Session, ctx: AuthContext, *filters: Any, order_by: Any = None) -> list[ModelT]:
        stmt = self.query(ctx)
        for condition in filters:
            stmt = stmt.where(condition)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        return list(session.scalars(stmt))
