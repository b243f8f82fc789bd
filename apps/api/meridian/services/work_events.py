import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from meridian.context import get_correlation_id
from meridian.models.work_event import WorkEvent
from meridian.platform.security.context import AuthContext


def record_work_event(
    db: Session,
    ctx: AuthContext,
    item_type: str,
    item_id: uuid.UUID | str,
    event_name: str,
    payload: dict[str, Any] | None = None,
) -> WorkEvent:
    """Stage a work event in the caller's transaction. The caller commits."""

    event = WorkEvent(
        org_id=ctx.org_id,
        item_type=item_type,
        item_id=str(item_id),
        event_name=event_name,
        payload=payload,
        actor_user_id=None if ctx.user_id == "anonymous" else ctx.user_id,
        correlation_id=ctx.correlation_id or get_correlation_id(),
    )
    db.add(event)
    return event


def list_work_events(db: Session, org_id: int, item_type: str, item_id: uuid.UUID | str) -> list[WorkEvent]:
    stmt = (
        select(WorkEvent)
        .where(WorkEvent.org_id == org_id, WorkEvent.item_type == item_type, WorkEvent.item_id == str(item_id))
        .order_by(WorkEvent.happened_at.asc())
    )
    return list(db.scalars(stmt))
