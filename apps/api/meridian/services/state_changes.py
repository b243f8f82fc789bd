"""Service-side glue between the pure state guards and HTTP handlers.

Services fetch the current row, call ``guard_transition``, and then write the
new status with ``compare_and_set_status`` so that a change made by another
request between the read and the write is reported instead of overwritten.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, NoReturn

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.orm import Session

from meridian.metrics import (
    observe_dependency_cycle_rejected,
    observe_precondition_block,
    observe_transition_rejected,
    observe_write_conflict,
)
from meridian.platform.security.context import AuthContext
from meridian.platform.state import (
    CycleDetectedError,
    InvalidTransitionError,
    PreconditionNotMetError,
    TransitionDomain,
    assert_transition,
)


logger = logging.getLogger("meridian.state")


def guard_transition(
    ctx: AuthContext,
    domain: TransitionDomain,
    from_state: str | None,
    to_state: str | None,
    *,
    entity_id: uuid.UUID | str,
    label: str | None = None,
) -> None:
    try:
        assert_transition(domain, from_state, to_state, label)
    except InvalidTransitionError as exc:
        observe_transition_rejected(exc.domain)
        logger.info(
            "state.transition_rejected",
            extra={
                "org_id": ctx.org_id,
                "domain": exc.domain,
                "from_state": exc.from_state,
                "to_state": exc.to_state,
                "entity_id": str(entity_id),
            },
        )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "INVALID_TRANSITION", **exc.to_detail()},
        ) from exc


def raise_precondition(ctx: AuthContext, exc: PreconditionNotMetError, *, entity_id: uuid.UUID | str) -> NoReturn:
    observe_precondition_block(exc.precondition)
    logger.info(
        "state.precondition_blocked",
        extra={"org_id": ctx.org_id, "entity_id": str(entity_id), "reason": exc.precondition},
    )
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"code": "PRECONDITION_NOT_MET", **exc.to_detail()},
    ) from exc


def raise_cycle(ctx: AuthContext, exc: CycleDetectedError) -> NoReturn:
    observe_dependency_cycle_rejected()
    logger.info(
        "dependency.cycle_rejected",
        extra={"org_id": ctx.org_id, "entity_id": str(exc.from_node), "reason": f"to {exc.to_node}"},
    )
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "DEPENDENCY_CYCLE", **exc.to_detail()},
    ) from exc


def compare_and_set_status(
    session: Session,
    model: type[Any],
    record_id: uuid.UUID,
    ctx: AuthContext,
    *,
    domain: TransitionDomain,
    expected: str,
    values: dict[str, Any],
    column: str = "status",
) -> None:
    """Apply ``values`` only if the row still holds ``expected`` in ``column``.

    Does not commit. Zero rows updated means someone else moved the row first.
    """
    stmt = (
        update(model)
        .where(
            getattr(model, "id") == record_id,
            getattr(model, "org_id") == ctx.org_id,
            getattr(model, column) == expected,
        )
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    result = session.execute(stmt)
    if result.rowcount == 0:
        session.rollback()
        observe_write_conflict(domain.value)
        logger.warning(
            "state.write_conflict",
            extra={"org_id": ctx.org_id, "domain": domain.value, "entity_id": str(record_id), "from_state": expected},
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "code": "CONCURRENT_UPDATE",
                "message": f"{domain.value} {record_id} changed since it was read",
                "expected": expected,
            },
        )
