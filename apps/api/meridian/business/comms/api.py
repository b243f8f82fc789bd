from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from meridian.business.comms.schemas import MessageCreate, MessageRead, ThreadCreate, ThreadDetail, ThreadRead, ThreadUpdate
from meridian.business.comms.service import comms_service
from meridian.core.database import get_db
from meridian.platform.security.context import AuthContext
from meridian.platform.security.dependencies import get_auth_context


router = APIRouter(prefix="/api/comms", tags=["comms"])


@router.post("/threads", response_model=ThreadRead, status_code=status.HTTP_201_CREATED)
def create_thread(
    payload: ThreadCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ThreadRead:
    return comms_service.create_thread(db, ctx, payload)


@router.get("/threads", response_model=list[ThreadRead])
def list_threads(
    status_filter: str | None = Query(default=None, alias="status"),
    process_state: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[ThreadRead]:
    return comms_service.list_threads(db, ctx, status_filter, process_state)


@router.get("/threads/{thread_id}", response_model=ThreadDetail)
def get_thread(
    thread_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ThreadDetail:
    return comms_service.get_thread(db, ctx, thread_id)


@router.patch("/threads/{thread_id}", response_model=ThreadRead)
def update_thread(
    thread_id: uuid.UUID,
    payload: ThreadUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ThreadRead:
    return comms_service.update_thread(db, ctx, thread_id, payload)


@router.post("/threads/{thread_id}/reply", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def reply_to_thread(
    thread_id: uuid.UUID,
    payload: MessageCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> MessageRead:
    return comms_service.reply(db, ctx, thread_id, payload)
