from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.orm import Session

from meridian.business.comms.models import CommsMessage, CommsThread, utcnow
from meridian.business.comms.repository import MessageRepository, ThreadRepository
from meridian.business.comms.schemas import MessageCreate, MessageRead, ThreadCreate, ThreadDetail, ThreadRead, ThreadUpdate
from meridian.platform.security.context import AuthContext
from meridian.platform.state import TransitionDomain
from meridian.services.state_changes import compare_and_set_status, guard_transition
from meridian.services.work_events import record_work_event


logger = logging.getLogger("meridian.comms")

SNIPPET_LENGTH = 1000


@dataclass(slots=True)
class CommsService:
    thread_repository: ThreadRepository = ThreadRepository()
    message_repository: MessageRepository = MessageRepository()

    def create_thread(self, session: Session, ctx: AuthContext, payload: ThreadCreate) -> ThreadRead:
        now = utcnow()
        thread = CommsThread(
            org_id=ctx.org_id,
            channel=payload.channel,
            subject=payload.subject,
            status="active",
            process_state="triage",
            assigned_user_id=payload.assigned_user_id,
            last_msg_at=now,
        )
        session.add(thread)
        session.flush()
        if payload.body:
            thread.first_msg_at = now
            session.add(
                CommsMessage(
                    org_id=ctx.org_id,
                    thread_id=thread.id,
                    direction="in",
                    from_addr=payload.from_addr,
                    snippet=payload.body[:SNIPPET_LENGTH],
                    body=payload.body,
                    sent_at=now,
                )
            )
        record_work_event(session, ctx, "comms_thread", thread.id, "comms_thread.created", {"channel": thread.channel})
        session.commit()
        session.refresh(thread)
        return ThreadRead.model_validate(thread)

    def list_threads(
        self,
        session: Session,
        ctx: AuthContext,
        status_filter: str | None = None,
        process_state: str | None = None,
    ) -> list[ThreadRead]:
        filters: list[Any] = []
        if status_filter:
            filters.append(CommsThread.status == status_filter)
        if process_state:
            filters.append(CommsThread.process_state == process_state)
        rows = self.thread_repository.list_records(session, ctx, *filters, order_by=CommsThread.last_msg_at.desc())
        return [ThreadRead.model_validate(row) for row in rows]

    def get_thread(self, session: Session, ctx: AuthContext, thread_id: uuid.UUID) -> ThreadDetail:
        thread = self._get_thread(session, ctx, thread_id)
        messages = self.message_repository.list_records(
            session, ctx, CommsMessage.thread_id == thread.id, order_by=CommsMessage.sent_at.desc()
        )
        return ThreadDetail(
            thread=ThreadRead.model_validate(thread),
            messages=[MessageRead.model_validate(row) for row in messages],
        )

    def update_thread(self, session: Session, ctx: AuthContext, thread_id: uuid.UUID, payload: ThreadUpdate) -> ThreadRead:
        thread = self._get_thread(session, ctx, thread_id)
        changes = payload.model_dump(exclude_unset=True, exclude={"status"})
        to_status = payload.status
        from_status = thread.status

        if to_status is not None:
            guard_transition(
                ctx, TransitionDomain.COMMS_THREAD, from_status, to_status, entity_id=thread.id, label="comms thread status"
            )
            compare_and_set_status(
                session,
                CommsThread,
                thread.id,
                ctx,
                domain=TransitionDomain.COMMS_THREAD,
                expected=from_status,
                values={"status": to_status, "updated_at": utcnow(), **changes},
            )
            record_work_event(
                session,
                ctx,
                "comms_thread",
                thread.id,
                f"comms_thread.status.{to_status}",
                {"from": from_status, "to": to_status},
            )
        else:
            session.execute(
                update(CommsThread)
                .where(CommsThread.id == thread.id, CommsThread.org_id == ctx.org_id)
                .values(updated_at=utcnow(), **changes)
                .execution_options(synchronize_session="fetch")
            )
            record_work_event(session, ctx, "comms_thread", thread.id, "comms_thread.updated", changes)
        session.commit()
        session.refresh(thread)
        if to_status is not None:
            logger.info(
                "state.changed",
                extra={
                    "org_id": ctx.org_id,
                    "domain": TransitionDomain.COMMS_THREAD.value,
                    "entity_type": "comms_thread",
                    "entity_id": str(thread.id),
                    "from_state": from_status,
                    "to_state": to_status,
                },
            )
        return ThreadRead.model_validate(thread)

    def reply(self, session: Session, ctx: AuthContext, thread_id: uuid.UUID, payload: MessageCreate) -> MessageRead:
        thread = self._get_thread(session, ctx, thread_id)
        now = utcnow()
        message = CommsMessage(
            org_id=ctx.org_id,
            thread_id=thread.id,
            direction="out",
            snippet=payload.body[:SNIPPET_LENGTH],
            body=payload.body,
            sent_at=now,
        )
        session.add(message)
        thread.last_msg_at = now
        if thread.first_msg_at is None:
            thread.first_msg_at = now
        session.flush()
        record_work_event(session, ctx, "comms_thread", thread.id, "comms_thread.replied", {"message_id": str(message.id)})
        session.commit()
        session.refresh(message)
        return MessageRead.model_validate(message)

    def _get_thread(self, session: Session, ctx: AuthContext, thread_id: uuid.UUID) -> CommsThread:
        thread = self.thread_repository.get(session, ctx, thread_id)
        if thread is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="thread not found")
        return thread


comms_service = CommsService()
