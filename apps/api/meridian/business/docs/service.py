from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from meridian import events
from meridian.business.docs.models import Document, DocumentVersion, utcnow
from meridian.business.docs.repository import DocumentRepository, DocumentVersionRepository
from meridian.business.docs.schemas import DocumentCreate, DocumentRead, DocumentVersionCreate, DocumentVersionRead
from meridian.platform.security.context import AuthContext
from meridian.platform.security.errors import AuthorizationError
from meridian.platform.state import TransitionDomain
from meridian.services.state_changes import compare_and_set_status, guard_transition
from meridian.services.work_events import record_work_event


logger = logging.getLogger("meridian.docs")


@dataclass(slots=True)
class DocumentService:
    document_repository: DocumentRepository = DocumentRepository()
    version_repository: DocumentVersionRepository = DocumentVersionRepository()

    def create_document(self, session: Session, ctx: AuthContext, payload: DocumentCreate) -> DocumentRead:
        values = payload.model_dump()
        values.update(org_id=ctx.org_id, status="draft", created_by=ctx.user_id)
        try:
            self.document_repository.validate_write_security(values, ctx, action="create")
        except AuthorizationError as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
        document = Document(**values)
        session.add(document)
        session.flush()
        record_work_event(session, ctx, "document", document.id, "document.created", {"doc_type": document.doc_type})
        session.commit()
        session.refresh(document)
        return DocumentRead.model_validate(document)

    def list_documents(
        self,
        session: Session,
        ctx: AuthContext,
        status_filter: str | None = None,
        doc_type: str | None = None,
    ) -> list[DocumentRead]:
        filters: list[Any] = []
        if status_filter:
            filters.append(Document.status == status_filter)
        if doc_type:
            filters.append(Document.doc_type == doc_type)
        rows = self.document_repository.list_records(session, ctx, *filters, order_by=Document.created_at.desc())
        return [DocumentRead.model_validate(row) for row in rows]

    def get_document(self, session: Session, ctx: AuthContext, document_id: uuid.UUID) -> DocumentRead:
        return DocumentRead.model_validate(self._get_document(session, ctx, document_id))

    def add_version(
        self,
        session: Session,
        ctx: AuthContext,
        document_id: uuid.UUID,
        payload: DocumentVersionCreate,
    ) -> DocumentVersionRead:
        document = self._get_document(session, ctx, document_id)
        next_vnum = (
            session.scalar(
                select(func.coalesce(func.max(DocumentVersion.vnum), 0)).where(DocumentVersion.document_id == document.id)
            )
            + 1
        )
        digest = payload.hash_sha256.lower()
        version = DocumentVersion(
            org_id=ctx.org_id,
            document_id=document.id,
            vnum=next_vnum,
            author_user_id=ctx.user_id,
            change_note=payload.change_note,
            storage_ref=payload.storage_ref,
            hash_sha256=digest,
            hash_prefix=digest[:12],
        )
        try:
            session.add(version)
            session.flush()
            record_work_event(session, ctx, "document", document.id, "document.version.added", {"vnum": next_vnum})
            session.commit()
        except IntegrityError:
            session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"code": "VERSION_CONFLICT", "message": f"version {next_vnum} was added concurrently"},
            )
        session.refresh(version)
        events.publish(
            {
                "event_type": "document.version.added",
                "org_id": ctx.org_id,
                "entity_type": "document",
                "entity_id": str(document.id),
                "actor_user_id": ctx.user_id,
                "correlation_id": ctx.correlation_id,
                "payload": {"version_id": str(version.id), "vnum": version.vnum},
            }
        )
        return DocumentVersionRead.model_validate(version)

    def list_versions(self, session: Session, ctx: AuthContext, document_id: uuid.UUID) -> list[DocumentVersionRead]:
        self._get_document(session, ctx, document_id)
        rows = self.version_repository.list_records(
            session, ctx, DocumentVersion.document_id == document_id, order_by=DocumentVersion.vnum.asc()
        )
        return [DocumentVersionRead.model_validate(row) for row in rows]

    def change_status(self, session: Session, ctx: AuthContext, document_id: uuid.UUID, to_status: str) -> DocumentRead:
        document = self._get_document(session, ctx, document_id)
        from_status = document.status
        guard_transition(
            ctx, TransitionDomain.DOCUMENT, from_status, to_status, entity_id=document.id, label="document status"
        )
        values: dict[str, Any] = {"status": to_status, "updated_at": utcnow()}
        if to_status == "released":
            values["released_at"] = utcnow()
        compare_and_set_status(
            session,
            Document,
            document.id,
            ctx,
            domain=TransitionDomain.DOCUMENT,
            expected=from_status,
            values=values,
        )
        record_work_event(
            session, ctx, "document", document.id, f"document.status.{to_status}", {"from": from_status, "to": to_status}
        )
        session.commit()
        session.refresh(document)
        logger.info(
            "state.changed",
            extra={
                "org_id": ctx.org_id,
                "domain": TransitionDomain.DOCUMENT.value,
                "entity_type": "document",
                "entity_id": str(document.id),
                "from_state": from_status,
                "to_state": to_status,
            },
        )

        if to_status == "released":
            events.publish(
                {
                    "event_type": "document.released",
                    "org_id": ctx.org_id,
                    "entity_type": "document",
                    "entity_id": str(document.id),
                    "actor_user_id": ctx.user_id,
                    "correlation_id": ctx.correlation_id,
                    "payload": {"title": document.title, "doc_type": document.doc_type},
                }
            )
        return DocumentRead.model_validate(document)

    def _get_document(self, session: Session, ctx: AuthContext, document_id: uuid.UUID) -> Document:
        document = self.document_repository.get(session, ctx, document_id)
        if document is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="document not found")
        return document


document_service = DocumentService()
