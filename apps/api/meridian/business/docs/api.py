from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from meridian.business.docs.schemas import (
    DocumentCreate,
    DocumentRead,
    DocumentStatusChange,
    DocumentVersionCreate,
    DocumentVersionRead,
)
from meridian.business.docs.service import document_service
from meridian.core.database import get_db
from meridian.platform.security.context import AuthContext
from meridian.platform.security.dependencies import get_auth_context


router = APIRouter(prefix="/api/docs", tags=["docs"])


@router.post("", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
def create_document(
    payload: DocumentCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DocumentRead:
    return document_service.create_document(db, ctx, payload)


@router.get("", response_model=list[DocumentRead])
def list_documents(
    status_filter: str | None = Query(default=None, alias="status"),
    doc_type: str | None = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[DocumentRead]:
    return document_service.list_documents(db, ctx, status_filter, doc_type)


@router.get("/{document_id}", response_model=DocumentRead)
def get_document(
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DocumentRead:
    return document_service.get_document(db, ctx, document_id)


@router.patch("/{document_id}/status", response_model=DocumentRead)
def change_document_status(
    document_id: uuid.UUID,
    payload: DocumentStatusChange,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DocumentRead:
    return document_service.change_status(db, ctx, document_id, payload.status)


@router.post("/{document_id}/versions", response_model=DocumentVersionRead, status_code=status.HTTP_201_CREATED)
def add_document_version(
    document_id: uuid.UUID,
    payload: DocumentVersionCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DocumentVersionRead:
    return document_service.add_version(db, ctx, document_id, payload)


@router.get("/{document_id}/versions", response_model=list[DocumentVersionRead])
def list_document_versions(
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[DocumentVersionRead]:
    return document_service.list_versions(db, ctx, document_id)
