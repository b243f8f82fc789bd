from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


DocumentType = Literal["proposal", "sow", "report", "runbook", "evidence", "invoice_pdf", "contract", "note"]
DocumentStatus = Literal["draft", "in_review", "approved", "released", "archived"]
DocumentClassification = Literal["internal", "client_view", "confidential"]
DocumentSource = Literal["file", "generated", "external_link"]


class DocumentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    doc_type: DocumentType
    classification: DocumentClassification = "internal"
    source: DocumentSource = "file"
    storage_url: str | None = Field(default=None, max_length=500)
    mime_type: str | None = Field(default=None, max_length=100)
    size_bytes: int | None = Field(default=None, ge=0)


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: int
    title: str
    doc_type: DocumentType | str
    classification: DocumentClassification | str
    source: DocumentSource | str
    storage_url: str | None
    mime_type: str | None
    size_bytes: int | None
    status: DocumentStatus | str
    created_by: str | None
    released_at: datetime | None
    created_at: datetime
    updated_at: datetime


class DocumentStatusChange(BaseModel):
    status: DocumentStatus


class DocumentVersionCreate(BaseModel):
    storage_ref: str = Field(min_length=1, max_length=500)
    hash_sha256: str = Field(pattern=r"^[0-9a-fA-F]{64}$")
    change_note: str | None = Field(default=None, max_length=500)


class DocumentVersionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    vnum: int
    author_user_id: str | None
    change_note: str | None
    storage_ref: str
    hash_sha256: str
    hash_prefix: str
    created_at: datetime
