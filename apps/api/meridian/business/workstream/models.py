from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from meridian.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Candidate(Base):
    __tablename__ = "ws_candidate"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    one_liner_scope: Mapped[str | None] = mapped_column(String(280), nullable=True)
    value_band: Mapped[str | None] = mapped_column(String(8), nullable=True)
    confidence: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)
    next_step: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[str] = mapped_column(String(12), nullable=False, default="new", server_default="new")
    owner_user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_touch_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("ix_ws_candidate_org_status", "org_id", "status"),)


class Pursuit(Base):
    __tablename__ = "ws_pursuit"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    candidate_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("ws_candidate.id"), nullable=False)
    stage: Mapped[str] = mapped_column(String(8), nullable=False, default="qual", server_default="qual")
    due_date: Mapped[date | None] = mapped_column(Date(), nullable=True)
    forecast_value_usd: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    lost_reason: Mapped[str | None] = mapped_column(String(280), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("org_id", "candidate_id", name="uq_ws_pursuit_candidate"),
        Index("ix_ws_pursuit_org_stage", "org_id", "stage"),
    )


class PursuitChecklistItem(Base):
    __tablename__ = "ws_pursuit_checklist"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    pursuit_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("ws_pursuit.id", ondelete="CASCADE"), nullable=False)
    checklist_type: Mapped[str] = mapped_column(String(8), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("org_id", "pursuit_id", "checklist_type", "name", name="uq_ws_pursuit_checklist_name"),
    )


class Proposal(Base):
    __tablename__ = "ws_proposal"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    pursuit_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("ws_pursuit.id", ondelete="CASCADE"), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    doc_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(12), nullable=False, default="draft", server_default="draft")
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (UniqueConstraint("org_id", "pursuit_id", "version", name="uq_ws_proposal_version"),)
