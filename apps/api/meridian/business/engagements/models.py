from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from meridian.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Engagement(Base):
    __tablename__ = "eng_engagement"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    engagement_type: Mapped[str] = mapped_column(String(10), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    owner_user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(12), nullable=False, default="active", server_default="active")
    health: Mapped[str] = mapped_column(String(6), nullable=False, default="green", server_default="green")
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("ix_eng_engagement_org_status", "org_id", "status", "due_at"),)


class Feature(Base):
    __tablename__ = "eng_feature"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    engagement_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("eng_engagement.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    priority: Mapped[str] = mapped_column(String(12), nullable=False, default="medium", server_default="medium")
    state: Mapped[str] = mapped_column(String(12), nullable=False, default="todo", server_default="todo")
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("ix_eng_feature_org_engagement_state", "org_id", "engagement_id", "state"),)


class Milestone(Base):
    __tablename__ = "eng_milestone"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    engagement_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("eng_engagement.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    milestone_type: Mapped[str] = mapped_column(String(24), nullable=False, default="delivery", server_default="delivery")
    status: Mapped[str] = mapped_column(String(12), nullable=False, default="planned", server_default="planned")
    due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class ChangeRequest(Base):
    __tablename__ = "eng_change_request"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    engagement_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("eng_engagement.id", ondelete="CASCADE"), nullable=False)
    origin: Mapped[str] = mapped_column(String(10), nullable=False)
    scope_delta: Mapped[str | None] = mapped_column(Text, nullable=True)
    hours_delta: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    value_delta: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    status: Mapped[str] = mapped_column(String(12), nullable=False, default="draft", server_default="draft")
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (Index("ix_eng_change_request_org_status", "org_id", "engagement_id", "status"),)


class Dependency(Base):
    __tablename__ = "eng_dependency"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    from_type: Mapped[str] = mapped_column(String(16), nullable=False)
    from_id: Mapped[str] = mapped_column(String(64), nullable=False)
    to_type: Mapped[str] = mapped_column(String(16), nullable=False)
    to_id: Mapped[str] = mapped_column(String(64), nullable=False)
    dep_type: Mapped[str] = mapped_column(String(2), nullable=False, default="FS", server_default="FS")
    lag_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("org_id", "from_type", "from_id", "to_type", "to_id", "dep_type", name="uq_eng_dependency_edge"),
        Index("ix_eng_dependency_org_to", "org_id", "to_type", "to_id"),
    )
