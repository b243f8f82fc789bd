from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


EngagementType = Literal["audit", "project", "job"]
EngagementStatus = Literal["active", "paused", "complete", "cancelled"]
EngagementHealth = Literal["green", "yellow", "red"]
FeatureState = Literal["todo", "in_progress", "blocked", "review", "done"]
FeaturePriority = Literal["low", "medium", "high", "critical"]
MilestoneStatus = Literal["planned", "in_progress", "done", "cancelled"]
ChangeRequestOrigin = Literal["comms", "client", "internal"]
ChangeRequestStatus = Literal["draft", "review", "approved", "rejected"]
DependencyNodeType = Literal["task", "step", "feature"]
DependencyType = Literal["FS", "SS", "FF", "SF"]


class EngagementCreate(BaseModel):
    engagement_type: EngagementType
    name: str = Field(min_length=1, max_length=200)
    owner_user_id: str | None = None
    health: EngagementHealth = "green"
    start_at: datetime | None = None
    due_at: datetime | None = None


class EngagementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: int
    engagement_type: EngagementType | str
    name: str
    owner_user_id: str | None
    status: EngagementStatus | str
    health: EngagementHealth | str
    start_at: datetime
    due_at: datetime | None
    created_at: datetime
    updated_at: datetime


class EngagementStatusChange(BaseModel):
    status: EngagementStatus


class FeatureCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    priority: FeaturePriority = "medium"
    order_index: int = 0
    due_at: datetime | None = None


class FeatureRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    engagement_id: UUID
    title: str
    priority: FeaturePriority | str
    state: FeatureState | str
    order_index: int
    due_at: datetime | None
    updated_at: datetime


class FeatureStateChange(BaseModel):
    state: FeatureState


class MilestoneCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    milestone_type: str = Field(default="delivery", max_length=24)
    due_at: datetime | None = None


class MilestoneRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    engagement_id: UUID
    name: str
    milestone_type: str
    status: MilestoneStatus | str
    due_at: datetime | None


class MilestoneStatusChange(BaseModel):
    status: MilestoneStatus


class ChangeRequestCreate(BaseModel):
    origin: ChangeRequestOrigin
    scope_delta: str | None = None
    hours_delta: Decimal | None = None
    value_delta: Decimal | None = None


class ChangeRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    engagement_id: UUID
    origin: ChangeRequestOrigin | str
    scope_delta: str | None
    hours_delta: Decimal | None
    value_delta: Decimal | None
    status: ChangeRequestStatus | str
    created_by: str
    decided_at: datetime | None
    created_at: datetime


class ChangeRequestStatusChange(BaseModel):
    status: ChangeRequestStatus


class DependencyCreate(BaseModel):
    from_type: DependencyNodeType
    from_id: str = Field(min_length=1, max_length=64)
    to_type: DependencyNodeType
    to_id: str = Field(min_length=1, max_length=64)
    dep_type: DependencyType = "FS"
    lag_days: int = 0


class DependencyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: int
    from_type: str
    from_id: str
    to_type: str
    to_id: str
    dep_type: DependencyType | str
    lag_days: int
    created_at: datetime
