from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


CandidateStatus = Literal["new", "triaged", "nurture", "on_hold", "promoted", "archived"]
PursuitStage = Literal["qual", "pink", "red", "submit", "won", "lost"]
ChecklistType = Literal["pink", "red"]
ProposalStatus = Literal["draft", "sent", "signed", "void"]
ValueBand = Literal["low", "med", "high"]


class CandidateCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    one_liner_scope: str | None = Field(default=None, max_length=280)
    value_band: ValueBand | None = None
    confidence: Decimal | None = Field(default=None, ge=Decimal("0"), le=Decimal("1"))
    next_step: str | None = Field(default=None, max_length=200)
    owner_user_id: str | None = None


class CandidateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: int
    title: str
    one_liner_scope: str | None
    value_band: str | None
    confidence: Decimal | None
    next_step: str | None
    status: CandidateStatus | str
    owner_user_id: str | None
    last_touch_at: datetime | None
    created_at: datetime
    updated_at: datetime


class CandidateTransitionRequest(BaseModel):
    to: CandidateStatus


class PromoteResult(BaseModel):
    pursuit_id: UUID
    created: bool


class PursuitRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: int
    candidate_id: UUID
    stage: PursuitStage | str
    due_date: date | None
    forecast_value_usd: Decimal | None
    lost_reason: str | None
    created_at: datetime
    updated_at: datetime


class PursuitStageChange(BaseModel):
    to: PursuitStage


class PursuitLostRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=280)


class SubmitResult(BaseModel):
    pursuit_id: UUID
    proposal_id: UUID
    stage: PursuitStage


class ChecklistItemCreate(BaseModel):
    checklist_type: ChecklistType
    name: str = Field(min_length=1, max_length=120)


class ChecklistItemUpdate(BaseModel):
    is_complete: bool


class ChecklistItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    pursuit_id: UUID
    checklist_type: ChecklistType | str
    name: str
    is_complete: bool
    completed_at: datetime | None


class ChecklistReadiness(BaseModel):
    pursuit_id: UUID
    pink_ready: bool
    red_ready: bool
    pink_missing: list[str] = Field(default_factory=list)
    red_missing: list[str] = Field(default_factory=list)


class ProposalCreate(BaseModel):
    doc_ref: str | None = Field(default=None, max_length=128)


class ProposalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    pursuit_id: UUID
    version: int
    doc_ref: str | None
    status: ProposalStatus | str
    sent_at: datetime | None
    created_at: datetime
