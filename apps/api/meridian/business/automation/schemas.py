from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


RuleStatus = Literal["draft", "active", "disabled"]
JobStatus = Literal["queued", "running", "succeeded", "failed", "dead"]
JobAction = Literal["start", "succeed", "fail", "retry", "dead_letter"]
ThrottlePer = Literal["minute", "hour", "day"]
Outcome = Literal["triggered", "throttled", "skipped", "error"]


class RuleTrigger(BaseModel):
    event_types: list[str] = Field(min_length=1)


class RuleThrottle(BaseModel):
    per: ThrottlePer
    limit: int = Field(ge=1)


class RuleAction(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = Field(min_length=1, max_length=100)
    params: dict[str, Any] = Field(default_factory=dict)


class RuleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    status: Literal["draft", "active"] = "draft"
    trigger: RuleTrigger
    conditions: dict[str, Any] | None = None
    throttle: RuleThrottle | None = None
    actions: list[RuleAction] = Field(min_length=1)


class RuleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    trigger: RuleTrigger | None = None
    conditions: dict[str, Any] | None = None
    throttle: RuleThrottle | None = None
    actions: list[RuleAction] | None = Field(default=None, min_length=1)


class RuleStatusChange(BaseModel):
    status: RuleStatus


class RuleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: int
    name: str
    status: RuleStatus | str
    trigger_json: dict[str, Any]
    conditions_json: dict[str, Any] | None
    throttle_per: str | None
    throttle_limit: int | None
    actions_json: list[dict[str, Any]]
    created_by: str | None
    created_at: datetime
    updated_at: datetime


class SampleEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = Field(min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)


class RuleTestRequest(BaseModel):
    rule: RuleCreate
    sample_event: SampleEvent
    rule_id: UUID | None = None


class RuleEvaluation(BaseModel):
    trigger_matched: bool
    conditions_passed: bool
    throttle_ok: bool


class RuleTestResult(BaseModel):
    matches: bool
    reason: str | None = None
    actions: list[dict[str, Any]] = Field(default_factory=list)
    evaluation: RuleEvaluation


class EventIngest(BaseModel):
    type: str = Field(min_length=1, max_length=100)
    source: str = Field(default="domain", min_length=1, max_length=50)
    aggregate_type: str | None = Field(default=None, max_length=50)
    aggregate_id: str | None = Field(default=None, max_length=64)
    payload: dict[str, Any] | None = None
    correlation_id: str | None = Field(default=None, max_length=64)
    dedupe_key: str | None = Field(default=None, max_length=128)

    @field_validator("dedupe_key")
    @classmethod
    def _blank_key_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


class RuleOutcome(BaseModel):
    rule_id: UUID
    outcome: Outcome
    job_ids: list[UUID] = Field(default_factory=list)
    reason: str | None = None


class IngestResult(BaseModel):
    event_id: UUID | None
    duplicate: bool = False
    ingested: bool = False
    outcomes: list[RuleOutcome] = Field(default_factory=list)


class ProcessResult(BaseModel):
    processed_events: int
    outcomes: list[RuleOutcome] = Field(default_factory=list)


class LogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID | None
    rule_id: UUID | None
    outcome: str
    error_message: str | None
    metrics_json: dict[str, Any] | None
    created_at: datetime


class JobRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    rule_id: UUID
    event_id: UUID | None
    action_type: str
    payload: dict[str, Any] | None
    status: JobStatus | str
    attempts: int
    max_attempts: int
    next_run_at: datetime | None
    idempotency_key: str
    error_message: str | None
    started_at: datetime | None
    finished_at: datetime | None


class JobTransitionRequest(BaseModel):
    action: JobAction
    error_message: str | None = Field(default=None, max_length=1000)
