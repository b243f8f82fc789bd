from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from meridian.business.automation.schemas import (
    EventIngest,
    IngestResult,
    JobRead,
    JobTransitionRequest,
    LogRead,
    ProcessResult,
    RuleCreate,
    RuleRead,
    RuleStatusChange,
    RuleTestRequest,
    RuleTestResult,
    RuleUpdate,
)
from meridian.business.automation.service import automation_service
from meridian.core.database import get_db
from meridian.platform.security.context import AuthContext
from meridian.platform.security.dependencies import get_auth_context


router = APIRouter(prefix="/api/automation", tags=["automation"])


@router.get("/rules", response_model=list[RuleRead])
def list_rules(
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[RuleRead]:
    return automation_service.list_rules(db, ctx, status_filter)


@router.post("/rules", response_model=RuleRead, status_code=status.HTTP_201_CREATED)
def create_rule(
    payload: RuleCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> RuleRead:
    return automation_service.create_rule(db, ctx, payload)


@router.get("/rules/{rule_id}", response_model=RuleRead)
def get_rule(
    rule_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> RuleRead:
    return automation_service.get_rule(db, ctx, rule_id)


@router.patch("/rules/{rule_id}", response_model=RuleRead)
def update_rule(
    rule_id: uuid.UUID,
    payload: RuleUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> RuleRead:
    return automation_service.update_rule(db, ctx, rule_id, payload)


@router.post("/rules/{rule_id}/status", response_model=RuleRead)
def change_rule_status(
    rule_id: uuid.UUID,
    payload: RuleStatusChange,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> RuleRead:
    return automation_service.change_rule_status(db, ctx, rule_id, payload)


@router.post("/test", response_model=RuleTestResult)
def test_rule(
    payload: RuleTestRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> RuleTestResult:
    return automation_service.test_rule(db, ctx, payload)


@router.post("/events", response_model=IngestResult)
def ingest_event(
    payload: EventIngest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> IngestResult:
    return automation_service.ingest_event(db, ctx.org_id, payload)


@router.post("/events/process", response_model=ProcessResult)
def process_pending_events(
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ProcessResult:
    return automation_service.process_pending(db, ctx, limit)


@router.get("/logs", response_model=list[LogRead])
def list_logs(
    rule_id: uuid.UUID | None = Query(default=None),
    event_id: uuid.UUID | None = Query(default=None),
    outcome: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[LogRead]:
    return automation_service.list_logs(db, ctx, rule_id, event_id, outcome, limit, offset)


@router.get("/jobs", response_model=list[JobRead])
def list_jobs(
    status_filter: str | None = Query(default=None, alias="status"),
    rule_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[JobRead]:
    return automation_service.list_jobs(db, ctx, status_filter, rule_id)


@router.get("/jobs/{job_id}", response_model=JobRead)
def get_job(
    job_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> JobRead:
    return automation_service.get_job(db, ctx, job_id)


@router.post("/jobs/{job_id}/transition", response_model=JobRead)
def transition_job(
    job_id: uuid.UUID,
    payload: JobTransitionRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> JobRead:
    return automation_service.transition_job(db, ctx, job_id, payload.action, payload.error_message)
