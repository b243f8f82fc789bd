from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from meridian.business.workstream.schemas import (
    CandidateCreate,
    CandidateRead,
    CandidateTransitionRequest,
    ChecklistItemCreate,
    ChecklistItemRead,
    ChecklistItemUpdate,
    ChecklistReadiness,
    PromoteResult,
    ProposalCreate,
    ProposalRead,
    PursuitLostRequest,
    PursuitRead,
    PursuitStageChange,
    SubmitResult,
)
from meridian.business.workstream.service import workstream_service
from meridian.core.database import get_db
from meridian.platform.security.context import AuthContext
from meridian.platform.security.dependencies import get_auth_context


router = APIRouter(prefix="/api", tags=["workstream"])


@router.post("/candidates", response_model=CandidateRead, status_code=status.HTTP_201_CREATED)
def create_candidate(
    payload: CandidateCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> CandidateRead:
    return workstream_service.create_candidate(db, ctx, payload)


@router.get("/candidates", response_model=list[CandidateRead])
def list_candidates(
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[CandidateRead]:
    return workstream_service.list_candidates(db, ctx, status_filter)


@router.get("/candidates/{candidate_id}", response_model=CandidateRead)
def get_candidate(
    candidate_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> CandidateRead:
    return workstream_service.get_candidate(db, ctx, candidate_id)


@router.post("/candidates/{candidate_id}/transition", response_model=CandidateRead)
def transition_candidate(
    candidate_id: uuid.UUID,
    payload: CandidateTransitionRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> CandidateRead:
    return workstream_service.transition_candidate(db, ctx, candidate_id, payload.to)


@router.post("/candidates/{candidate_id}/promote", response_model=PromoteResult)
def promote_candidate(
    candidate_id: uuid.UUID,
    response: Response,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> PromoteResult:
    result = workstream_service.promote_candidate(db, ctx, candidate_id)
    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return result


@router.get("/pursuits", response_model=list[PursuitRead])
def list_pursuits(
    stage: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[PursuitRead]:
    return workstream_service.list_pursuits(db, ctx, stage)


@router.get("/pursuits/{pursuit_id}", response_model=PursuitRead)
def get_pursuit(
    pursuit_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> PursuitRead:
    return workstream_service.get_pursuit(db, ctx, pursuit_id)


@router.post("/pursuits/{pursuit_id}/stage", response_model=PursuitRead)
def change_pursuit_stage(
    pursuit_id: uuid.UUID,
    payload: PursuitStageChange,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> PursuitRead:
    return workstream_service.change_stage(db, ctx, pursuit_id, payload.to)


@router.post("/pursuits/{pursuit_id}/submit", response_model=SubmitResult)
def submit_pursuit(
    pursuit_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> SubmitResult:
    return workstream_service.submit(db, ctx, pursuit_id)


@router.post("/pursuits/{pursuit_id}/won", response_model=PursuitRead)
def mark_pursuit_won(
    pursuit_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> PursuitRead:
    return workstream_service.mark_won(db, ctx, pursuit_id)


@router.post("/pursuits/{pursuit_id}/lost", response_model=PursuitRead)
def mark_pursuit_lost(
    pursuit_id: uuid.UUID,
    payload: PursuitLostRequest | None = None,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> PursuitRead:
    return workstream_service.mark_lost(db, ctx, pursuit_id, payload.reason if payload else None)


@router.get("/pursuits/{pursuit_id}/checklist", response_model=list[ChecklistItemRead])
def list_checklist(
    pursuit_id: uuid.UUID,
    checklist_type: str | None = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[ChecklistItemRead]:
    return workstream_service.list_checklist(db, ctx, pursuit_id, checklist_type)


@router.post("/pursuits/{pursuit_id}/checklist", response_model=ChecklistItemRead, status_code=status.HTTP_201_CREATED)
def add_checklist_item(
    pursuit_id: uuid.UUID,
    payload: ChecklistItemCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ChecklistItemRead:
    return workstream_service.add_checklist_item(db, ctx, pursuit_id, payload)


@router.patch("/pursuits/{pursuit_id}/checklist/{item_id}", response_model=ChecklistItemRead)
def update_checklist_item(
    pursuit_id: uuid.UUID,
    item_id: uuid.UUID,
    payload: ChecklistItemUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ChecklistItemRead:
    return workstream_service.set_checklist_item_complete(db, ctx, pursuit_id, item_id, payload.is_complete)


@router.get("/pursuits/{pursuit_id}/checklist/readiness", response_model=ChecklistReadiness)
def checklist_readiness(
    pursuit_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ChecklistReadiness:
    return workstream_service.checklist_readiness(db, ctx, pursuit_id)


@router.get("/pursuits/{pursuit_id}/proposals", response_model=list[ProposalRead])
def list_proposals(
    pursuit_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[ProposalRead]:
    return workstream_service.list_proposals(db, ctx, pursuit_id)


@router.post("/pursuits/{pursuit_id}/proposals", response_model=ProposalRead, status_code=status.HTTP_201_CREATED)
def create_proposal_version(
    pursuit_id: uuid.UUID,
    payload: ProposalCreate | None = None,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ProposalRead:
    return workstream_service.create_proposal_version(db, ctx, pursuit_id, payload or ProposalCreate())


@router.post("/pursuits/{pursuit_id}/proposals/{proposal_id}/send", response_model=ProposalRead)
def send_proposal(
    pursuit_id: uuid.UUID,
    proposal_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ProposalRead:
    return workstream_service.send_proposal(db, ctx, pursuit_id, proposal_id)
