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
from meridian.business.workstream.models import Candidate, Proposal, Pursuit, PursuitChecklistItem, utcnow
from meridian.business.workstream.repository import (
    CandidateRepository,
    ChecklistItemRepository,
    ProposalRepository,
    PursuitRepository,
)
from meridian.business.workstream.schemas import (
    CandidateCreate,
    CandidateRead,
    ChecklistItemCreate,
    ChecklistItemRead,
    ChecklistReadiness,
    PromoteResult,
    ProposalCreate,
    ProposalRead,
    PursuitRead,
    SubmitResult,
)
from meridian.platform.security.context import AuthContext
from meridian.platform.security.errors import AuthorizationError
from meridian.platform.state import (
    PreconditionNotMetError,
    TransitionDomain,
    checklist_complete,
    ensure_checklist_complete,
    incomplete_items,
)
from meridian.platform.state.tables import CandidateStatus, PursuitStage
from meridian.services.state_changes import compare_and_set_status, guard_transition, raise_precondition
from meridian.services.work_events import record_work_event


logger = logging.getLogger("meridian.workstream")


@dataclass(slots=True)
class WorkstreamService:
    candidate_repository: CandidateRepository = CandidateRepository()
    pursuit_repository: PursuitRepository = PursuitRepository()
    checklist_repository: ChecklistItemRepository = ChecklistItemRepository()
    proposal_repository: ProposalRepository = ProposalRepository()

    # candidates

    def create_candidate(self, session: Session, ctx: AuthContext, payload: CandidateCreate) -> CandidateRead:
        values = {**payload.model_dump(), "org_id": ctx.org_id, "status": CandidateStatus.NEW.value}
        try:
            self.candidate_repository.validate_write_security(values, ctx, action="create")
        except AuthorizationError as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))

        candidate = Candidate(**values, last_touch_at=utcnow())
        session.add(candidate)
        session.flush()
        record_work_event(session, ctx, "candidate", candidate.id, "candidate.created", {"title": candidate.title})
        session.commit()
        session.refresh(candidate)
        return CandidateRead.model_validate(candidate)

    def list_candidates(self, session: Session, ctx: AuthContext, status_filter: str | None = None) -> list[CandidateRead]:
        filters = [Candidate.status == status_filter] if status_filter else []
        rows = self.candidate_repository.list_records(session, ctx, *filters, order_by=Candidate.created_at.desc())
        return [CandidateRead.model_validate(row) for row in rows]

    def get_candidate(self, session: Session, ctx: AuthContext, candidate_id: uuid.UUID) -> CandidateRead:
        return CandidateRead.model_validate(self._get_candidate(session, ctx, candidate_id))

    def transition_candidate(self, session: Session, ctx: AuthContext, candidate_id: uuid.UUID, to_status: str) -> CandidateRead:
        if to_status == CandidateStatus.PROMOTED:
            self.promote_candidate(session, ctx, candidate_id)
            return self.get_candidate(session, ctx, candidate_id)

        candidate = self._get_candidate(session, ctx, candidate_id)
        from_status = candidate.status
        guard_transition(ctx, TransitionDomain.CANDIDATE, from_status, to_status, entity_id=candidate.id, label="candidate transition")

        now = utcnow()
        compare_and_set_status(
            session,
            Candidate,
            candidate.id,
            ctx,
            domain=TransitionDomain.CANDIDATE,
            expected=from_status,
            values={"status": to_status, "last_touch_at": now, "updated_at": now},
        )
        record_work_event(
            session, ctx, "candidate", candidate.id, f"candidate.status.{to_status}", {"from": from_status, "to": to_status}
        )
        session.commit()
        session.refresh(candidate)
        self._publish(ctx, "candidate.status_changed", "candidate", candidate.id, {"from": from_status, "to": to_status})
        return CandidateRead.model_validate(candidate)

    def promote_candidate(self, session: Session, ctx: AuthContext, candidate_id: uuid.UUID) -> PromoteResult:
        """Create the candidate's pursuit exactly once.

        A second call, or a call that loses the insert race, returns the
        pursuit that already exists instead of failing.
        """
        candidate = self._get_candidate(session, ctx, candidate_id)
        existing = self._find_pursuit_for_candidate(session, ctx, candidate.id)
        if existing is not None:
            return PromoteResult(pursuit_id=existing.id, created=False)

        from_status = candidate.status
        guard_transition(ctx, TransitionDomain.CANDIDATE, from_status, CandidateStatus.PROMOTED, entity_id=candidate.id, label="candidate transition")

        pursuit = Pursuit(org_id=ctx.org_id, candidate_id=candidate.id, stage=PursuitStage.QUAL.value)
        try:
            session.add(pursuit)
            session.flush()
            now = utcnow()
            compare_and_set_status(
                session,
                Candidate,
                candidate.id,
                ctx,
                domain=TransitionDomain.CANDIDATE,
                expected=from_status,
                values={"status": CandidateStatus.PROMOTED.value, "last_touch_at": now, "updated_at": now},
            )
            record_work_event(session, ctx, "candidate", candidate.id, "candidate.promoted", {"pursuit_id": str(pursuit.id)})
            record_work_event(session, ctx, "pursuit", pursuit.id, "pursuit.created", {"candidate_id": str(candidate.id)})
            session.commit()
        except IntegrityError:
            session.rollback()
            winner = self._find_pursuit_for_candidate(session, ctx, candidate_id)
            if winner is None:
                raise
            logger.info(
                "candidate.promote_race_resolved",
                extra={"org_id": ctx.org_id, "entity_type": "candidate", "entity_id": str(candidate_id)},
            )
            return PromoteResult(pursuit_id=winner.id, created=False)

        logger.info(
            "candidate.promoted",
            extra={"org_id": ctx.org_id, "entity_type": "candidate", "entity_id": str(candidate_id), "from_state": from_status},
        )
        self._publish(ctx, "candidate.promoted", "candidate", candidate_id, {"pursuit_id": str(pursuit.id)})
        return PromoteResult(pursuit_id=pursuit.id, created=True)

    # pursuits

    def list_pursuits(self, session: Session, ctx: AuthContext, stage: str | None = None) -> list[PursuitRead]:
        filters = [Pursuit.stage == stage] if stage else []
        rows = self.pursuit_repository.list_records(session, ctx, *filters, order_by=Pursuit.created_at.desc())
        return [PursuitRead.model_validate(row) for row in rows]

    def get_pursuit(self, session: Session, ctx: AuthContext, pursuit_id: uuid.UUID) -> PursuitRead:
        return PursuitRead.model_validate(self._get_pursuit(session, ctx, pursuit_id))

    def change_stage(self, session: Session, ctx: AuthContext, pursuit_id: uuid.UUID, to_stage: str) -> PursuitRead:
        pursuit = self._get_pursuit(session, ctx, pursuit_id)
        guard_transition(ctx, TransitionDomain.PURSUIT, pursuit.stage, to_stage, entity_id=pursuit.id, label="pursuit transition")
        self._check_stage_gates(session, ctx, pursuit, to_stage)
        self._apply_stage(session, ctx, pursuit, to_stage, event_name=f"pursuit.stage.{to_stage}")
        return PursuitRead.model_validate(pursuit)

    def submit(self, session: Session, ctx: AuthContext, pursuit_id: uuid.UUID) -> SubmitResult:
        pursuit = self._get_pursuit(session, ctx, pursuit_id)
        guard_transition(ctx, TransitionDomain.PURSUIT, pursuit.stage, PursuitStage.SUBMIT, entity_id=pursuit.id, label="pursuit transition")
        self._check_stage_gates(session, ctx, pursuit, PursuitStage.SUBMIT)

        proposal = self._latest_proposal(session, ctx, pursuit.id)
        if proposal is None:
            proposal = Proposal(org_id=ctx.org_id, pursuit_id=pursuit.id, version=1, status="draft")
            session.add(proposal)
            session.flush()
        if proposal.status != "sent":
            proposal.status = "sent"
            proposal.sent_at = utcnow()

        self._apply_stage(
            session,
            ctx,
            pursuit,
            PursuitStage.SUBMIT,
            event_name="pursuit.submit",
            event_payload={"proposal_id": str(proposal.id)},
        )
        return SubmitResult(pursuit_id=pursuit.id, proposal_id=proposal.id, stage="submit")

    def mark_won(self, session: Session, ctx: AuthContext, pursuit_id: uuid.UUID) -> PursuitRead:
        pursuit = self._get_pursuit(session, ctx, pursuit_id)
        guard_transition(ctx, TransitionDomain.PURSUIT, pursuit.stage, PursuitStage.WON, entity_id=pursuit.id, label="pursuit transition")
        self._check_stage_gates(session, ctx, pursuit, PursuitStage.WON)
        sent = self._latest_sent_proposal(session, ctx, pursuit.id)
        self._apply_stage(
            session,
            ctx,
            pursuit,
            PursuitStage.WON,
            event_name="pursuit.won",
            event_payload={"proposal_id": str(sent.id) if sent else None},
        )
        return PursuitRead.model_validate(pursuit)

    def mark_lost(self, session: Session, ctx: AuthContext, pursuit_id: uuid.UUID, reason: str | None) -> PursuitRead:
        pursuit = self._get_pursuit(session, ctx, pursuit_id)
        guard_transition(ctx, TransitionDomain.PURSUIT, pursuit.stage, PursuitStage.LOST, entity_id=pursuit.id, label="pursuit transition")
        self._check_stage_gates(session, ctx, pursuit, PursuitStage.LOST)
        self._apply_stage(
            session,
            ctx,
            pursuit,
            PursuitStage.LOST,
            event_name="pursuit.lost",
            event_payload={"reason": reason},
            extra_values={"lost_reason": reason},
        )
        return PursuitRead.model_validate(pursuit)

    # checklists

    def add_checklist_item(
        self,
        session: Session,
        ctx: AuthContext,
        pursuit_id: uuid.UUID,
        payload: ChecklistItemCreate,
    ) -> ChecklistItemRead:
        pursuit = self._get_pursuit(session, ctx, pursuit_id)
        item = PursuitChecklistItem(
            org_id=ctx.org_id,
            pursuit_id=pursuit.id,
            checklist_type=payload.checklist_type,
            name=payload.name,
            is_complete=False,
        )
        try:
            session.add(item)
            session.flush()
            record_work_event(
                session, ctx, "pursuit", pursuit.id, "pursuit.checklist.added", {"type": item.checklist_type, "name": item.name}
            )
            session.commit()
        except IntegrityError:
            session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"{payload.checklist_type} checklist already has an item named '{payload.name}'",
            )
        session.refresh(item)
        return ChecklistItemRead.model_validate(item)

    def set_checklist_item_complete(
        self,
        session: Session,
        ctx: AuthContext,
        pursuit_id: uuid.UUID,
        item_id: uuid.UUID,
        is_complete: bool,
    ) -> ChecklistItemRead:
        item = session.scalar(
            self.checklist_repository.query(ctx).where(
                PursuitChecklistItem.id == item_id,
                PursuitChecklistItem.pursuit_id == pursuit_id,
            )
        )
        if item is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="checklist item not found")
        item.is_complete = is_complete
        item.completed_at = utcnow() if is_complete else None
        event_name = "pursuit.checklist.completed" if is_complete else "pursuit.checklist.reopened"
        record_work_event(session, ctx, "pursuit", pursuit_id, event_name, {"type": item.checklist_type, "name": item.name})
        session.commit()
        session.refresh(item)
        return ChecklistItemRead.model_validate(item)

    def list_checklist(
        self,
        session: Session,
        ctx: AuthContext,
        pursuit_id: uuid.UUID,
        checklist_type: str | None = None,
    ) -> list[ChecklistItemRead]:
        self._get_pursuit(session, ctx, pursuit_id)
        return [ChecklistItemRead.model_validate(item) for item in self._checklist(session, ctx, pursuit_id, checklist_type)]

    def checklist_readiness(self, session: Session, ctx: AuthContext, pursuit_id: uuid.UUID) -> ChecklistReadiness:
        self._get_pursuit(session, ctx, pursuit_id)
        pink = self._checklist(session, ctx, pursuit_id, "pink")
        red = self._checklist(session, ctx, pursuit_id, "red")
        return ChecklistReadiness(
            pursuit_id=pursuit_id,
            pink_ready=checklist_complete(pink),
            red_ready=checklist_complete(red),
            pink_missing=incomplete_items(pink),
            red_missing=incomplete_items(red),
        )

    # proposals

    def list_proposals(self, session: Session, ctx: AuthContext, pursuit_id: uuid.UUID) -> list[ProposalRead]:
        self._get_pursuit(session, ctx, pursuit_id)
        rows = self.proposal_repository.list_records(
            session, ctx, Proposal.pursuit_id == pursuit_id, order_by=Proposal.version.asc()
        )
        return [ProposalRead.model_validate(row) for row in rows]

    def create_proposal_version(
        self,
        session: Session,
        ctx: AuthContext,
        pursuit_id: uuid.UUID,
        payload: ProposalCreate,
    ) -> ProposalRead:
        pursuit = self._get_pursuit(session, ctx, pursuit_id)
        current = session.scalar(
            select(func.max(Proposal.version)).where(Proposal.org_id == ctx.org_id, Proposal.pursuit_id == pursuit.id)
        )
        version = int(current or 0) + 1
        proposal = Proposal(org_id=ctx.org_id, pursuit_id=pursuit.id, version=version, doc_ref=payload.doc_ref, status="draft")
        try:
            session.add(proposal)
            session.flush()
            record_work_event(session, ctx, "pursuit", pursuit.id, "proposal.created", {"version": version})
            session.commit()
        except IntegrityError:
            session.rollback()
            if version == 1:
                first = session.scalar(
                    self.proposal_repository.query(ctx).where(Proposal.pursuit_id == pursuit_id, Proposal.version == 1)
                )
                if first is not None:
                    return ProposalRead.model_validate(first)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"proposal version {version} was created concurrently",
            )
        session.refresh(proposal)
        return ProposalRead.model_validate(proposal)

    def send_proposal(self, session: Session, ctx: AuthContext, pursuit_id: uuid.UUID, proposal_id: uuid.UUID) -> ProposalRead:
        proposal = session.scalar(
            self.proposal_repository.query(ctx).where(Proposal.id == proposal_id, Proposal.pursuit_id == pursuit_id)
        )
        if proposal is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="proposal not found")
        if proposal.status != "draft":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"proposal v{proposal.version} is {proposal.status}; only drafts can be sent",
            )
        proposal.status = "sent"
        proposal.sent_at = utcnow()
        record_work_event(session, ctx, "pursuit", pursuit_id, "proposal.sent", {"proposal_id": str(proposal.id), "version": proposal.version})
        session.commit()
        session.refresh(proposal)
        return ProposalRead.model_validate(proposal)

    # helpers

    def _get_candidate(self, session: Session, ctx: AuthContext, candidate_id: uuid.UUID) -> Candidate:
        candidate = self.candidate_repository.get(session, ctx, candidate_id)
        if candidate is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="candidate not found")
        return candidate

    def _get_pursuit(self, session: Session, ctx: AuthContext, pursuit_id: uuid.UUID) -> Pursuit:
        pursuit = self.pursuit_repository.get(session, ctx, pursuit_id)
        if pursuit is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="pursuit not found")
        return pursuit

    def _find_pursuit_for_candidate(self, session: Session, ctx: AuthContext, candidate_id: uuid.UUID) -> Pursuit | None:
        return session.scalar(self.pursuit_repository.query(ctx).where(Pursuit.candidate_id == candidate_id))

    def _checklist(
        self,
        session: Session,
        ctx: AuthContext,
        pursuit_id: uuid.UUID,
        checklist_type: str | None,
    ) -> list[PursuitChecklistItem]:
        filters: list[Any] = [PursuitChecklistItem.pursuit_id == pursuit_id]
        if checklist_type:
            filters.append(PursuitChecklistItem.checklist_type == checklist_type)
        return self.checklist_repository.list_records(session, ctx, *filters, order_by=PursuitChecklistItem.created_at.asc())

    def _latest_proposal(self, session: Session, ctx: AuthContext, pursuit_id: uuid.UUID) -> Proposal | None:
        return session.scalar(
            self.proposal_repository.query(ctx)
            .where(Proposal.pursuit_id == pursuit_id)
            .order_by(Proposal.version.desc())
            .limit(1)
        )

    def _latest_sent_proposal(self, session: Session, ctx: AuthContext, pursuit_id: uuid.UUID) -> Proposal | None:
        return session.scalar(
            self.proposal_repository.query(ctx)
            .where(Proposal.pursuit_id == pursuit_id, Proposal.status == "sent")
            .order_by(Proposal.version.desc())
            .limit(1)
        )

    def _check_stage_gates(self, session: Session, ctx: AuthContext, pursuit: Pursuit, to_stage: str) -> None:
        try:
            if to_stage == PursuitStage.SUBMIT:
                ensure_checklist_complete("pink_checklist", self._checklist(session, ctx, pursuit.id, "pink"), label="Pink")
            if to_stage in {PursuitStage.WON, PursuitStage.LOST}:
                ensure_checklist_complete("red_checklist", self._checklist(session, ctx, pursuit.id, "red"), label="Red")
            if to_stage == PursuitStage.WON and self._latest_sent_proposal(session, ctx, pursuit.id) is None:
                raise PreconditionNotMetError("sent_proposal", "Cannot mark won without a sent proposal")
        except PreconditionNotMetError as exc:
            raise_precondition(ctx, exc, entity_id=pursuit.id)

    def _apply_stage(
        self,
        session: Session,
        ctx: AuthContext,
        pursuit: Pursuit,
        to_stage: str,
        *,
        event_name: str,
        event_payload: dict[str, Any] | None = None,
        extra_values: dict[str, Any] | None = None,
    ) -> None:
        from_stage = pursuit.stage
        compare_and_set_status(
            session,
            Pursuit,
            pursuit.id,
            ctx,
            domain=TransitionDomain.PURSUIT,
            expected=from_stage,
            values={"stage": str(to_stage), "updated_at": utcnow(), **(extra_values or {})},
            column="stage",
        )
        record_work_event(session, ctx, "pursuit", pursuit.id, event_name, {"from": from_stage, "to": str(to_stage), **(event_payload or {})})
        session.commit()
        session.refresh(pursuit)
        logger.info(
            "pursuit.stage_changed",
            extra={
                "org_id": ctx.org_id,
                "entity_type": "pursuit",
                "entity_id": str(pursuit.id),
                "from_state": from_stage,
                "to_state": str(to_stage),
            },
        )
        self._publish(ctx, "pursuit.stage_changed", "pursuit", pursuit.id, {"from": from_stage, "to": str(to_stage)})

    @staticmethod
    def _publish(ctx: AuthContext, event_type: str, entity_type: str, entity_id: uuid.UUID, data: dict[str, Any]) -> None:
        events.publish(
            {
                "event_type": event_type,
                "org_id": ctx.org_id,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "actor_user_id": ctx.user_id,
                "correlation_id": ctx.correlation_id,
                "payload": data,
            }
        )


workstream_service = WorkstreamService()
