from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from meridian import events
from meridian.business.engagements.models import ChangeRequest, Dependency, Engagement, Feature, Milestone, utcnow
from meridian.business.engagements.repository import (
    ChangeRequestRepository,
    DependencyRepository,
    EngagementRepository,
    FeatureRepository,
    MilestoneRepository,
)
from meridian.business.engagements.schemas import (
    ChangeRequestCreate,
    ChangeRequestRead,
    DependencyCreate,
    DependencyRead,
    EngagementCreate,
    EngagementRead,
    FeatureCreate,
    FeatureRead,
    MilestoneCreate,
    MilestoneRead,
)
from meridian.platform.security.context import AuthContext
from meridian.platform.security.errors import AuthorizationError
from meridian.platform.state import CycleDetectedError, DependencyEdgeRef, NodeRef, TransitionDomain, ensure_no_cycle
from meridian.services.state_changes import compare_and_set_status, guard_transition, raise_cycle
from meridian.services.work_events import record_work_event


logger = logging.getLogger("meridian.engagements")


@dataclass(slots=True)
class EngagementService:
    engagement_repository: EngagementRepository = EngagementRepository()
    feature_repository: FeatureRepository = FeatureRepository()
    milestone_repository: MilestoneRepository = MilestoneRepository()
    change_request_repository: ChangeRequestRepository = ChangeRequestRepository()
    dependency_repository: DependencyRepository = DependencyRepository()

    def create_engagement(self, session: Session, ctx: AuthContext, payload: EngagementCreate) -> EngagementRead:
        values = payload.model_dump()
        values["start_at"] = values.get("start_at") or utcnow()
        values.update(org_id=ctx.org_id, status="active")
        try:
            self.engagement_repository.validate_write_security(values, ctx, action="create")
        except AuthorizationError as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
        engagement = Engagement(**values)
        session.add(engagement)
        session.flush()
        record_work_event(session, ctx, "engagement", engagement.id, "engagement.created", {"name": engagement.name})
        session.commit()
        session.refresh(engagement)
        return EngagementRead.model_validate(engagement)

    def list_engagements(self, session: Session, ctx: AuthContext, status_filter: str | None = None) -> list[EngagementRead]:
        filters = [Engagement.status == status_filter] if status_filter else []
        rows = self.engagement_repository.list_records(session, ctx, *filters, order_by=Engagement.created_at.desc())
        return [EngagementRead.model_validate(row) for row in rows]

    def get_engagement(self, session: Session, ctx: AuthContext, engagement_id: uuid.UUID) -> EngagementRead:
        return EngagementRead.model_validate(self._get_engagement(session, ctx, engagement_id))

    def change_engagement_status(
        self,
        session: Session,
        ctx: AuthContext,
        engagement_id: uuid.UUID,
        to_status: str,
    ) -> EngagementRead:
        engagement = self._get_engagement(session, ctx, engagement_id)
        self._transition(
            session,
            ctx,
            engagement,
            domain=TransitionDomain.ENGAGEMENT,
            to_state=to_status,
            item_type="engagement",
            label="engagement status",
        )
        return EngagementRead.model_validate(engagement)

    # features

    def create_feature(self, session: Session, ctx: AuthContext, engagement_id: uuid.UUID, payload: FeatureCreate) -> FeatureRead:
        engagement = self._get_engagement(session, ctx, engagement_id)
        feature = Feature(org_id=ctx.org_id, engagement_id=engagement.id, state="todo", **payload.model_dump())
        session.add(feature)
        session.flush()
        record_work_event(session, ctx, "feature", feature.id, "feature.created", {"engagement_id": str(engagement.id)})
        session.commit()
        session.refresh(feature)
        return FeatureRead.model_validate(feature)

    def list_features(self, session: Session, ctx: AuthContext, engagement_id: uuid.UUID) -> list[FeatureRead]:
        self._get_engagement(session, ctx, engagement_id)
        rows = self.feature_repository.list_records(
            session, ctx, Feature.engagement_id == engagement_id, order_by=Feature.order_index.asc()
        )
        return [FeatureRead.model_validate(row) for row in rows]

    def change_feature_state(
        self,
        session: Session,
        ctx: AuthContext,
        engagement_id: uuid.UUID,
        feature_id: uuid.UUID,
        to_state: str,
    ) -> FeatureRead:
        self._get_engagement(session, ctx, engagement_id)
        feature = session.scalar(
            self.feature_repository.query(ctx).where(Feature.id == feature_id, Feature.engagement_id == engagement_id)
        )
        if feature is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="feature not found")
        self._transition(
            session,
            ctx,
            feature,
            domain=TransitionDomain.FEATURE,
            to_state=to_state,
            item_type="feature",
            label="feature state",
            column="state",
        )
        if to_state == "done":
            events.publish(
                {
                    "event_type": "feature.completed",
                    "org_id": ctx.org_id,
                    "entity_type": "feature",
                    "entity_id": str(feature.id),
                    "payload": {"engagement_id": str(engagement_id)},
                }
            )
        return FeatureRead.model_validate(feature)

    # milestones

    def create_milestone(
        self,
        session: Session,
        ctx: AuthContext,
        engagement_id: uuid.UUID,
        payload: MilestoneCreate,
    ) -> MilestoneRead:
        engagement = self._get_engagement(session, ctx, engagement_id)
        milestone = Milestone(org_id=ctx.org_id, engagement_id=engagement.id, status="planned", **payload.model_dump())
        session.add(milestone)
        session.flush()
        record_work_event(session, ctx, "milestone", milestone.id, "milestone.created", {"engagement_id": str(engagement.id)})
        session.commit()
        session.refresh(milestone)
        return MilestoneRead.model_validate(milestone)

    def change_milestone_status(
        self,
        session: Session,
        ctx: AuthContext,
        engagement_id: uuid.UUID,
        milestone_id: uuid.UUID,
        to_status: str,
    ) -> MilestoneRead:
        milestone = session.scalar(
            self.milestone_repository.query(ctx).where(Milestone.id == milestone_id, Milestone.engagement_id == engagement_id)
        )
        if milestone is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="milestone not found")
        self._transition(
            session,
            ctx,
            milestone,
            domain=TransitionDomain.MILESTONE,
            to_state=to_status,
            item_type="milestone",
            label="milestone status",
        )
        return MilestoneRead.model_validate(milestone)

    # change requests

    def create_change_request(
        self,
        session: Session,
        ctx: AuthContext,
        engagement_id: uuid.UUID,
        payload: ChangeRequestCreate,
    ) -> ChangeRequestRead:
        engagement = self._get_engagement(session, ctx, engagement_id)
        change_request = ChangeRequest(
            org_id=ctx.org_id,
            engagement_id=engagement.id,
            status="draft",
            created_by=ctx.user_id,
            **payload.model_dump(),
        )
        session.add(change_request)
        session.flush()
        record_work_event(
            session, ctx, "change_request", change_request.id, "change_request.created", {"origin": change_request.origin}
        )
        session.commit()
        session.refresh(change_request)
        return ChangeRequestRead.model_validate(change_request)

    def change_change_request_status(
        self,
        session: Session,
        ctx: AuthContext,
        engagement_id: uuid.UUID,
        change_request_id: uuid.UUID,
        to_status: str,
    ) -> ChangeRequestRead:
        change_request = session.scalar(
            self.change_request_repository.query(ctx).where(
                ChangeRequest.id == change_request_id,
                ChangeRequest.engagement_id == engagement_id,
            )
        )
        if change_request is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="change request not found")
        extra: dict[str, Any] = {}
        if to_status in {"approved", "rejected"}:
            extra["decided_at"] = utcnow()
        self._transition(
            session,
            ctx,
            change_request,
            domain=TransitionDomain.CHANGE_REQUEST,
            to_state=to_status,
            item_type="change_request",
            label="change request status",
            extra_values=extra,
            touch_updated_at=False,
        )
        return ChangeRequestRead.model_validate(change_request)

    # dependencies

    def create_dependency(self, session: Session, ctx: AuthContext, payload: DependencyCreate) -> DependencyRead:
        from_node = NodeRef(payload.from_type, payload.from_id)
        to_node = NodeRef(payload.to_type, payload.to_id)
        edges = [
            DependencyEdgeRef(
                org_id=row.org_id,
                from_node=NodeRef(row.from_type, row.from_id),
                to_node=NodeRef(row.to_type, row.to_id),
            )
            for row in self.dependency_repository.list_records(session, ctx)
        ]
        try:
            ensure_no_cycle(ctx.org_id, from_node, to_node, edges)
        except CycleDetectedError as exc:
            raise_cycle(ctx, exc)

        dependency = Dependency(org_id=ctx.org_id, **payload.model_dump())
        try:
            session.add(dependency)
            session.flush()
            record_work_event(
                session,
                ctx,
                payload.from_type,
                payload.from_id,
                "dependency.created",
                {"to_type": payload.to_type, "to_id": payload.to_id, "dep_type": payload.dep_type},
            )
            session.commit()
        except IntegrityError:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="dependency already exists")
        session.refresh(dependency)
        return DependencyRead.model_validate(dependency)

    def list_dependencies(
        self,
        session: Session,
        ctx: AuthContext,
        node_type: str | None = None,
        node_id: str | None = None,
    ) -> list[DependencyRead]:
        filters: list[Any] = []
        if node_type and node_id:
            filters.append(
                or_(
                    (Dependency.from_type == node_type) & (Dependency.from_id == node_id),
                    (Dependency.to_type == node_type) & (Dependency.to_id == node_id),
                )
            )
        rows = self.dependency_repository.list_records(session, ctx, *filters, order_by=Dependency.created_at.asc())
        return [DependencyRead.model_validate(row) for row in rows]

    def delete_dependency(self, session: Session, ctx: AuthContext, dependency_id: uuid.UUID) -> None:
        dependency = self.dependency_repository.get(session, ctx, dependency_id)
        if dependency is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="dependency not found")
        record_work_event(
            session,
            ctx,
            dependency.from_type,
            dependency.from_id,
            "dependency.deleted",
            {"to_type": dependency.to_type, "to_id": dependency.to_id},
        )
        session.delete(dependency)
        session.commit()

    # helpers

    def _get_engagement(self, session: Session, ctx: AuthContext, engagement_id: uuid.UUID) -> Engagement:
        engagement = self.engagement_repository.get(session, ctx, engagement_id)
        if engagement is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="engagement not found")
        return engagement

    def _transition(
        self,
        session: Session,
        ctx: AuthContext,
        record: Any,
        *,
        domain: TransitionDomain,
        to_state: str,
        item_type: str,
        label: str,
        column: str = "status",
        extra_values: dict[str, Any] | None = None,
        touch_updated_at: bool = True,
    ) -> None:
        from_state = getattr(record, column)
        guard_transition(ctx, domain, from_state, to_state, entity_id=record.id, label=label)
        values: dict[str, Any] = {column: to_state, **(extra_values or {})}
        if touch_updated_at:
            values["updated_at"] = utcnow()
        compare_and_set_status(
            session,
            type(record),
            record.id,
            ctx,
            domain=domain,
            expected=from_state,
            values=values,
            column=column,
        )
        record_work_event(
            session, ctx, item_type, record.id, f"{item_type}.{column}.{to_state}", {"from": from_state, "to": to_state}
        )
        session.commit()
        session.refresh(record)
        logger.info(
            "state.changed",
            extra={
                "org_id": ctx.org_id,
                "domain": domain.value,
                "entity_type": item_type,
                "entity_id": str(record.id),
                "from_state": from_state,
                "to_state": to_state,
            },
        )


engagement_service = EngagementService()
