from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from meridian.business.engagements.schemas import (
    ChangeRequestCreate,
    ChangeRequestRead,
    ChangeRequestStatusChange,
    DependencyCreate,
    DependencyRead,
    EngagementCreate,
    EngagementRead,
    EngagementStatusChange,
    FeatureCreate,
    FeatureRead,
    FeatureStateChange,
    MilestoneCreate,
    MilestoneRead,
    MilestoneStatusChange,
)
from meridian.business.engagements.service import engagement_service
from meridian.core.database import get_db
from meridian.platform.security.context import AuthContext
from meridian.platform.security.dependencies import get_auth_context


router = APIRouter(prefix="/api/engagements", tags=["engagements"])
dependencies_router = APIRouter(prefix="/api/dependencies", tags=["engagements"])


@router.post("", response_model=EngagementRead, status_code=status.HTTP_201_CREATED)
def create_engagement(
    payload: EngagementCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> EngagementRead:
    return engagement_service.create_engagement(db, ctx, payload)


@router.get("", response_model=list[EngagementRead])
def list_engagements(
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[EngagementRead]:
    return engagement_service.list_engagements(db, ctx, status_filter)


@router.get("/{engagement_id}", response_model=EngagementRead)
def get_engagement(
    engagement_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> EngagementRead:
    return engagement_service.get_engagement(db, ctx, engagement_id)


@router.post("/{engagement_id}/status", response_model=EngagementRead)
def change_engagement_status(
    engagement_id: uuid.UUID,
    payload: EngagementStatusChange,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> EngagementRead:
    return engagement_service.change_engagement_status(db, ctx, engagement_id, payload.status)


@router.post("/{engagement_id}/features", response_model=FeatureRead, status_code=status.HTTP_201_CREATED)
def create_feature(
    engagement_id: uuid.UUID,
    payload: FeatureCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> FeatureRead:
    return engagement_service.create_feature(db, ctx, engagement_id, payload)


@router.get("/{engagement_id}/features", response_model=list[FeatureRead])
def list_features(
    engagement_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[FeatureRead]:
    return engagement_service.list_features(db, ctx, engagement_id)


@router.patch("/{engagement_id}/features/{feature_id}", response_model=FeatureRead)
def change_feature_state(
    engagement_id: uuid.UUID,
    feature_id: uuid.UUID,
    payload: FeatureStateChange,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> FeatureRead:
    return engagement_service.change_feature_state(db, ctx, engagement_id, feature_id, payload.state)


@router.post("/{engagement_id}/milestones", response_model=MilestoneRead, status_code=status.HTTP_201_CREATED)
def create_milestone(
    engagement_id: uuid.UUID,
    payload: MilestoneCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> MilestoneRead:
    return engagement_service.create_milestone(db, ctx, engagement_id, payload)


@router.patch("/{engagement_id}/milestones/{milestone_id}", response_model=MilestoneRead)
def change_milestone_status(
    engagement_id: uuid.UUID,
    milestone_id: uuid.UUID,
    payload: MilestoneStatusChange,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> MilestoneRead:
    return engagement_service.change_milestone_status(db, ctx, engagement_id, milestone_id, payload.status)


@router.post("/{engagement_id}/change-requests", response_model=ChangeRequestRead, status_code=status.HTTP_201_CREATED)
def create_change_request(
    engagement_id: uuid.UUID,
    payload: ChangeRequestCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ChangeRequestRead:
    return engagement_service.create_change_request(db, ctx, engagement_id, payload)


@router.patch("/{engagement_id}/change-requests/{change_request_id}", response_model=ChangeRequestRead)
def change_change_request_status(
    engagement_id: uuid.UUID,
    change_request_id: uuid.UUID,
    payload: ChangeRequestStatusChange,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ChangeRequestRead:
    return engagement_service.change_change_request_status(db, ctx, engagement_id, change_request_id, payload.status)


@dependencies_router.post("", response_model=DependencyRead, status_code=status.HTTP_201_CREATED)
def create_dependency(
    payload: DependencyCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DependencyRead:
    return engagement_service.create_dependency(db, ctx, payload)


@dependencies_router.get("", response_model=list[DependencyRead])
def list_dependencies(
    node_type: str | None = Query(default=None),
    node_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[DependencyRead]:
    return engagement_service.list_dependencies(db, ctx, node_type, node_id)


@dependencies_router.delete("/{dependency_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_dependency(
    dependency_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Response:
    engagement_service.delete_dependency(db, ctx, dependency_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
