from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from meridian.business.automation import router as automation_router
from meridian.business.billing import router as billing_router
from meridian.business.comms import router as comms_router
from meridian.business.docs import router as docs_router
from meridian.business.engagements import dependencies_router, router as engagements_router
from meridian.business.workstream import router as workstream_router
from meridian.core.auth import AuthUser, get_current_user
from meridian.core.config import get_settings
from meridian.core.database import get_db
from meridian.metrics import generate_metrics_payload, metrics_content_type
from meridian.platform.security.context import AuthContext
from meridian.platform.security.dependencies import get_auth_context
from meridian.services.work_events import list_work_events

router = APIRouter()
router.include_router(workstream_router)
router.include_router(engagements_router)
router.include_router(dependencies_router)
router.include_router(billing_router)
router.include_router(docs_router)
router.include_router(comms_router)
router.include_router(automation_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
async def me(user: AuthUser = Depends(get_current_user)) -> dict[str, str | list[str]]:
    return {
        "sub": user.sub,
        "roles": user.roles,
    }


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if "system.metrics.read" not in user.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing permission: system.metrics.read")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())


@router.get("/api/work-events", tags=["system"])
def work_events(
    item_type: str = Query(min_length=1, max_length=32),
    item_id: str = Query(min_length=1, max_length=64),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[dict[str, object]]:
    return [
        {
            "id": str(event.id),
            "event_name": event.event_name,
            "payload": event.payload,
            "actor_user_id": event.actor_user_id,
            "correlation_id": event.correlation_id,
            "happened_at": event.happened_at.isoformat(),
        }
        for event in list_work_events(db, ctx.org_id, item_type, item_id)
    ]
