from contextlib import asynccontextmanager, contextmanager
import logging
from typing import Any

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from starlette.exceptions import HTTPException as StarletteHTTPException

from meridian.api.errors import http_exception_handler, validation_exception_handler
from meridian.api.routes import router as api_router
from meridian.business.automation.service import automation_service
from meridian.core.config import get_settings
from meridian.core.context import RequestContextMiddleware
from meridian.core.database import SessionLocal, get_db
from meridian.core.events import InternalEvent, event_bus
from meridian.logging import configure_logging
from meridian.middleware.correlation_id import CorrelationIdMiddleware
from meridian.middleware.request_logging import RequestLoggingMiddleware
from meridian.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("meridian.lifecycle")

_AUTOMATION_EVENT_TYPES = (
    "candidate.status_changed",
    "candidate.promoted",
    "pursuit.stage_changed",
    "feature.completed",
    "time_entry.approved",
    "payment.recorded",
    "document.released",
    "document.version.added",
)


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"event_name": event.name})


@contextmanager
def _automation_session_scope():
    override = app.dependency_overrides.get(get_db) if "app" in globals() else None
    if override is None:
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()
        return

    generator = override()
    session = next(generator)
    try:
        yield session
    finally:
        try:
            next(generator)
        except StopIteration:
            pass


def _on_domain_event(event: InternalEvent) -> None:
    if not isinstance(event.payload, dict):
        return
    envelope: dict[str, Any] = event.payload
    try:
        with _automation_session_scope() as session:
            automation_service.ingest_envelope(session, envelope)
    except Exception as exc:
        logger.exception(
            "automation_ingest_failed",
            extra={"event_name": event.name, "org_id": event.org_id, "error": str(exc)[:500]},
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    event_bus.subscribe("system.started", _on_system_started)
    event_bus.subscribe_many(_AUTOMATION_EVENT_TYPES, _on_domain_event)
    event_bus.publish("system.started", {"service": "api"})
    yield
    event_bus.unsubscribe("system.started", _on_system_started)
    event_bus.unsubscribe_many(_AUTOMATION_EVENT_TYPES, _on_domain_event)


app = FastAPI(title="Meridian API", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.include_router(api_router)

settings = get_settings()
if settings.otel_enabled:
    setup_otel("api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
