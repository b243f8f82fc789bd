from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from meridian import events
from meridian.business.automation.models import AutomationEvent
from meridian.core.auth import AuthUser, get_current_user
from meridian.core.config import get_settings
from meridian.core.database import Base, get_db
from meridian.main import app
from meridian.models.work_event import WorkEvent


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_stubs() -> Generator[None, None, None]:
    events.published_events.clear()
    get_settings.cache_clear()
    yield
    events.published_events.clear()
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user() -> AuthUser:
        return AuthUser(sub="user-1", roles=["user"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_generated_correlation_id_returned_in_header_and_error_envelope(client: TestClient) -> None:
    response = client.get(f"/api/candidates/{uuid.uuid4()}")
    assert response.status_code == 404
    header_value = response.headers.get("x-correlation-id")
    assert header_value
    body = response.json()
    assert body["correlation_id"] == header_value


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.get(f"/api/candidates/{uuid.uuid4()}", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id") == "abc-123"
    assert response.json()["correlation_id"] == "abc-123"


def test_work_event_uses_request_correlation_id(client: TestClient, db_session: Session) -> None:
    response = client.post(
        "/api/candidates",
        json={"title": "Corr Candidate"},
        headers={"X-Correlation-Id": "corr-work-1"},
    )
    assert response.status_code == 201

    event = db_session.scalar(select(WorkEvent).where(WorkEvent.item_id == response.json()["id"]))
    assert event is not None
    assert event.correlation_id == "corr-work-1"
    assert event.actor_user_id == "user-1"


def test_event_envelope_and_automation_event_carry_correlation_id(client: TestClient, db_session: Session) -> None:
    candidate = client.post("/api/candidates", json={"title": "Corr Event"})
    response = client.post(
        f"/api/candidates/{candidate.json()['id']}/transition",
        json={"to": "triaged"},
        headers={"X-Correlation-Id": "corr-event-1"},
    )
    assert response.status_code == 200

    changed = [item for item in events.published_events if item.get("event_type") == "candidate.status_changed"]
    assert changed
    assert changed[-1].get("correlation_id") == "corr-event-1"

    ingested = db_session.scalar(select(AutomationEvent).where(AutomationEvent.event_type == "candidate.status_changed"))
    assert ingested is not None
    assert ingested.correlation_id == "corr-event-1"
    assert ingested.aggregate_id == candidate.json()["id"]


@pytest.mark.parametrize("supplied", ["x" * 65, "has spaces", "semi;colon"])
def test_unusable_correlation_id_is_replaced(client: TestClient, supplied: str) -> None:
    response = client.get("/health", headers={"X-Correlation-Id": supplied})
    returned = response.headers.get("x-correlation-id")
    assert returned
    assert returned != supplied
    assert uuid.UUID(returned)
