from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from meridian.core.auth import AuthUser, get_current_user
from meridian.core.config import get_settings
from meridian.core.database import Base, get_db
from meridian.main import app


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
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def roles() -> list[str]:
    return ["system.metrics.read", "comms.write"]


@pytest.fixture()
def client(db_session: Session, roles: list[str]) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_auth_user() -> AuthUser:
        return AuthUser(sub="metrics-admin", roles=roles)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_auth_user

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_metrics_endpoint_exposes_http_state_and_automation_metrics(client: TestClient) -> None:
    health = client.get("/health")
    assert health.status_code == 200

    candidate = client.post("/api/candidates", json={"title": "Metrics Candidate"})
    assert candidate.status_code == 201
    rejected = client.post(f"/api/candidates/{candidate.json()['id']}/transition", json={"to": "promoted"})
    assert rejected.status_code == 422

    client.post("/api/dependencies", json={"from_type": "task", "from_id": "m1", "to_type": "task", "to_id": "m2"})
    cycle = client.post("/api/dependencies", json={"from_type": "task", "from_id": "m2", "to_type": "task", "to_id": "m1"})
    assert cycle.status_code == 400

    client.post(
        "/api/automation/rules",
        json={
            "name": "Metrics rule",
            "status": "active",
            "trigger": {"event_types": ["metrics.*"]},
            "actions": [{"type": "comms.draft_reply"}],
        },
    )
    client.post("/api/automation/events", json={"type": "metrics.ping", "dedupe_key": "ping-1"})
    client.post("/api/automation/events", json={"type": "metrics.ping", "dedupe_key": "ping-1"})

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "state_transition_rejections_total" in body
    assert "dependency_cycle_rejections_total" in body
    assert "automation_events_total" in body
    assert "automation_rule_outcomes_total" in body
    assert "automation_jobs_total" in body

    assert 'path="/health"' in body
    assert 'path="/api/candidates/{candidate_id}/transition"' in body
    assert 'domain="candidate"' in body
    assert 'result="duplicate"' in body
    assert 'outcome="triggered"' in body
    assert 'action_type="comms.draft_reply"' in body


@pytest.mark.parametrize("roles", [["user"]])
def test_metrics_endpoint_requires_metrics_role(client: TestClient) -> None:
    response = client.get("/metrics")
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_metrics_endpoint_hidden_when_disabled(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()
    response = client.get("/metrics")
    assert response.status_code == 404
