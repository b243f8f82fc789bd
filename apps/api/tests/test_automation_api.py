from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from meridian import events
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


@pytest.fixture()
def roles() -> list[str]:
    return ["user", "comms.write"]


@pytest.fixture()
def client(db_session: Session, roles: list[str]) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user() -> AuthUser:
        return AuthUser(sub="ops-user", roles=roles)

    get_settings.cache_clear()
    events.published_events.clear()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    events.published_events.clear()
    get_settings.cache_clear()


RULE = {
    "name": "Acknowledge triaged candidates",
    "status": "active",
    "trigger": {"event_types": ["candidate.status_changed"]},
    "conditions": {"var": "payload.to", "==": "triaged"},
    "actions": [{"type": "comms.draft_reply", "params": {"template": "triage-ack"}}],
}


def test_domain_event_flows_into_automation(client: TestClient) -> None:
    rule = client.post("/api/automation/rules", json=RULE)
    assert rule.status_code == 201
    rule_id = rule.json()["id"]

    candidate = client.post("/api/candidates", json={"title": "Analytics uplift"})
    candidate_id = candidate.json()["id"]
    client.post(f"/api/candidates/{candidate_id}/transition", json={"to": "triaged"})

    logs = client.get("/api/automation/logs", params={"rule_id": rule_id})
    assert [row["outcome"] for row in logs.json()] == ["triggered"]

    jobs = client.get("/api/automation/jobs", params={"rule_id": rule_id}).json()
    assert len(jobs) == 1
    assert jobs[0]["action_type"] == "comms.draft_reply"
    assert jobs[0]["status"] == "queued"

    fetched = client.get(f"/api/automation/jobs/{jobs[0]['id']}")
    assert fetched.json()["idempotency_key"] == jobs[0]["idempotency_key"]


def test_ingest_endpoint_reports_duplicates(client: TestClient) -> None:
    body = {"type": "lead.created", "source": "webhook", "payload": {"email": "a@b.example"}, "dedupe_key": "lead-42"}

    first = client.post("/api/automation/events", json=body)
    second = client.post("/api/automation/events", json=body)

    assert first.status_code == 200
    assert first.json()["ingested"] is True
    assert first.json()["duplicate"] is False
    assert second.json() == {"event_id": None, "duplicate": True, "ingested": False, "outcomes": []}


def test_dry_run_endpoint(client: TestClient) -> None:
    response = client.post(
        "/api/automation/test",
        json={"rule": RULE, "sample_event": {"type": "candidate.status_changed", "payload": {"to": "nurture"}}},
    )
    assert response.status_code == 200
    assert response.json()["matches"] is False
    assert response.json()["reason"] == "Conditions not satisfied"


def test_job_transition_endpoint(client: TestClient) -> None:
    client.post("/api/automation/rules", json={**RULE, "trigger": {"event_types": ["lead.*"]}, "conditions": None})
    client.post("/api/automation/events", json={"type": "lead.created"})
    job_id = client.get("/api/automation/jobs").json()[0]["id"]

    started = client.post(f"/api/automation/jobs/{job_id}/transition", json={"action": "start"})
    assert started.json()["status"] == "running"
    assert started.json()["attempts"] == 1

    invalid = client.post(f"/api/automation/jobs/{job_id}/transition", json={"action": "retry"})
    assert invalid.status_code == 422
    assert invalid.json()["code"] == "INVALID_TRANSITION"

    unknown = client.post(f"/api/automation/jobs/{job_id}/transition", json={"action": "explode"})
    assert unknown.status_code == 422
    assert unknown.json()["code"] == "VALIDATION_ERROR"


def test_rule_status_endpoint(client: TestClient) -> None:
    rule_id = client.post("/api/automation/rules", json={**RULE, "status": "draft"}).json()["id"]

    activated = client.post(f"/api/automation/rules/{rule_id}/status", json={"status": "active"})
    assert activated.json()["status"] == "active"

    listed = client.get("/api/automation/rules", params={"status": "active"})
    assert [row["id"] for row in listed.json()] == [rule_id]


@pytest.mark.parametrize("roles", [["user"]])
def test_rule_with_privileged_action_is_forbidden(client: TestClient) -> None:
    response = client.post("/api/automation/rules", json=RULE)
    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "ACTION_PERMISSION_DENIED"
    assert body["details"] == {"missing": ["comms.write"]}


@pytest.mark.parametrize("roles", [["admin"]])
def test_admin_bypasses_action_permissions(client: TestClient) -> None:
    response = client.post("/api/automation/rules", json=RULE)
    assert response.status_code == 201


def test_rules_are_org_scoped(client: TestClient) -> None:
    rule_id = client.post("/api/automation/rules", json=RULE).json()["id"]
    response = client.get(f"/api/automation/rules/{rule_id}", headers={"x-org-id": "3"})
    assert response.status_code == 404
