from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from meridian.context import reset_org_id, set_org_id
from meridian.core.auth import AuthUser, get_current_user
from meridian.core.config import get_settings
from meridian.core.database import Base, get_db
from meridian.logging import JsonLogFormatter, KeyValueLogFormatter
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
def setup_env() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user() -> AuthUser:
        return AuthUser(sub="user-1", roles=["user", "comms.write"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    path = f"/api/comms/threads/{uuid.uuid4()}"
    response = client.get(path, headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404

    records = [record for record in caplog.records if record.name == "meridian.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/api/comms/threads/{thread_id}"
        and getattr(record, "status_code", None) == 404
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_rejected_transition_is_logged_with_context(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    candidate = client.post("/api/candidates", json={"title": "Log Candidate"})
    candidate_id = candidate.json()["id"]
    response = client.post(
        f"/api/candidates/{candidate_id}/transition",
        json={"to": "promoted"},
        headers={"X-Correlation-Id": "abc-456"},
    )
    assert response.status_code == 422

    records = [record for record in caplog.records if record.name == "meridian.state"]
    assert any(
        record.getMessage() == "state.transition_rejected"
        and getattr(record, "entity_id", None) == candidate_id
        and getattr(record, "from_state", None) == "new"
        and getattr(record, "to_state", None) == "promoted"
        and getattr(record, "correlation_id", None) == "abc-456"
        for record in records
    )


def test_automation_logs_include_rule_and_event(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    rule = client.post(
        "/api/automation/rules",
        json={
            "name": "Log rule",
            "status": "active",
            "trigger": {"event_types": ["ticket.opened"]},
            "actions": [{"type": "comms.draft_reply"}],
        },
    )
    assert rule.status_code == 201
    ingested = client.post("/api/automation/events", json={"type": "ticket.opened"}, headers={"X-Correlation-Id": "abc-789"})
    event_id = ingested.json()["event_id"]

    records = [record for record in caplog.records if record.name == "meridian.automation"]
    messages = {record.getMessage() for record in records}
    assert {"automation.event_ingested", "automation.job_queued", "automation.rule_outcome"} <= messages
    assert any(
        record.getMessage() == "automation.rule_outcome"
        and getattr(record, "rule_id", None) == rule.json()["id"]
        and getattr(record, "event_id", None) == event_id
        and getattr(record, "outcome", None) == "triggered"
        and getattr(record, "correlation_id", None) == "abc-789"
        for record in records
    )


def test_json_formatter_keeps_known_fields_only() -> None:
    record = logging.makeLogRecord(
        {
            "name": "meridian.state",
            "levelname": "INFO",
            "msg": "state.changed",
            "correlation_id": "fmt-1",
            "domain": "invoice",
            "to_state": "sent",
            "password": "secret",
        }
    )
    formatted = JsonLogFormatter().format(record)
    assert '"correlation_id": "fmt-1"' in formatted
    assert '"domain": "invoice"' in formatted
    assert "secret" not in formatted


def test_json_formatter_truncates_errors_and_uses_request_org() -> None:
    token = set_org_id(12)
    try:
        record = logging.makeLogRecord(
            {"name": "meridian.lifecycle", "levelname": "ERROR", "msg": "automation_ingest_failed", "error": "x" * 900}
        )
        fields = json.loads(JsonLogFormatter().format(record))["fields"]
    finally:
        reset_org_id(token)

    assert len(fields["error"]) == 500
    assert fields["org_id"] == 12


def test_key_value_formatter_renders_sorted_fields() -> None:
    record = logging.makeLogRecord(
        {
            "name": "meridian.state",
            "levelname": "INFO",
            "msg": "state.changed",
            "correlation_id": "kv-1",
            "to_state": "sent",
            "domain": "invoice",
        }
    )
    line = KeyValueLogFormatter().format(record)
    assert "state.changed correlation_id=kv-1 domain=invoice to_state=sent" in line
