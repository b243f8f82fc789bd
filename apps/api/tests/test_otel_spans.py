from __future__ import annotations

import os
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

from meridian.core.auth import AuthUser, get_current_user
from meridian.core.config import get_settings
from meridian.core.database import Base, get_db
from meridian.main import app
from meridian.otel import setup_inmemory_otel


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
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("api")
    exporter.clear()
    return exporter


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


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.post(
        "/api/candidates",
        json={"title": "OTel Candidate"},
        headers={"X-Correlation-Id": "otel-corr-1"},
    )
    assert response.status_code == 201

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_automation_spans_carry_event_context(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    rule = client.post(
        "/api/automation/rules",
        json={
            "name": "OTel rule",
            "status": "active",
            "trigger": {"event_types": ["ticket.opened"]},
            "actions": [{"type": "comms.draft_reply"}],
        },
    )
    assert rule.status_code == 201

    ingested = client.post(
        "/api/automation/events",
        json={"type": "ticket.opened", "correlation_id": "otel-auto-1"},
    )
    assert ingested.status_code == 200
    event_id = ingested.json()["event_id"]

    spans = span_exporter.get_finished_spans()
    by_name = {span.name: span for span in spans if span.name.startswith("automation.")}
    assert {"automation.event.ingest", "automation.event.process", "automation.rule.evaluate"} <= set(by_name)

    ingest_span = by_name["automation.event.ingest"]
    assert ingest_span.attributes.get("event_id") == event_id
    assert ingest_span.attributes.get("event_type") == "ticket.opened"
    assert ingest_span.attributes.get("correlation_id") == "otel-auto-1"
    assert ingest_span.attributes.get("org_id") == 1

    assert by_name["automation.event.process"].attributes.get("rules_matched") == 1
    assert by_name["automation.rule.evaluate"].attributes.get("rule_id") == rule.json()["id"]
    assert by_name["automation.rule.evaluate"].attributes.get("jobs_queued") == 1
