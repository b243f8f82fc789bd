from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from meridian import events
from meridian.core.auth import AuthUser, get_current_user
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
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user() -> AuthUser:
        return AuthUser(sub="support-agent", roles=["user"])

    events.published_events.clear()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    events.published_events.clear()



def _thread(client: TestClient, **extra: str) -> dict:
    response = client.post(
        "/api/comms/threads",
        json={"channel": "email", "subject": "Invoice question", **extra},
    )
    assert response.status_code == 201
    return response.json()


def test_thread_with_body_records_inbound_message(client: TestClient) -> None:
    thread = _thread(client, body="Why was March billed twice?", from_addr="ap@client.example")
    assert thread["status"] == "active"
    assert thread["process_state"] == "triage"
    assert thread["first_msg_at"] is not None

    detail = client.get(f"/api/comms/threads/{thread['id']}").json()
    assert detail["thread"]["id"] == thread["id"]
    assert [(row["direction"], row["from_addr"]) for row in detail["messages"]] == [("in", "ap@client.example")]


def test_thread_without_body_has_no_messages(client: TestClient) -> None:
    thread = _thread(client)
    assert thread["first_msg_at"] is None
    assert client.get(f"/api/comms/threads/{thread['id']}").json()["messages"] == []


def test_reply_adds_outbound_message(client: TestClient) -> None:
    thread = _thread(client)
    reply = client.post(f"/api/comms/threads/{thread['id']}/reply", json={"body": "Looking into it now."})
    assert reply.status_code == 201
    assert reply.json()["direction"] == "out"
    assert reply.json()["snippet"] == "Looking into it now."

    detail = client.get(f"/api/comms/threads/{thread['id']}").json()
    assert detail["thread"]["first_msg_at"] is not None
    assert len(detail["messages"]) == 1


def test_empty_update_is_rejected(client: TestClient) -> None:
    thread = _thread(client)
    response = client.patch(f"/api/comms/threads/{thread['id']}", json={})
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_update_without_status_changes_fields_only(client: TestClient) -> None:
    thread = _thread(client)
    response = client.patch(
        f"/api/comms/threads/{thread['id']}",
        json={"process_state": "in_processing", "assigned_user_id": "agent-7"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "active"
    assert response.json()["process_state"] == "in_processing"
    assert response.json()["assigned_user_id"] == "agent-7"

    queued = client.get("/api/comms/threads", params={"process_state": "in_processing"})
    assert [row["id"] for row in queued.json()] == [thread["id"]]


def test_resolved_thread_must_be_reopened(client: TestClient) -> None:
    thread = _thread(client)
    resolved = client.patch(f"/api/comms/threads/{thread['id']}", json={"status": "resolved", "process_state": "done"})
    assert resolved.json()["status"] == "resolved"
    assert resolved.json()["process_state"] == "done"

    back_to_active = client.patch(f"/api/comms/threads/{thread['id']}", json={"status": "active"})
    assert back_to_active.status_code == 422
    assert back_to_active.json()["code"] == "INVALID_TRANSITION"
    assert back_to_active.json()["details"]["label"] == "comms thread status"

    reopened = client.patch(f"/api/comms/threads/{thread['id']}", json={"status": "reopened"})
    assert reopened.status_code == 200
    assert reopened.json()["status"] == "reopened"


def test_threads_are_scoped_to_org(client: TestClient) -> None:
    thread = _thread(client)
    response = client.get(f"/api/comms/threads/{thread['id']}", headers={"x-org-id": "55"})
    assert response.status_code == 404
    assert client.get("/api/comms/threads", headers={"x-org-id": "55"}).json() == []
