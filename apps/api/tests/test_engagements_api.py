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
        return AuthUser(sub="delivery-lead", roles=["user"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _edge(client: TestClient, source: str, target: str, org_id: str = "7"):  # type: ignore[no-untyped-def]
    return client.post(
        "/api/dependencies",
        json={"from_type": "task", "from_id": source, "to_type": "task", "to_id": target},
        headers={"x-org-id": org_id},
    )


def _engagement(client: TestClient) -> str:
    response = client.post("/api/engagements", json={"engagement_type": "project", "name": "Portal rollout"})
    assert response.status_code == 201
    assert response.json()["status"] == "active"
    return response.json()["id"]


def test_dependency_cycle_is_rejected(client: TestClient) -> None:
    assert _edge(client, "A", "B").status_code == 201
    assert _edge(client, "B", "C").status_code == 201

    cycle = _edge(client, "C", "A")
    assert cycle.status_code == 400
    assert cycle.json()["code"] == "DEPENDENCY_CYCLE"
    assert cycle.json()["details"]["from"] == "task:C"

    assert _edge(client, "D", "A").status_code == 201
    listed = client.get("/api/dependencies", headers={"x-org-id": "7"})
    assert len(listed.json()) == 3


def test_self_dependency_is_rejected(client: TestClient) -> None:
    response = _edge(client, "A", "A")
    assert response.status_code == 400
    assert response.json()["code"] == "DEPENDENCY_CYCLE"


def test_dependency_graphs_are_per_org(client: TestClient) -> None:
    assert _edge(client, "A", "B", org_id="7").status_code == 201
    assert _edge(client, "B", "A", org_id="8").status_code == 201
    assert len(client.get("/api/dependencies", headers={"x-org-id": "8"}).json()) == 1


def test_duplicate_dependency_conflicts(client: TestClient) -> None:
    assert _edge(client, "A", "B").status_code == 201
    duplicate = _edge(client, "A", "B")
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "CONFLICT"


def test_deleting_an_edge_allows_the_reverse(client: TestClient) -> None:
    created = _edge(client, "A", "B")
    assert _edge(client, "B", "A").status_code == 400

    deleted = client.delete(f"/api/dependencies/{created.json()['id']}", headers={"x-org-id": "7"})
    assert deleted.status_code == 204
    assert _edge(client, "B", "A").status_code == 201


def test_dependencies_filter_by_node(client: TestClient) -> None:
    _edge(client, "A", "B")
    _edge(client, "C", "D")
    filtered = client.get("/api/dependencies", params={"node_type": "task", "node_id": "B"}, headers={"x-org-id": "7"})
    assert [(row["from_id"], row["to_id"]) for row in filtered.json()] == [("A", "B")]


def test_feature_state_machine_and_completion_event(client: TestClient) -> None:
    engagement_id = _engagement(client)
    feature = client.post(f"/api/engagements/{engagement_id}/features", json={"title": "SSO login", "priority": "high"})
    assert feature.status_code == 201
    feature_id = feature.json()["id"]

    skipped = client.patch(f"/api/engagements/{engagement_id}/features/{feature_id}", json={"state": "done"})
    assert skipped.status_code == 422
    assert skipped.json()["code"] == "INVALID_TRANSITION"

    for state in ("in_progress", "review", "done"):
        moved = client.patch(f"/api/engagements/{engagement_id}/features/{feature_id}", json={"state": state})
        assert moved.status_code == 200
        assert moved.json()["state"] == state

    completed = [item for item in events.published_events if item["event_type"] == "feature.completed"]
    assert len(completed) == 1
    assert completed[0]["entity_id"] == feature_id
    assert completed[0]["payload"] == {"engagement_id": engagement_id}


def test_engagement_terminal_status(client: TestClient) -> None:
    engagement_id = _engagement(client)
    paused = client.post(f"/api/engagements/{engagement_id}/status", json={"status": "paused"})
    assert paused.json()["status"] == "paused"
    cancelled = client.post(f"/api/engagements/{engagement_id}/status", json={"status": "cancelled"})
    assert cancelled.json()["status"] == "cancelled"

    revived = client.post(f"/api/engagements/{engagement_id}/status", json={"status": "active"})
    assert revived.status_code == 422
    assert revived.json()["details"]["domain"] == "engagement"


def test_change_request_decision_stamps_decided_at(client: TestClient) -> None:
    engagement_id = _engagement(client)
    change_request = client.post(
        f"/api/engagements/{engagement_id}/change-requests",
        json={"origin": "client", "scope_delta": "Add reporting module", "hours_delta": "40"},
    )
    assert change_request.status_code == 201
    change_request_id = change_request.json()["id"]
    assert change_request.json()["created_by"] == "delivery-lead"

    early = client.patch(
        f"/api/engagements/{engagement_id}/change-requests/{change_request_id}", json={"status": "approved"}
    )
    assert early.status_code == 422

    client.patch(f"/api/engagements/{engagement_id}/change-requests/{change_request_id}", json={"status": "review"})
    approved = client.patch(
        f"/api/engagements/{engagement_id}/change-requests/{change_request_id}", json={"status": "approved"}
    )
    assert approved.status_code == 200
    assert approved.json()["decided_at"] is not None


def test_milestone_transitions(client: TestClient) -> None:
    engagement_id = _engagement(client)
    milestone = client.post(f"/api/engagements/{engagement_id}/milestones", json={"name": "Beta launch"})
    assert milestone.status_code == 201
    milestone_id = milestone.json()["id"]
    assert milestone.json()["status"] == "planned"

    done_early = client.patch(f"/api/engagements/{engagement_id}/milestones/{milestone_id}", json={"status": "done"})
    assert done_early.status_code == 422

    started = client.patch(f"/api/engagements/{engagement_id}/milestones/{milestone_id}", json={"status": "in_progress"})
    assert started.json()["status"] == "in_progress"
