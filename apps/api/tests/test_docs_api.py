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
        return AuthUser(sub="doc-owner", roles=["user"])

    events.published_events.clear()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    events.published_events.clear()


def _document(client: TestClient) -> str:
    response = client.post("/api/docs", json={"title": "Statement of work", "doc_type": "sow"})
    assert response.status_code == 201
    assert response.json()["status"] == "draft"
    assert response.json()["created_by"] == "doc-owner"
    return response.json()["id"]


def test_versions_increment_per_document(client: TestClient) -> None:
    document_id = _document(client)
    digest = "AB" * 32

    first = client.post(f"/api/docs/{document_id}/versions", json={"storage_ref": "s3://docs/sow-v1.pdf", "hash_sha256": digest})
    second = client.post(
        f"/api/docs/{document_id}/versions",
        json={"storage_ref": "s3://docs/sow-v2.pdf", "hash_sha256": "c" * 64, "change_note": "pricing"},
    )

    assert first.status_code == 201
    assert first.json()["vnum"] == 1
    assert first.json()["hash_sha256"] == "ab" * 32
    assert first.json()["hash_prefix"] == "ab" * 6
    assert second.json()["vnum"] == 2

    listed = client.get(f"/api/docs/{document_id}/versions")
    assert [row["vnum"] for row in listed.json()] == [1, 2]


def test_version_hash_must_be_sha256_hex(client: TestClient) -> None:
    document_id = _document(client)
    response = client.post(f"/api/docs/{document_id}/versions", json={"storage_ref": "s3://x", "hash_sha256": "abc"})
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_document_cannot_skip_review(client: TestClient) -> None:
    document_id = _document(client)
    response = client.patch(f"/api/docs/{document_id}/status", json={"status": "released"})
    assert response.status_code == 422
    assert response.json()["details"]["from"] == "draft"
    assert response.json()["details"]["to"] == "released"
    assert not any(item["event_type"] == "document.released" for item in events.published_events)


def test_release_publishes_event_and_stamps_released_at(client: TestClient) -> None:
    document_id = _document(client)
    for status_value in ("in_review", "approved", "released"):
        response = client.patch(f"/api/docs/{document_id}/status", json={"status": status_value})
        assert response.status_code == 200

    document = client.get(f"/api/docs/{document_id}").json()
    assert document["status"] == "released"
    assert document["released_at"] is not None

    released = [item for item in events.published_events if item["event_type"] == "document.released"]
    assert len(released) == 1
    assert released[0]["payload"] == {"title": "Statement of work", "doc_type": "sow"}

    archived = client.patch(f"/api/docs/{document_id}/status", json={"status": "archived"})
    assert archived.json()["status"] == "archived"


def test_documents_filter_by_type(client: TestClient) -> None:
    _document(client)
    client.post("/api/docs", json={"title": "Ops runbook", "doc_type": "runbook"})

    runbooks = client.get("/api/docs", params={"type": "runbook"})
    assert [row["title"] for row in runbooks.json()] == ["Ops runbook"]
