from __future__ import annotations

from collections.abc import Generator
from decimal import Decimal

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
        return AuthUser(sub="finance-user", roles=["user"])

    events.published_events.clear()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    events.published_events.clear()


def _invoice(client: TestClient) -> dict:
    contract = client.post(
        "/api/billing/contracts",
        json={"contract_type": "time_materials", "currency": "USD", "start_date": "2026-01-01"},
    )
    assert contract.status_code == 201
    contract_id = contract.json()["id"]

    entry = client.post(
        "/api/billing/time-entries",
        json={
            "contract_id": contract_id,
            "person_ref": "consultant-1",
            "hours": "6",
            "entry_date": "2026-02-10",
            "bill_rate": "125",
        },
    )
    assert entry.status_code == 201
    approved = client.post(f"/api/billing/time-entries/{entry.json()['id']}/approve")
    assert approved.json()["status"] == "approved"

    invoice = client.post(
        "/api/billing/invoices",
        json={"contract_id": contract_id, "period_start": "2026-02-01", "period_end": "2026-02-28"},
    )
    assert invoice.status_code == 201
    return invoice.json()


def test_time_entry_hours_are_validated(client: TestClient) -> None:
    response = client.post(
        "/api/billing/time-entries",
        json={"person_ref": "consultant-1", "hours": "25", "entry_date": "2026-02-10"},
    )
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_contract_with_inverted_dates_is_bad_request(client: TestClient) -> None:
    response = client.post(
        "/api/billing/contracts",
        json={"contract_type": "retainer", "start_date": "2026-03-01", "end_date": "2026-02-01"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "BAD_REQUEST"
    assert response.json()["message"] == "end_date must not precede start_date"


def test_payment_flow_settles_then_closes_invoice(client: TestClient) -> None:
    invoice = _invoice(client)
    assert Decimal(invoice["total_amount"]) == Decimal("750")

    sent = client.patch(f"/api/billing/invoices/{invoice['id']}", json={"status": "sent"})
    assert sent.json()["sent_at"] is not None

    paid = client.post(
        "/api/billing/payments",
        json={"invoice_id": invoice["id"], "amount": "750", "payment_method": "ach"},
    )
    assert paid.status_code == 201
    assert paid.json()["invoice"]["status"] == "paid"
    assert Decimal(paid.json()["invoice"]["outstanding_amount"]) == Decimal("0")

    again = client.post(
        "/api/billing/payments",
        json={"invoice_id": invoice["id"], "amount": "1", "payment_method": "ach"},
    )
    assert again.status_code == 409
    body = again.json()
    assert body["code"] == "INVOICE_CLOSED"
    assert body["message"] == "invoice is paid"
    assert body["details"] == {"status": "paid"}


def test_invoice_cannot_skip_back_to_draft(client: TestClient) -> None:
    invoice = _invoice(client)
    client.patch(f"/api/billing/invoices/{invoice['id']}", json={"status": "sent"})

    response = client.patch(f"/api/billing/invoices/{invoice['id']}", json={"status": "draft"})
    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_TRANSITION"
    assert response.json()["message"] == "Invalid invoice status sent->draft"


def test_invoice_history_lists_work_events(client: TestClient) -> None:
    invoice = _invoice(client)
    client.patch(f"/api/billing/invoices/{invoice['id']}", json={"status": "sent"})

    history = client.get("/api/work-events", params={"item_type": "invoice", "item_id": invoice["id"]})
    assert history.status_code == 200
    assert [row["event_name"] for row in history.json()] == ["invoice.created", "invoice.status.sent"]

    other_org = client.get(
        "/api/work-events",
        params={"item_type": "invoice", "item_id": invoice["id"]},
        headers={"x-org-id": "2"},
    )
    assert other_org.json() == []


def test_invoice_is_invisible_to_other_orgs(client: TestClient) -> None:
    invoice = _invoice(client)
    response = client.get(f"/api/billing/invoices/{invoice['id']}", headers={"x-org-id": "2"})
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"
