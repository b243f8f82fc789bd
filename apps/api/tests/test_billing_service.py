from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from meridian import events
from meridian.business.billing.schemas import (
    ContractCreate,
    ContractMilestoneCreate,
    CreditNoteCreate,
    InvoiceCreate,
    PaymentCreate,
    TimeEntryCreate,
    TimeEntryRead,
)
from meridian.business.billing.service import BillingService
from meridian.core.database import Base
from meridian.platform.security.context import AuthContext
from meridian.services.work_events import list_work_events


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
def clear_events() -> Generator[None, None, None]:
    events.published_events.clear()
    yield
    events.published_events.clear()


def _ctx(org_id: int = 1) -> AuthContext:
    return AuthContext(user_id="finance-user", org_id=org_id, correlation_id="corr-billing")


def _contract(service: BillingService, session: Session, ctx: AuthContext):  # type: ignore[no-untyped-def]
    return service.create_contract(
        session,
        ctx,
        ContractCreate(contract_type="time_materials", currency="usd", start_date=date(2026, 1, 1)),
    )


def _approved_entry(
    service: BillingService,
    session: Session,
    ctx: AuthContext,
    contract_id: uuid.UUID,
    hours: str,
    rate: str,
    entry_date: date,
) -> TimeEntryRead:
    entry = service.create_time_entry(
        session,
        ctx,
        TimeEntryCreate(
            contract_id=contract_id,
            person_ref="consultant-1",
            hours=Decimal(hours),
            entry_date=entry_date,
            bill_rate=Decimal(rate),
        ),
    )
    return service.approve_time_entry(session, ctx, entry.id)


def test_contract_end_date_must_follow_start(db_session: Session) -> None:
    service = BillingService()
    with pytest.raises(HTTPException) as exc_info:
        service.create_contract(
            db_session,
            _ctx(),
            ContractCreate(contract_type="fixed_price", start_date=date(2026, 5, 1), end_date=date(2026, 4, 1)),
        )
    assert exc_info.value.status_code == 400


def test_contract_currency_is_normalized_and_starts_in_draft(db_session: Session) -> None:
    contract = _contract(BillingService(), db_session, _ctx())
    assert contract.currency == "USD"
    assert contract.status == "draft"


def test_time_entry_approval_publishes_event(db_session: Session) -> None:
    service = BillingService()
    ctx = _ctx()
    contract = _contract(service, db_session, ctx)

    approved = _approved_entry(service, db_session, ctx, contract.id, "8", "150", date(2026, 3, 2))

    assert approved.status == "approved"
    assert approved.approved_by == "finance-user"
    assert approved.approved_at is not None
    published = [item for item in events.published_events if item["event_type"] == "time_entry.approved"]
    assert len(published) == 1
    assert published[0]["entity_id"] == str(approved.id)
    assert published[0]["correlation_id"] == "corr-billing"
    assert published[0]["payload"]["contract_id"] == str(contract.id)


def test_approved_time_entry_cannot_be_rejected(db_session: Session) -> None:
    service = BillingService()
    ctx = _ctx()
    contract = _contract(service, db_session, ctx)
    approved = _approved_entry(service, db_session, ctx, contract.id, "1", "10", date(2026, 3, 2))

    with pytest.raises(HTTPException) as exc_info:
        service.reject_time_entry(db_session, ctx, approved.id, "late")
    assert exc_info.value.status_code == 422
    assert exc_info.value.detail["code"] == "INVALID_TRANSITION"


def test_rejected_time_entry_can_be_resubmitted(db_session: Session) -> None:
    service = BillingService()
    ctx = _ctx()
    entry = service.create_time_entry(
        db_session,
        ctx,
        TimeEntryCreate(person_ref="consultant-2", hours=Decimal("3"), entry_date=date(2026, 3, 3)),
    )
    rejected = service.reject_time_entry(db_session, ctx, entry.id, "wrong project")
    assert rejected.rejected_reason == "wrong project"

    resubmitted = service.resubmit_time_entry(db_session, ctx, entry.id)
    assert resubmitted.status == "submitted"


def test_time_entry_for_other_org_contract_is_not_found(db_session: Session) -> None:
    service = BillingService()
    contract = _contract(service, db_session, _ctx(org_id=1))
    with pytest.raises(HTTPException) as exc_info:
        service.create_time_entry(
            db_session,
            _ctx(org_id=2),
            TimeEntryCreate(
                contract_id=contract.id, person_ref="consultant-1", hours=Decimal("1"), entry_date=date(2026, 3, 2)
            ),
        )
    assert exc_info.value.status_code == 404


def test_invoice_totals_approved_time_and_ready_milestones(db_session: Session) -> None:
    service = BillingService()
    ctx = _ctx()
    contract = _contract(service, db_session, ctx)

    _approved_entry(service, db_session, ctx, contract.id, "8", "150", date(2026, 3, 2))
    _approved_entry(service, db_session, ctx, contract.id, "2", "100", date(2026, 3, 31))
    _approved_entry(service, db_session, ctx, contract.id, "5", "150", date(2026, 4, 1))
    service.create_time_entry(
        db_session,
        ctx,
        TimeEntryCreate(
            contract_id=contract.id,
            person_ref="consultant-1",
            hours=Decimal("4"),
            entry_date=date(2026, 3, 10),
            bill_rate=Decimal("150"),
        ),
    )
    ready = service.add_contract_milestone(
        db_session, ctx, contract.id, ContractMilestoneCreate(name="Design sign-off", amount=Decimal("500"))
    )
    service.change_contract_milestone_status(db_session, ctx, contract.id, ready.id, "ready")
    service.add_contract_milestone(
        db_session, ctx, contract.id, ContractMilestoneCreate(name="Go-live", amount=Decimal("300"))
    )

    invoice = service.create_invoice(
        db_session,
        ctx,
        InvoiceCreate(
            contract_id=contract.id,
            period_start=date(2026, 3, 1),
            period_end=date(2026, 3, 31),
            tax_amount=Decimal("100"),
        ),
    )

    assert invoice.status == "draft"
    assert invoice.currency == "USD"
    assert invoice.invoice_number.startswith("INV-")
    assert invoice.total_amount == Decimal("1900")
    assert invoice.outstanding_amount == Decimal("2000")


def test_invoice_period_must_be_ordered(db_session: Session) -> None:
    service = BillingService()
    ctx = _ctx()
    contract = _contract(service, db_session, ctx)
    with pytest.raises(HTTPException) as exc_info:
        service.create_invoice(
            db_session,
            ctx,
            InvoiceCreate(contract_id=contract.id, period_start=date(2026, 3, 31), period_end=date(2026, 3, 1)),
        )
    assert exc_info.value.status_code == 400


def _invoice_with_total(service: BillingService, session: Session, ctx: AuthContext):  # type: ignore[no-untyped-def]
    contract = _contract(service, session, ctx)
    _approved_entry(service, session, ctx, contract.id, "10", "100", date(2026, 3, 2))
    return service.create_invoice(
        session,
        ctx,
        InvoiceCreate(contract_id=contract.id, period_start=date(2026, 3, 1), period_end=date(2026, 3, 31)),
    )


def test_invoice_status_change_stamps_sent_at(db_session: Session) -> None:
    service = BillingService()
    ctx = _ctx()
    invoice = _invoice_with_total(service, db_session, ctx)

    sent = service.change_invoice_status(db_session, ctx, invoice.id, "sent")
    assert sent.status == "sent"
    assert sent.sent_at is not None

    with pytest.raises(HTTPException) as exc_info:
        service.change_invoice_status(db_session, ctx, invoice.id, "draft")
    assert exc_info.value.status_code == 422


def test_partial_then_full_payment_settles_invoice(db_session: Session) -> None:
    service = BillingService()
    ctx = _ctx()
    invoice = _invoice_with_total(service, db_session, ctx)
    service.change_invoice_status(db_session, ctx, invoice.id, "sent")

    partial = service.record_payment(
        db_session, ctx, PaymentCreate(invoice_id=invoice.id, amount=Decimal("400"), payment_method="ach")
    )
    assert partial.invoice.status == "sent"
    assert partial.invoice.paid_amount == Decimal("400")
    assert partial.invoice.outstanding_amount == Decimal("600")

    settled = service.record_payment(
        db_session, ctx, PaymentCreate(invoice_id=invoice.id, amount=Decimal("600"), payment_method="wire")
    )
    assert settled.invoice.status == "paid"
    assert settled.invoice.paid_at is not None
    assert settled.invoice.outstanding_amount == Decimal("0")
    assert len(service.list_payments(db_session, ctx, invoice.id)) == 2

    recorded = [item for item in events.published_events if item["event_type"] == "payment.recorded"]
    assert [item["payload"]["settled"] for item in recorded] == [False, True]

    names = [event.event_name for event in list_work_events(db_session, ctx.org_id, "invoice", invoice.id)]
    assert "invoice.status.paid" in names


def test_full_payment_settles_a_draft_invoice(db_session: Session) -> None:
    service = BillingService()
    ctx = _ctx()
    invoice = _invoice_with_total(service, db_session, ctx)

    result = service.record_payment(
        db_session, ctx, PaymentCreate(invoice_id=invoice.id, amount=Decimal("1000"), payment_method="card")
    )
    assert result.invoice.status == "paid"


def test_payment_on_closed_invoice_is_rejected(db_session: Session) -> None:
    service = BillingService()
    ctx = _ctx()
    invoice = _invoice_with_total(service, db_session, ctx)
    service.change_invoice_status(db_session, ctx, invoice.id, "voided")

    with pytest.raises(HTTPException) as exc_info:
        service.record_payment(
            db_session, ctx, PaymentCreate(invoice_id=invoice.id, amount=Decimal("10"), payment_method="cash")
        )
    assert exc_info.value.status_code == 409
    assert exc_info.value.detail["code"] == "INVOICE_CLOSED"
    assert exc_info.value.detail["status"] == "voided"


def test_payment_currency_must_match_invoice(db_session: Session) -> None:
    service = BillingService()
    ctx = _ctx()
    invoice = _invoice_with_total(service, db_session, ctx)

    with pytest.raises(HTTPException) as exc_info:
        service.record_payment(
            db_session,
            ctx,
            PaymentCreate(invoice_id=invoice.id, amount=Decimal("10"), currency="EUR", payment_method="wire"),
        )
    assert exc_info.value.status_code == 400


def test_credit_note_cannot_exceed_invoice_total(db_session: Session) -> None:
    service = BillingService()
    ctx = _ctx()
    invoice = _invoice_with_total(service, db_session, ctx)

    with pytest.raises(HTTPException) as exc_info:
        service.create_credit_note(db_session, ctx, invoice.id, CreditNoteCreate(amount=Decimal("1000.01")))
    assert exc_info.value.status_code == 400

    note = service.create_credit_note(db_session, ctx, invoice.id, CreditNoteCreate(amount=Decimal("250"), reason="goodwill"))
    assert note.status == "draft"
    issued = service.change_credit_note_status(db_session, ctx, invoice.id, note.id, "issued")
    assert issued.issued_at is not None
