from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from meridian import events
from meridian.business.billing.models import (
    BillingContract,
    BillingContractMilestone,
    BillingCreditNote,
    BillingInvoice,
    BillingPayment,
    BillingTimeEntry,
    utcnow,
)
from meridian.business.billing.repository import (
    ContractMilestoneRepository,
    ContractRepository,
    CreditNoteRepository,
    InvoiceRepository,
    PaymentRepository,
    TimeEntryRepository,
)
from meridian.business.billing.schemas import (
    ContractCreate,
    ContractMilestoneCreate,
    ContractMilestoneRead,
    ContractRead,
    CreditNoteCreate,
    CreditNoteRead,
    InvoiceCreate,
    InvoiceRead,
    PaymentCreate,
    PaymentRead,
    PaymentResult,
    TimeEntryCreate,
    TimeEntryRead,
)
from meridian.platform.security.context import AuthContext
from meridian.platform.security.errors import AuthorizationError
from meridian.platform.state import TransitionDomain
from meridian.services.state_changes import compare_and_set_status, guard_transition
from meridian.services.work_events import record_work_event


logger = logging.getLogger("meridian.billing")

CENT = Decimal("0.01")
CLOSED_INVOICE_STATUSES = frozenset({"paid", "voided", "credited", "written_off"})


def _money(value: Decimal | int | float | None) -> Decimal:
    return Decimal(value or 0).quantize(CENT)


def _invoice_number() -> str:
    now = utcnow()
    return f"INV-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


@dataclass(slots=True)
class BillingService:
    contract_repository: ContractRepository = ContractRepository()
    contract_milestone_repository: ContractMilestoneRepository = ContractMilestoneRepository()
    time_entry_repository: TimeEntryRepository = TimeEntryRepository()
    invoice_repository: InvoiceRepository = InvoiceRepository()
    payment_repository: PaymentRepository = PaymentRepository()
    credit_note_repository: CreditNoteRepository = CreditNoteRepository()

    # contracts

    def create_contract(self, session: Session, ctx: AuthContext, payload: ContractCreate) -> ContractRead:
        if payload.end_date is not None and payload.end_date < payload.start_date:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_date must not precede start_date")
        values = payload.model_dump()
        values.update(org_id=ctx.org_id, status="draft", currency=payload.currency.upper())
        try:
            self.contract_repository.validate_write_security(values, ctx, action="create")
        except AuthorizationError as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
        contract = BillingContract(**values)
        session.add(contract)
        session.flush()
        record_work_event(
            session, ctx, "contract", contract.id, "contract.created", {"contract_type": contract.contract_type}
        )
        session.commit()
        session.refresh(contract)
        return ContractRead.model_validate(contract)

    def list_contracts(
        self,
        session: Session,
        ctx: AuthContext,
        status_filter: str | None = None,
        engagement_id: uuid.UUID | None = None,
    ) -> list[ContractRead]:
        filters: list[Any] = []
        if status_filter:
            filters.append(BillingContract.status == status_filter)
        if engagement_id is not None:
            filters.append(BillingContract.engagement_id == engagement_id)
        rows = self.contract_repository.list_records(
            session, ctx, *filters, order_by=BillingContract.created_at.desc()
        )
        return [ContractRead.model_validate(row) for row in rows]

    def get_contract(self, session: Session, ctx: AuthContext, contract_id: uuid.UUID) -> ContractRead:
        return ContractRead.model_validate(self._get_contract(session, ctx, contract_id))

    def change_contract_status(
        self, session: Session, ctx: AuthContext, contract_id: uuid.UUID, to_status: str
    ) -> ContractRead:
        contract = self._get_contract(session, ctx, contract_id)
        self._transition(
            session,
            ctx,
            contract,
            domain=TransitionDomain.CONTRACT,
            to_state=to_status,
            item_type="contract",
            label="contract status",
        )
        return ContractRead.model_validate(contract)

    def add_contract_milestone(
        self,
        session: Session,
        ctx: AuthContext,
        contract_id: uuid.UUID,
        payload: ContractMilestoneCreate,
    ) -> ContractMilestoneRead:
        contract = self._get_contract(session, ctx, contract_id)
        milestone = BillingContractMilestone(
            org_id=ctx.org_id, contract_id=contract.id, status="pending", **payload.model_dump()
        )
        session.add(milestone)
        session.flush()
        record_work_event(
            session, ctx, "contract_milestone", milestone.id, "contract_milestone.created", {"contract_id": str(contract.id)}
        )
        session.commit()
        session.refresh(milestone)
        return ContractMilestoneRead.model_validate(milestone)

    def change_contract_milestone_status(
        self,
        session: Session,
        ctx: AuthContext,
        contract_id: uuid.UUID,
        milestone_id: uuid.UUID,
        to_status: str,
    ) -> ContractMilestoneRead:
        milestone = session.scalar(
            self.contract_milestone_repository.query(ctx).where(
                BillingContractMilestone.id == milestone_id,
                BillingContractMilestone.contract_id == contract_id,
            )
        )
        if milestone is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="contract milestone not found")
        self._transition(
            session,
            ctx,
            milestone,
            domain=TransitionDomain.CONTRACT_MILESTONE,
            to_state=to_status,
            item_type="contract_milestone",
            label="contract milestone status",
        )
        return ContractMilestoneRead.model_validate(milestone)

    # time entries

    def create_time_entry(self, session: Session, ctx: AuthContext, payload: TimeEntryCreate) -> TimeEntryRead:
        if payload.contract_id is not None:
            self._get_contract(session, ctx, payload.contract_id)
        values = payload.model_dump()
        values.update(org_id=ctx.org_id, status="submitted", currency=payload.currency.upper())
        entry = BillingTimeEntry(**values)
        session.add(entry)
        session.flush()
        record_work_event(
            session,
            ctx,
            "time_entry",
            entry.id,
            "time_entry.submitted",
            {"hours": str(entry.hours), "person_ref": entry.person_ref},
        )
        session.commit()
        session.refresh(entry)
        return TimeEntryRead.model_validate(entry)

    def list_time_entries(
        self,
        session: Session,
        ctx: AuthContext,
        contract_id: uuid.UUID | None = None,
        status_filter: str | None = None,
    ) -> list[TimeEntryRead]:
        filters: list[Any] = []
        if contract_id is not None:
            filters.append(BillingTimeEntry.contract_id == contract_id)
        if status_filter:
            filters.append(BillingTimeEntry.status == status_filter)
        rows = self.time_entry_repository.list_records(
            session, ctx, *filters, order_by=BillingTimeEntry.entry_date.desc()
        )
        return [TimeEntryRead.model_validate(row) for row in rows]

    def approve_time_entry(self, session: Session, ctx: AuthContext, entry_id: uuid.UUID) -> TimeEntryRead:
        entry = self._get_time_entry(session, ctx, entry_id)
        self._transition(
            session,
            ctx,
            entry,
            domain=TransitionDomain.TIME_ENTRY,
            to_state="approved",
            item_type="time_entry",
            label="time entry status",
            extra_values={"approved_at": utcnow(), "approved_by": ctx.user_id, "rejected_reason": None},
        )
        events.publish(
            {
                "event_type": "time_entry.approved",
                "org_id": ctx.org_id,
                "entity_type": "time_entry",
                "entity_id": str(entry.id),
                "actor_user_id": ctx.user_id,
                "correlation_id": ctx.correlation_id,
                "payload": {
                    "contract_id": str(entry.contract_id) if entry.contract_id else None,
                    "hours": str(entry.hours),
                    "person_ref": entry.person_ref,
                },
            }
        )
        return TimeEntryRead.model_validate(entry)

    def reject_time_entry(
        self, session: Session, ctx: AuthContext, entry_id: uuid.UUID, reason: str | None = None
    ) -> TimeEntryRead:
        entry = self._get_time_entry(session, ctx, entry_id)
        self._transition(
            session,
            ctx,
            entry,
            domain=TransitionDomain.TIME_ENTRY,
            to_state="rejected",
            item_type="time_entry",
            label="time entry status",
            extra_values={"rejected_reason": reason},
        )
        return TimeEntryRead.model_validate(entry)

    def resubmit_time_entry(self, session: Session, ctx: AuthContext, entry_id: uuid.UUID) -> TimeEntryRead:
        entry = self._get_time_entry(session, ctx, entry_id)
        self._transition(
            session,
            ctx,
            entry,
            domain=TransitionDomain.TIME_ENTRY,
            to_state="submitted",
            item_type="time_entry",
            label="time entry status",
        )
        return TimeEntryRead.model_validate(entry)

    # invoices

    def create_invoice(self, session: Session, ctx: AuthContext, payload: InvoiceCreate) -> InvoiceRead:
        if payload.period_end < payload.period_start:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="period_end must not precede period_start")
        contract = self._get_contract(session, ctx, payload.contract_id)
        subtotal = self._billable_amount(session, ctx, contract, payload.period_start, payload.period_end)
        invoice = BillingInvoice(
            org_id=ctx.org_id,
            contract_id=contract.id,
            invoice_number=_invoice_number(),
            currency=contract.currency,
            status="draft",
            period_start=payload.period_start,
            period_end=payload.period_end,
            due_date=payload.due_date,
            total_amount=subtotal,
            tax_amount=_money(payload.tax_amount),
            paid_amount=Decimal("0"),
            notes=payload.notes,
        )
        session.add(invoice)
        session.flush()
        record_work_event(
            session,
            ctx,
            "invoice",
            invoice.id,
            "invoice.created",
            {"invoice_number": invoice.invoice_number, "total_amount": str(subtotal)},
        )
        session.commit()
        session.refresh(invoice)
        return InvoiceRead.model_validate(invoice)

    def list_invoices(
        self,
        session: Session,
        ctx: AuthContext,
        status_filter: str | None = None,
        contract_id: uuid.UUID | None = None,
    ) -> list[InvoiceRead]:
        filters: list[Any] = []
        if status_filter:
            filters.append(BillingInvoice.status == status_filter)
        if contract_id is not None:
            filters.append(BillingInvoice.contract_id == contract_id)
        rows = self.invoice_repository.list_records(session, ctx, *filters, order_by=BillingInvoice.created_at.desc())
        return [InvoiceRead.model_validate(row) for row in rows]

    def get_invoice(self, session: Session, ctx: AuthContext, invoice_id: uuid.UUID) -> InvoiceRead:
        return InvoiceRead.model_validate(self._get_invoice(session, ctx, invoice_id))

    def change_invoice_status(
        self, session: Session, ctx: AuthContext, invoice_id: uuid.UUID, to_status: str
    ) -> InvoiceRead:
        invoice = self._get_invoice(session, ctx, invoice_id)
        extra: dict[str, Any] = {}
        if to_status == "sent":
            extra["sent_at"] = utcnow()
        elif to_status == "viewed":
            extra["viewed_at"] = utcnow()
        elif to_status == "paid":
            extra["paid_at"] = utcnow()
        self._transition(
            session,
            ctx,
            invoice,
            domain=TransitionDomain.INVOICE,
            to_state=to_status,
            item_type="invoice",
            label="invoice status",
            extra_values=extra,
        )
        return InvoiceRead.model_validate(invoice)

    # payments

    def record_payment(self, session: Session, ctx: AuthContext, payload: PaymentCreate) -> PaymentResult:
        """Record a payment and settle the invoice once nothing is outstanding.

        Settlement moves the invoice to ``paid`` from whatever status it holds,
        without consulting the invoice transition table.
        """
        invoice = self._get_invoice(session, ctx, payload.invoice_id)
        if invoice.status in CLOSED_INVOICE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"code": "INVOICE_CLOSED", "message": f"invoice is {invoice.status}", "status": invoice.status},
            )
        if payload.currency.upper() != invoice.currency:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"payment currency {payload.currency.upper()} does not match invoice currency {invoice.currency}",
            )

        amount = _money(payload.amount)
        previous_status = invoice.status
        outstanding_after = invoice.outstanding_amount - amount
        values: dict[str, Any] = {
            "paid_amount": BillingInvoice.paid_amount + amount,
            "updated_at": utcnow(),
        }
        settled = outstanding_after <= 0
        if settled:
            values.update(status="paid", paid_at=utcnow())

        payment = BillingPayment(
            org_id=ctx.org_id,
            invoice_id=invoice.id,
            amount=amount,
            currency=invoice.currency,
            payment_method=payload.payment_method,
            payment_date=payload.payment_date or utcnow(),
            reference_number=payload.reference_number,
        )
        session.add(payment)
        session.execute(
            update(BillingInvoice)
            .where(BillingInvoice.id == invoice.id, BillingInvoice.org_id == ctx.org_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        session.flush()
        record_work_event(
            session,
            ctx,
            "invoice",
            invoice.id,
            "payment.recorded",
            {"payment_id": str(payment.id), "amount": str(amount), "method": payload.payment_method},
        )
        if settled:
            record_work_event(
                session, ctx, "invoice", invoice.id, "invoice.status.paid", {"from": previous_status, "to": "paid"}
            )
        session.commit()
        session.refresh(invoice)
        session.refresh(payment)

        logger.info(
            "billing.payment_recorded",
            extra={
                "org_id": ctx.org_id,
                "entity_id": str(invoice.id),
                "amount": str(amount),
                "from_state": previous_status,
                "to_state": invoice.status,
            },
        )
        events.publish(
            {
                "event_type": "payment.recorded",
                "org_id": ctx.org_id,
                "entity_type": "invoice",
                "entity_id": str(invoice.id),
                "actor_user_id": ctx.user_id,
                "correlation_id": ctx.correlation_id,
                "payload": {
                    "payment_id": str(payment.id),
                    "amount": str(amount),
                    "settled": settled,
                    "outstanding_amount": str(invoice.outstanding_amount),
                },
            }
        )
        return PaymentResult(payment=PaymentRead.model_validate(payment), invoice=InvoiceRead.model_validate(invoice))

    def list_payments(self, session: Session, ctx: AuthContext, invoice_id: uuid.UUID) -> list[PaymentRead]:
        self._get_invoice(session, ctx, invoice_id)
        rows = self.payment_repository.list_records(
            session, ctx, BillingPayment.invoice_id == invoice_id, order_by=BillingPayment.payment_date.asc()
        )
        return [PaymentRead.model_validate(row) for row in rows]

    # credit notes

    def create_credit_note(
        self, session: Session, ctx: AuthContext, invoice_id: uuid.UUID, payload: CreditNoteCreate
    ) -> CreditNoteRead:
        invoice = self._get_invoice(session, ctx, invoice_id)
        amount = _money(payload.amount)
        if amount > _money(invoice.total_amount) + _money(invoice.tax_amount):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="credit exceeds invoice total")
        note = BillingCreditNote(org_id=ctx.org_id, invoice_id=invoice.id, amount=amount, reason=payload.reason, status="draft")
        session.add(note)
        session.flush()
        record_work_event(session, ctx, "credit_note", note.id, "credit_note.created", {"invoice_id": str(invoice.id)})
        session.commit()
        session.refresh(note)
        return CreditNoteRead.model_validate(note)

    def change_credit_note_status(
        self,
        session: Session,
        ctx: AuthContext,
        invoice_id: uuid.UUID,
        credit_note_id: uuid.UUID,
        to_status: str,
    ) -> CreditNoteRead:
        note = session.scalar(
            self.credit_note_repository.query(ctx).where(
                BillingCreditNote.id == credit_note_id,
                BillingCreditNote.invoice_id == invoice_id,
            )
        )
        if note is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="credit note not found")
        extra = {"issued_at": utcnow()} if to_status == "issued" else {}
        self._transition(
            session,
            ctx,
            note,
            domain=TransitionDomain.CREDIT_NOTE,
            to_state=to_status,
            item_type="credit_note",
            label="credit note status",
            extra_values=extra,
        )
        return CreditNoteRead.model_validate(note)

    # helpers

    def _billable_amount(
        self,
        session: Session,
        ctx: AuthContext,
        contract: BillingContract,
        period_start: date,
        period_end: date,
    ) -> Decimal:
        time_total = session.scalar(
            select(func.coalesce(func.sum(BillingTimeEntry.hours * BillingTimeEntry.bill_rate), 0)).where(
                BillingTimeEntry.org_id == ctx.org_id,
                BillingTimeEntry.contract_id == contract.id,
                BillingTimeEntry.status == "approved",
                BillingTimeEntry.entry_date >= period_start,
                BillingTimeEntry.entry_date <= period_end,
            )
        )
        milestone_total = session.scalar(
            select(func.coalesce(func.sum(BillingContractMilestone.amount), 0)).where(
                BillingContractMilestone.org_id == ctx.org_id,
                BillingContractMilestone.contract_id == contract.id,
                BillingContractMilestone.status == "ready",
            )
        )
        return _money(Decimal(str(time_total or 0)) + Decimal(str(milestone_total or 0)))

    def _get_contract(self, session: Session, ctx: AuthContext, contract_id: uuid.UUID) -> BillingContract:
        contract = self.contract_repository.get(session, ctx, contract_id)
        if contract is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="contract not found")
        return contract

    def _get_time_entry(self, session: Session, ctx: AuthContext, entry_id: uuid.UUID) -> BillingTimeEntry:
        entry = self.time_entry_repository.get(session, ctx, entry_id)
        if entry is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="time entry not found")
        return entry

    def _get_invoice(self, session: Session, ctx: AuthContext, invoice_id: uuid.UUID) -> BillingInvoice:
        invoice = self.invoice_repository.get(session, ctx, invoice_id)
        if invoice is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="invoice not found")
        return invoice

    def _transition(
        self,
        session: Session,
        ctx: AuthContext,
        record: Any,
        *,
        domain: TransitionDomain,
        to_state: str,
        item_type: str,
        label: str,
        extra_values: dict[str, Any] | None = None,
    ) -> None:
        from_state = record.status
        guard_transition(ctx, domain, from_state, to_state, entity_id=record.id, label=label)
        compare_and_set_status(
            session,
            type(record),
            record.id,
            ctx,
            domain=domain,
            expected=from_state,
            values={"status": to_state, "updated_at": utcnow(), **(extra_values or {})},
        )
        record_work_event(
            session, ctx, item_type, record.id, f"{item_type}.status.{to_state}", {"from": from_state, "to": to_state}
        )
        session.commit()
        session.refresh(record)
        logger.info(
            "state.changed",
            extra={
                "org_id": ctx.org_id,
                "domain": domain.value,
                "entity_type": item_type,
                "entity_id": str(record.id),
                "from_state": from_state,
                "to_state": to_state,
            },
        )


billing_service = BillingService()
