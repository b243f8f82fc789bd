from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from meridian.business.billing.schemas import (
    ContractCreate,
    ContractMilestoneCreate,
    ContractMilestoneRead,
    ContractMilestoneStatusChange,
    ContractRead,
    ContractStatusChange,
    CreditNoteCreate,
    CreditNoteRead,
    CreditNoteStatusChange,
    InvoiceCreate,
    InvoiceRead,
    InvoiceStatusChange,
    PaymentCreate,
    PaymentRead,
    PaymentResult,
    TimeEntryCreate,
    TimeEntryRead,
    TimeEntryReject,
)
from meridian.business.billing.service import billing_service
from meridian.core.database import get_db
from meridian.platform.security.context import AuthContext
from meridian.platform.security.dependencies import get_auth_context


router = APIRouter(prefix="/api/billing", tags=["billing"])


@router.post("/contracts", response_model=ContractRead, status_code=status.HTTP_201_CREATED)
def create_contract(
    payload: ContractCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ContractRead:
    return billing_service.create_contract(db, ctx, payload)


@router.get("/contracts", response_model=list[ContractRead])
def list_contracts(
    status_filter: str | None = Query(default=None, alias="status"),
    engagement_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[ContractRead]:
    return billing_service.list_contracts(db, ctx, status_filter, engagement_id)


@router.get("/contracts/{contract_id}", response_model=ContractRead)
def get_contract(
    contract_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ContractRead:
    return billing_service.get_contract(db, ctx, contract_id)


@router.patch("/contracts/{contract_id}", response_model=ContractRead)
def change_contract_status(
    contract_id: uuid.UUID,
    payload: ContractStatusChange,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ContractRead:
    return billing_service.change_contract_status(db, ctx, contract_id, payload.status)


@router.post(
    "/contracts/{contract_id}/milestones",
    response_model=ContractMilestoneRead,
    status_code=status.HTTP_201_CREATED,
)
def add_contract_milestone(
    contract_id: uuid.UUID,
    payload: ContractMilestoneCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ContractMilestoneRead:
    return billing_service.add_contract_milestone(db, ctx, contract_id, payload)


@router.patch("/contracts/{contract_id}/milestones/{milestone_id}", response_model=ContractMilestoneRead)
def change_contract_milestone_status(
    contract_id: uuid.UUID,
    milestone_id: uuid.UUID,
    payload: ContractMilestoneStatusChange,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ContractMilestoneRead:
    return billing_service.change_contract_milestone_status(db, ctx, contract_id, milestone_id, payload.status)


@router.post("/time-entries", response_model=TimeEntryRead, status_code=status.HTTP_201_CREATED)
def create_time_entry(
    payload: TimeEntryCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> TimeEntryRead:
    return billing_service.create_time_entry(db, ctx, payload)


@router.get("/time-entries", response_model=list[TimeEntryRead])
def list_time_entries(
    contract_id: uuid.UUID | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[TimeEntryRead]:
    return billing_service.list_time_entries(db, ctx, contract_id, status_filter)


@router.post("/time-entries/{entry_id}/approve", response_model=TimeEntryRead)
def approve_time_entry(
    entry_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> TimeEntryRead:
    return billing_service.approve_time_entry(db, ctx, entry_id)


@router.post("/time-entries/{entry_id}/reject", response_model=TimeEntryRead)
def reject_time_entry(
    entry_id: uuid.UUID,
    payload: TimeEntryReject,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> TimeEntryRead:
    return billing_service.reject_time_entry(db, ctx, entry_id, payload.reason)


@router.post("/time-entries/{entry_id}/resubmit", response_model=TimeEntryRead)
def resubmit_time_entry(
    entry_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> TimeEntryRead:
    return billing_service.resubmit_time_entry(db, ctx, entry_id)


@router.post("/invoices", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> InvoiceRead:
    return billing_service.create_invoice(db, ctx, payload)


@router.get("/invoices", response_model=list[InvoiceRead])
def list_invoices(
    status_filter: str | None = Query(default=None, alias="status"),
    contract_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[InvoiceRead]:
    return billing_service.list_invoices(db, ctx, status_filter, contract_id)


@router.get("/invoices/{invoice_id}", response_model=InvoiceRead)
def get_invoice(
    invoice_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> InvoiceRead:
    return billing_service.get_invoice(db, ctx, invoice_id)


@router.patch("/invoices/{invoice_id}", response_model=InvoiceRead)
def change_invoice_status(
    invoice_id: uuid.UUID,
    payload: InvoiceStatusChange,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> InvoiceRead:
    return billing_service.change_invoice_status(db, ctx, invoice_id, payload.status)


@router.get("/invoices/{invoice_id}/payments", response_model=list[PaymentRead])
def list_payments(
    invoice_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[PaymentRead]:
    return billing_service.list_payments(db, ctx, invoice_id)


@router.post("/invoices/{invoice_id}/credit-notes", response_model=CreditNoteRead, status_code=status.HTTP_201_CREATED)
def create_credit_note(
    invoice_id: uuid.UUID,
    payload: CreditNoteCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> CreditNoteRead:
    return billing_service.create_credit_note(db, ctx, invoice_id, payload)


@router.patch("/invoices/{invoice_id}/credit-notes/{credit_note_id}", response_model=CreditNoteRead)
def change_credit_note_status(
    invoice_id: uuid.UUID,
    credit_note_id: uuid.UUID,
    payload: CreditNoteStatusChange,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> CreditNoteRead:
    return billing_service.change_credit_note_status(db, ctx, invoice_id, credit_note_id, payload.status)


@router.post("/payments", response_model=PaymentResult, status_code=status.HTTP_201_CREATED)
def record_payment(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> PaymentResult:
    return billing_service.record_payment(db, ctx, payload)
