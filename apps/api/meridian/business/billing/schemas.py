from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


ContractType = Literal["time_materials", "fixed_price", "milestone", "retainer", "prepaid"]
ContractStatus = Literal["draft", "active", "suspended", "completed", "terminated", "cancelled"]
ContractMilestoneStatus = Literal["pending", "ready", "billed", "paid", "cancelled"]
TimeEntryStatus = Literal["submitted", "approved", "rejected"]
InvoiceStatus = Literal["draft", "sent", "viewed", "overdue", "paid", "credited", "voided", "collections", "written_off"]
CreditNoteStatus = Literal["draft", "issued", "applied", "expired"]
PaymentMethod = Literal["ach", "wire", "card", "check", "cash", "other"]


class ContractCreate(BaseModel):
    engagement_id: UUID | None = None
    contract_type: ContractType
    currency: str = Field(default="USD", min_length=3, max_length=3)
    start_date: date
    end_date: date | None = None
    retainer_amount: Decimal | None = Field(default=None, ge=Decimal("0"))
    included_hours: Decimal | None = Field(default=None, ge=Decimal("0"))
    budget_cap: Decimal | None = Field(default=None, ge=Decimal("0"))


class ContractRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: int
    engagement_id: UUID | None
    contract_type: ContractType | str
    currency: str
    start_date: date
    end_date: date | None
    retainer_amount: Decimal | None
    included_hours: Decimal | None
    budget_cap: Decimal | None
    status: ContractStatus | str
    created_at: datetime
    updated_at: datetime


class ContractStatusChange(BaseModel):
    status: ContractStatus


class ContractMilestoneCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    amount: Decimal = Field(ge=Decimal("0"))
    due_date: date | None = None


class ContractMilestoneRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    contract_id: UUID
    name: str
    amount: Decimal
    due_date: date | None
    status: ContractMilestoneStatus | str


class ContractMilestoneStatusChange(BaseModel):
    status: ContractMilestoneStatus


class TimeEntryCreate(BaseModel):
    contract_id: UUID | None = None
    person_ref: str = Field(min_length=1, max_length=128)
    hours: Decimal = Field(gt=Decimal("0"), le=Decimal("24"))
    entry_date: date
    description: str | None = Field(default=None, max_length=500)
    bill_rate: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    currency: str = Field(default="USD", min_length=3, max_length=3)


class TimeEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    contract_id: UUID | None
    person_ref: str
    hours: Decimal
    entry_date: date
    description: str | None
    bill_rate: Decimal
    currency: str
    status: TimeEntryStatus | str
    approved_at: datetime | None
    approved_by: str | None
    rejected_reason: str | None


class TimeEntryReject(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class InvoiceCreate(BaseModel):
    contract_id: UUID
    period_start: date
    period_end: date
    due_date: date | None = None
    tax_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    notes: str | None = None


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: int
    contract_id: UUID | None
    invoice_number: str
    currency: str
    status: InvoiceStatus | str
    period_start: date | None
    period_end: date | None
    due_date: date | None
    total_amount: Decimal
    tax_amount: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    sent_at: datetime | None
    viewed_at: datetime | None
    paid_at: datetime | None
    created_at: datetime


class InvoiceStatusChange(BaseModel):
    status: InvoiceStatus


class PaymentCreate(BaseModel):
    invoice_id: UUID
    amount: Decimal = Field(gt=Decimal("0"))
    currency: str = Field(default="USD", min_length=3, max_length=3)
    payment_method: PaymentMethod
    payment_date: datetime | None = None
    reference_number: str | None = Field(default=None, max_length=100)


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_id: UUID
    amount: Decimal
    currency: str
    payment_method: str
    payment_date: datetime
    reference_number: str | None


class PaymentResult(BaseModel):
    payment: PaymentRead
    invoice: InvoiceRead


class CreditNoteCreate(BaseModel):
    amount: Decimal = Field(gt=Decimal("0"))
    reason: str | None = Field(default=None, max_length=500)


class CreditNoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_id: UUID
    amount: Decimal
    reason: str | None
    status: CreditNoteStatus | str
    issued_at: datetime | None


class CreditNoteStatusChange(BaseModel):
    status: CreditNoteStatus
