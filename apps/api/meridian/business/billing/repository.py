from __future__ import annotations

from meridian.business.billing.models import (
    BillingContract,
    BillingContractMilestone,
    BillingCreditNote,
    BillingInvoice,
    BillingPayment,
    BillingTimeEntry,
)
from meridian.platform.security.repository import BaseRepository


class ContractRepository(BaseRepository[BillingContract]):
    resource = "billing.contract"
    model = BillingContract


class ContractMilestoneRepository(BaseRepository[BillingContractMilestone]):
    resource = "billing.contract_milestone"
    model = BillingContractMilestone


class TimeEntryRepository(BaseRepository[BillingTimeEntry]):
    resource = "billing.time_entry"
    model = BillingTimeEntry


class InvoiceRepository(BaseRepository[BillingInvoice]):
    resource = "billing.invoice"
    model = BillingInvoice


class PaymentRepository(BaseRepository[BillingPayment]):
    resource = "billing.payment"
    model = BillingPayment


class CreditNoteRepository(BaseRepository[BillingCreditNote]):
    resource = "billing.credit_note"
    model = BillingCreditNote
