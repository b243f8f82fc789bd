from meridian.business.billing.api import router
from meridian.business.billing.models import (
    BillingContract,
    BillingContractMilestone,
    BillingCreditNote,
    BillingInvoice,
    BillingPayment,
    BillingTimeEntry,
)
from meridian.business.billing.service import BillingService, billing_service

__all__ = [
    "router",
    "BillingContract",
    "BillingContractMilestone",
    "BillingTimeEntry",
    "BillingInvoice",
    "BillingPayment",
    "BillingCreditNote",
    "BillingService",
    "billing_service",
]
