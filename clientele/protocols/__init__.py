"""Clientele protocols for cross-app communication."""

from clientele.protocols.ledger import (
    INVOICE_FILTER_STATUSES,
    BillingAddress,
    ContactPayload,
    InvoicePage,
    LedgerBackend,
    LedgerContact,
    LedgerInvoice,
)

__all__ = [
    "INVOICE_FILTER_STATUSES",
    "BillingAddress",
    "ContactPayload",
    "InvoicePage",
    "LedgerBackend",
    "LedgerContact",
    "LedgerInvoice",
]
