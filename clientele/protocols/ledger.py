"""Ledger protocol for the accounting-system integration."""

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

# Invoice statuses shown under each customer-facing tab
INVOICE_FILTER_STATUSES = {
    "recent": ("sent", "overdue", "partially_paid"),
    "completed": ("paid", "void"),
    "all": ("sent", "overdue", "partially_paid", "paid", "void"),
}


@dataclass(frozen=True)
class LedgerContact:
    """Contact record in the ledger."""

    contact_id: str
    contact_name: str
    email: str = ""
    phone: str = ""
    status: str = "active"


@dataclass(frozen=True)
class BillingAddress:
    """Billing address pushed to the ledger."""

    address: str
    city: str = ""
    state: str = ""
    zip: str = ""


@dataclass(frozen=True)
class ContactPayload:
    """Local customer data sent on create/update."""

    contact_name: str
    email: str
    phone: str = ""
    billing_address: BillingAddress | None = None


@dataclass(frozen=True)
class LedgerInvoice:
    """Invoice summary for a contact."""

    invoice_id: str
    invoice_number: str
    status: str
    date: str
    due_date: str
    total: float
    balance: float
    payment_made: float = 0.0
    currency_code: str = "PHP"
    line_items: list[dict] = field(default_factory=list)


@dataclass(frozen=True)
class InvoicePage:
    """One page of invoices."""

    items: list[LedgerInvoice]
    has_more: bool
    total: int


@runtime_checkable
class LedgerBackend(Protocol):
    """
    Protocol for the external accounting ledger.

    Implemented by adapters/zoho_books.py.

    Configuration in settings.py:
        CLIENTELE = {
            "LEDGER_BACKEND": "clientele.adapters.zoho_books.ZohoBooksBackend",
        }

    Every call except is_connected() may raise clientele.exceptions.LedgerError
    for network, auth, rate-limit and HTTP errors.
    """

    def is_connected(self) -> bool:
        """True when credentials exist and an access token can be obtained."""
        ...

    def search_contacts(self, query: str) -> list[LedgerContact]:
        """Search customer contacts by name or email."""
        ...

    def get_contact(self, contact_id: str) -> LedgerContact | None:
        """Return a contact, or None if it does not exist."""
        ...

    def create_contact(self, payload: ContactPayload) -> LedgerContact:
        """Create a customer contact."""
        ...

    def update_contact(self, contact_id: str, payload: ContactPayload) -> None:
        """Push local changes to an existing contact."""
        ...

    def list_invoices(
        self,
        contact_id: str,
        filter: str = "recent",
        page: int = 1,
    ) -> InvoicePage:
        """List a contact's invoices, newest first."""
        ...
