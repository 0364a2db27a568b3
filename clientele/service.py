"""
Clientele public API.

CORE (essential):
    CustomerService.get(code)              - Get customer
    CustomerService.validate(code)         - Validate customer
    CustomerService.register(...)          - Register customer + addresses
    CustomerService.update(code, ...)      - Update profile

ADDRESSES:
    CustomerService.addresses(code)        - List addresses
    CustomerService.add_address(...)       - Add address
    CustomerService.set_default_address(...)

DELIVERY:
    CustomerService.mark_delivered(code, notes)
    CustomerService.confirm_delivery(token)

LEDGER:
    CustomerService.trigger_sync(code, action)
    CustomerService.invoices(code, filter, page)
"""

from typing import TYPE_CHECKING

from clientele.models import Customer
from clientele.services import address as address_service
from clientele.services import customer as customer_service
from clientele.services import delivery as delivery_service
from clientele.services import sync as sync_service
from clientele.services.customer import CustomerValidation

if TYPE_CHECKING:
    from clientele.models import CustomerAddress
    from clientele.protocols.ledger import InvoicePage

__all__ = ["CustomerService", "CustomerValidation"]


class CustomerService:
    """
    Clientele public API.

    Thin classmethod facade over clientele.services.*; subclass and override
    a classmethod to customize one step (e.g. caching in _fetch_customer).
    """

    # ======================================================================
    # CORE API
    # ======================================================================

    @classmethod
    def get(cls, code: str) -> Customer | None:
        """
        Get customer by unique code.

        Returns:
            Customer or None if not found/inactive
        """
        return cls._fetch_customer(code)

    @classmethod
    def _fetch_customer(cls, code: str) -> Customer | None:
        """Internal: fetch customer by code. Override for caching, etc."""
        return customer_service.get(code)

    @classmethod
    def get_by_uuid(cls, uuid: str) -> Customer | None:
        return customer_service.get_by_uuid(uuid)

    @classmethod
    def get_by_email(cls, email: str) -> Customer | None:
        return customer_service.get_by_email(email)

    @classmethod
    def get_for_user(cls, user) -> Customer | None:
        return customer_service.get_for_user(user)

    @classmethod
    def validate(cls, code: str) -> CustomerValidation:
        """Validate customer and return summary info with default address."""
        return customer_service.validate(code)

    @classmethod
    def register(cls, **kwargs) -> Customer:
        """Register a customer; see services.customer.register."""
        return customer_service.register(**kwargs)

    @classmethod
    def update(cls, code: str, **fields) -> Customer:
        """Update whitelisted profile fields."""
        return customer_service.update_profile(code, **fields)

    @classmethod
    def delete(cls, code: str) -> None:
        customer_service.delete(code)

    # ======================================================================
    # CONVENIENCE API
    # ======================================================================

    @classmethod
    def search(cls, query: str | None = None, limit: int = 20) -> list[Customer]:
        """Search customers by name, code, email, or phone."""
        return customer_service.search(query or "", limit=limit)

    # ======================================================================
    # ADDRESS API
    # ======================================================================

    @classmethod
    def addresses(cls, code: str) -> list["CustomerAddress"]:
        """Get all addresses for a customer."""
        return address_service.addresses(code)

    @classmethod
    def default_address(cls, code: str) -> "CustomerAddress | None":
        """Get default address for a customer."""
        return address_service.default_address(code)

    @classmethod
    def add_address(cls, code: str, **fields) -> "CustomerAddress":
        return address_service.add_address(code, **fields)

    @classmethod
    def update_address(cls, code: str, address_id: int, **fields) -> "CustomerAddress":
        return address_service.update_address(code, address_id, **fields)

    @classmethod
    def delete_address(cls, code: str, address_id: int) -> bool:
        return address_service.delete_address(code, address_id)

    @classmethod
    def set_default_address(cls, code: str, address_id: int) -> "CustomerAddress":
        return address_service.set_default_address(code, address_id)

    # ======================================================================
    # DELIVERY API
    # ======================================================================

    @classmethod
    def mark_delivered(cls, code: str, notes: str = "") -> Customer:
        return delivery_service.mark_delivered(code, notes=notes)

    @classmethod
    def confirm_delivery(cls, token: str) -> Customer:
        """Use a delivery confirmation token (customer becomes ready to ship)."""
        return delivery_service.confirm_delivery(token)

    # ======================================================================
    # LEDGER API
    # ======================================================================

    @classmethod
    def trigger_sync(cls, code: str, action: str = "match") -> sync_service.SyncOutcome:
        return sync_service.trigger_sync(code, action)

    @classmethod
    def invoices(cls, code: str, filter: str = "recent", page: int = 1) -> "InvoicePage":
        """Invoices of the customer's linked ledger contact."""
        return sync_service.customer_invoices(code, filter=filter, page=page)
