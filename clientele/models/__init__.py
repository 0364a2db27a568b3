"""Clientele models (CORE only).

Contrib models are in their respective modules:
- clientele.contrib.notifications: EmailTemplate, EmailLog
"""

from clientele.models.courier import Courier
from clientele.models.customer import (
    ContactPreference,
    Customer,
    DeliveryMethod,
    SyncStatus,
)
from clientele.models.address import CustomerAddress
from clientele.models.delivery import (
    ConfirmationToken,
    DeliveryAction,
    DeliveryLog,
    DeliveryStatus,
)
from clientele.models.ledger_token import LedgerToken

__all__ = [
    # Core models
    "Courier",
    "Customer",
    "CustomerAddress",
    # Choices
    "ContactPreference",
    "DeliveryMethod",
    "SyncStatus",
    # Delivery tracking
    "ConfirmationToken",
    "DeliveryAction",
    "DeliveryLog",
    "DeliveryStatus",
    # Ledger connection
    "LedgerToken",
]
