"""Clientele services.

- clientele.services.customer: registration, profile edits, lookups
- clientele.services.address: address registry (single default, capacity)
- clientele.services.courier: courier catalogue
- clientele.services.sync: ledger sync coordinator
- clientele.services.delivery: delivery status and confirmation links

The notifications contrib app has its own service in
clientele.contrib.notifications.service.
"""

from clientele.services import customer
from clientele.services import address
from clientele.services import courier
from clientele.services import sync
from clientele.services import delivery

__all__ = ["customer", "address", "courier", "sync", "delivery"]
