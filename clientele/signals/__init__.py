"""
Clientele signals: public event API.

Emitted signals:
- customer_created: Emitted by services.customer.register()
- customer_updated: Emitted by services.customer.update_profile()
- customer_deleted: Emitted by services.customer.delete()
- sync_status_changed: Emitted by services.sync on every stored transition
- delivery_status_changed: Emitted by services.delivery on every logged move
"""

from django.dispatch import Signal

# Customer signals (emitted by services)
customer_created = Signal()  # sender=Customer, customer=Customer
customer_updated = Signal()  # sender=Customer, customer=Customer, changes=dict
customer_deleted = Signal()  # sender=Customer, code=str, email=str

# Sync signals
sync_status_changed = Signal()  # sender=Customer, customer=Customer, previous=str, state=SyncState

# Delivery signals
delivery_status_changed = Signal()  # sender=Customer, customer=Customer, action=str
