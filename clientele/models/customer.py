"""Customer model.

Data architecture:
    Customer
        Identity, contact and delivery preference. Owns 0-3 CustomerAddress
        rows (cascade delete). The profile_* fields are a snapshot of the
        address the customer typed on their profile; they feed the billing
        address pushed to the ledger and are independent of CustomerAddress.

    Delivery columns (delivery_confirmed_at, delivered_at)
        Source of Customer.delivery_status; transitions are recorded in
        DeliveryLog (clientele.models.delivery).

    Sync columns (sync_status, sync_error, sync_attempts,
    sync_last_attempt_at, ledger_contact_id)
        Flat storage for clientele.sync_state variants. Read them through
        Customer.sync_state. The sync service writes them with one UPDATE
        of sync_state.to_columns() (failures bump sync_attempts with F()).
        apply_sync_state() sets them on an instance that is saved afterwards.
"""

import uuid as uuid_lib

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from clientele import sync_state as states
from clientele.models.delivery import DeliveryStatus


class ContactPreference(models.TextChoices):
    EMAIL = "email", _("Email")
    PHONE = "phone", _("Phone")
    SMS = "sms", _("SMS")


class DeliveryMethod(models.TextChoices):
    PICKUP = "pickup", _("Pickup")
    DELIVERED = "delivered", _("Delivered")
    COD = "cod", _("Cash on delivery")
    COP = "cop", _("Cash on pickup")


class SyncStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    SYNCING = "syncing", _("Syncing")
    SYNCED = "synced", _("Synced")
    FAILED = "failed", _("Failed")
    SKIPPED = "skipped", _("Skipped")
    MANUAL = "manual", _("Manually linked")


def generate_customer_code() -> str:
    return f"CUS-{uuid_lib.uuid4().hex[:8].upper()}"


class Customer(models.Model):
    """
    Registered customer.

    Email is globally unique (stored lower-case). Delivery customers
    (anything but pickup) must keep at least one address and a courier.
    """

    code = models.CharField(
        _("code"),
        max_length=50,
        unique=True,
        default=generate_customer_code,
        help_text=_("Unique customer code (e.g. CUS-1A2B3C4D)"),
    )
    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="clientele_customer",
        null=True,
        blank=True,
        verbose_name=_("user"),
    )

    first_name = models.CharField(_("first name"), max_length=100)
    last_name = models.CharField(_("last name"), max_length=100, blank=True)
    email = models.EmailField(_("email"), max_length=255, unique=True)
    phone = models.CharField(_("phone"), max_length=50, blank=True)
    contact_preference = models.CharField(
        _("contact preference"),
        max_length=10,
        choices=ContactPreference.choices,
        default=ContactPreference.EMAIL,
    )

    # Delivery
    delivery_method = models.CharField(
        _("delivery method"),
        max_length=20,
        choices=DeliveryMethod.choices,
        default=DeliveryMethod.PICKUP,
    )
    courier = models.ForeignKey(
        "clientele.Courier",
        on_delete=models.PROTECT,
        related_name="customers",
        null=True,
        blank=True,
        verbose_name=_("courier"),
    )

    # Profile address snapshot
    profile_street_address = models.CharField(_("street address"), max_length=500, blank=True)
    profile_barangay = models.CharField(_("barangay"), max_length=255, blank=True)
    profile_city = models.CharField(_("city"), max_length=255, blank=True)
    profile_province = models.CharField(_("province"), max_length=255, blank=True)
    profile_region = models.CharField(_("region"), max_length=100, blank=True)
    profile_postal_code = models.CharField(_("postal code"), max_length=4, blank=True)

    is_returning_customer = models.BooleanField(_("returning customer"), default=False)
    is_active = models.BooleanField(_("active"), default=True, db_index=True)

    # Delivery tracking (status derived in delivery_status)
    delivery_confirmed_at = models.DateTimeField(_("delivery confirmed at"), null=True, blank=True)
    delivered_at = models.DateTimeField(_("delivered at"), null=True, blank=True)

    # Ledger sync
    sync_status = models.CharField(
        _("sync status"),
        max_length=10,
        choices=SyncStatus.choices,
        default=SyncStatus.PENDING,
        db_index=True,
    )
    sync_error = models.TextField(_("sync error"), null=True, blank=True)
    sync_attempts = models.PositiveIntegerField(_("sync attempts"), default=0)
    sync_last_attempt_at = models.DateTimeField(_("last sync attempt"), null=True, blank=True)
    ledger_contact_id = models.CharField(
        _("ledger contact ID"),
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
    )

    # Audit
    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("customer")
        verbose_name_plural = _("customers")
        ordering = ["first_name", "last_name"]
        indexes = [
            models.Index(
                fields=["sync_status", "sync_attempts"],
                name="clientele_customer_sync_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(sync_status="failed")
                | (
                    Q(sync_error__isnull=False)
                    & ~Q(sync_error="")
                    & Q(sync_attempts__gte=1)
                ),
                name="clientele_failed_sync_has_error",
            ),
            models.CheckConstraint(
                condition=~Q(sync_status__in=["synced", "manual"])
                | Q(ledger_contact_id__isnull=False),
                name="clientele_linked_sync_has_contact",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.code})"

    @property
    def name(self) -> str:
        """Full name (first + last)."""
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def needs_address(self) -> bool:
        return self.delivery_method != DeliveryMethod.PICKUP

    @property
    def default_address(self):
        """Customer's default address."""
        return self.addresses.filter(is_default=True).first()

    @property
    def has_profile_address(self) -> bool:
        return bool(self.profile_street_address)

    @property
    def delivery_status(self) -> str:
        if self.delivered_at:
            return DeliveryStatus.DELIVERED
        if self.delivery_confirmed_at:
            return DeliveryStatus.READY_TO_SHIP
        return DeliveryStatus.PENDING

    @property
    def sync_state(self) -> states.SyncState:
        return states.from_columns(
            self.sync_status,
            self.sync_error,
            self.sync_attempts,
            self.ledger_contact_id,
        )

    def apply_sync_state(self, state: states.SyncState) -> list[str]:
        """Copy a sync state variant onto this instance; returns changed field names."""
        for field, value in states.to_columns(state).items():
            setattr(self, field, value)
        return ["sync_status", "sync_error", "sync_attempts", "ledger_contact_id"]

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.lower().strip()
        if self.phone:
            self.phone = self.phone.strip()
        super().save(*args, **kwargs)
