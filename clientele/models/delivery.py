"""
Delivery tracking models.

A customer's delivery status is derived from two timestamps on Customer:

    pending        neither set
    ready_to_ship  delivery_confirmed_at set (customer confirmed their details)
    delivered      delivered_at set (admin marked the parcel delivered)

DeliveryLog keeps the history of those transitions. ConfirmationToken is
the single-use link a customer follows from an email to confirm.
"""

import secrets
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

TOKEN_LENGTH = 64


class DeliveryStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    READY_TO_SHIP = "ready_to_ship", _("Ready to ship")
    DELIVERED = "delivered", _("Delivered")


class DeliveryAction(models.TextChoices):
    CONFIRMED = "confirmed", _("Confirmed ready to ship")
    DELIVERED = "delivered", _("Marked as delivered")
    RESET = "reset", _("Reset to pending")


class DeliveryLog(models.Model):
    """One delivery status transition for a customer."""

    customer = models.ForeignKey(
        "clientele.Customer",
        on_delete=models.CASCADE,
        related_name="delivery_logs",
        verbose_name=_("customer"),
    )
    action = models.CharField(_("action"), max_length=20, choices=DeliveryAction.choices)
    notes = models.TextField(_("notes"), blank=True)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name=_("performed by"),
    )
    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "clientele_delivery_log"
        verbose_name = _("delivery log")
        verbose_name_plural = _("delivery logs")
        ordering = ["-created_at", "-pk"]

    def __str__(self):
        return f"{self.customer_id}: {self.get_action_display()}"


def generate_confirmation_token() -> str:
    return secrets.token_hex(TOKEN_LENGTH // 2)


class ConfirmationToken(models.Model):
    """Single-use delivery confirmation link token."""

    customer = models.ForeignKey(
        "clientele.Customer",
        on_delete=models.CASCADE,
        related_name="confirmation_tokens",
        verbose_name=_("customer"),
    )
    token = models.CharField(
        _("token"),
        max_length=TOKEN_LENGTH,
        unique=True,
        default=generate_confirmation_token,
        editable=False,
    )
    expires_at = models.DateTimeField(_("expires at"))
    used_at = models.DateTimeField(_("used at"), null=True, blank=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        db_table = "clientele_confirmation_token"
        verbose_name = _("confirmation token")
        verbose_name_plural = _("confirmation tokens")

    def __str__(self):
        return f"{self.token[:8]}... ({self.customer_id})"

    @property
    def is_expired(self) -> bool:
        return timezone.now() >= self.expires_at

    @classmethod
    def issue(cls, customer, days: int) -> "ConfirmationToken":
        return cls.objects.create(
            customer=customer, expires_at=timezone.now() + timedelta(days=days)
        )
