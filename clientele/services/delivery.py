"""Delivery service - delivery status tracking and confirmation links.

Status moves:

    pending        --customer follows a confirmation link-->  ready_to_ship
    *              --admin marks delivered-->                 delivered
    *              --admin reset-->                           pending (both timestamps cleared)

Every move writes a DeliveryLog row and emits delivery_status_changed.
"""

import logging

from django.db import transaction
from django.utils import timezone

from clientele.conf import clientele_settings
from clientele.exceptions import ClienteleError
from clientele.models import ConfirmationToken, Customer, DeliveryAction, DeliveryLog
from clientele.models.delivery import TOKEN_LENGTH
from clientele.services.customer import get_or_raise
from clientele.signals import delivery_status_changed

logger = logging.getLogger(__name__)


def _lock(customer_code: str) -> Customer:
    try:
        return Customer.objects.select_for_update().get(code=customer_code, is_active=True)
    except Customer.DoesNotExist:
        raise ClienteleError("CUSTOMER_NOT_FOUND", customer_code=customer_code)


def _record(cust: Customer, action: str, notes: str = "", user=None) -> DeliveryLog:
    log = DeliveryLog.objects.create(
        customer=cust, action=action, notes=notes or "", performed_by=user
    )
    delivery_status_changed.send(sender=Customer, customer=cust, action=action)
    logger.info("Customer %s delivery: %s", cust.code, action)
    return log


def _require_codes(customer_codes) -> list[str]:
    codes = list(dict.fromkeys(c for c in customer_codes or [] if c))
    if not codes:
        raise ClienteleError(
            "VALIDATION_FAILED", errors={"customer_codes": ["At least one customer is required"]}
        )
    return codes


def mark_delivered(customer_code: str, notes: str = "", user=None) -> Customer:
    """
    Mark a customer's order as delivered.

    Raises:
        ClienteleError: CUSTOMER_NOT_FOUND
    """
    with transaction.atomic():
        cust = _lock(customer_code)
        cust.delivered_at = timezone.now()
        cust.save(update_fields=["delivered_at", "updated_at"])
        _record(cust, DeliveryAction.DELIVERED, notes, user)
    return cust


def reset_status(customer_code: str, notes: str = "", user=None) -> Customer:
    """
    Back to pending: clears both the confirmation and the delivery time.

    Raises:
        ClienteleError: CUSTOMER_NOT_FOUND
    """
    with transaction.atomic():
        cust = _lock(customer_code)
        cust.delivery_confirmed_at = None
        cust.delivered_at = None
        cust.save(update_fields=["delivery_confirmed_at", "delivered_at", "updated_at"])
        _record(cust, DeliveryAction.RESET, notes, user)
    return cust


def _bulk(customer_codes, action: str, columns, notes: str, user) -> int:
    codes = _require_codes(customer_codes)
    with transaction.atomic():
        customers = list(
            Customer.objects.select_for_update().filter(code__in=codes, is_active=True)
        )
        now = timezone.now()
        values = columns(now)
        Customer.objects.filter(pk__in=[c.pk for c in customers]).update(
            **values, updated_at=now
        )
        for cust in customers:
            for key, value in values.items():
                setattr(cust, key, value)
            _record(cust, action, notes, user)

    missing = len(codes) - len(customers)
    if missing:
        logger.warning("Bulk %s: %d unknown customer code(s) ignored", action, missing)
    return len(customers)


def bulk_mark_delivered(customer_codes: list[str], notes: str = "", user=None) -> int:
    """
    Mark many customers delivered; unknown codes are ignored.

    Returns:
        Number of customers updated

    Raises:
        ClienteleError: VALIDATION_FAILED (empty list)
    """
    return _bulk(
        customer_codes, DeliveryAction.DELIVERED, lambda now: {"delivered_at": now}, notes, user
    )


def bulk_reset_status(customer_codes: list[str], notes: str = "", user=None) -> int:
    """Reset many customers to pending; see reset_status()."""
    return _bulk(
        customer_codes,
        DeliveryAction.RESET,
        lambda now: {"delivery_confirmed_at": None, "delivered_at": None},
        notes,
        user,
    )


def history(customer_code: str) -> list[DeliveryLog]:
    """Delivery log of a customer, newest first."""
    cust = get_or_raise(customer_code)
    return list(cust.delivery_logs.select_related("performed_by"))


# ======================================================================
# Confirmation links
# ======================================================================


def create_confirmation_token(customer_code: str) -> str:
    """Issue a single-use token valid for CONFIRMATION_TOKEN_DAYS."""
    cust = get_or_raise(customer_code)
    token = ConfirmationToken.issue(cust, days=clientele_settings.CONFIRMATION_TOKEN_DAYS)
    return token.token


def confirm_delivery(token: str) -> Customer:
    """
    Use a confirmation token: the customer becomes ready to ship.

    Raises:
        ClienteleError: INVALID_TOKEN, TOKEN_USED, TOKEN_EXPIRED
    """
    if not token or len(token) != TOKEN_LENGTH:
        raise ClienteleError("INVALID_TOKEN", message="Invalid token format")

    with transaction.atomic():
        try:
            row = (
                ConfirmationToken.objects.select_for_update()
                .select_related("customer")
                .get(token=token)
            )
        except ConfirmationToken.DoesNotExist:
            raise ClienteleError("INVALID_TOKEN")
        if row.used_at:
            raise ClienteleError("TOKEN_USED")
        if row.is_expired:
            raise ClienteleError("TOKEN_EXPIRED")

        now = timezone.now()
        row.used_at = now
        row.save(update_fields=["used_at"])

        cust = row.customer
        cust.delivery_confirmed_at = now
        cust.save(update_fields=["delivery_confirmed_at", "updated_at"])
        _record(cust, DeliveryAction.CONFIRMED)
    return cust
