"""Customer service - registration, profile edits, deletion and lookups.

All write operations that touch >1 record use transaction.atomic().
Ledger sync is never part of those transactions: it is queued as a Celery
task after commit (clientele.tasks) and its failures are only logged.
"""

import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.db.models import Q

from clientele.exceptions import ClienteleError
from clientele.gates import Gates
from clientele.models import (
    ContactPreference,
    Courier,
    Customer,
    CustomerAddress,
    DeliveryMethod,
)
from clientele.signals import customer_created, customer_deleted, customer_updated

logger = logging.getLogger(__name__)

PROFILE_ADDRESS_FIELDS = {
    "profile_street_address",
    "profile_barangay",
    "profile_city",
    "profile_province",
    "profile_region",
    "profile_postal_code",
}

# Changes to these fields are pushed to a linked ledger contact
LEDGER_FIELDS = {"first_name", "last_name", "email", "phone"} | PROFILE_ADDRESS_FIELDS

UPDATABLE_FIELDS = {
    "first_name",
    "last_name",
    "email",
    "phone",
    "contact_preference",
    "delivery_method",
    "is_returning_customer",
} | PROFILE_ADDRESS_FIELDS


@dataclass
class CustomerValidation:
    """Customer validation result."""

    valid: bool
    code: str
    customer_id: int | None = None
    name: str | None = None
    email: str | None = None
    delivery_method: str | None = None
    courier_code: str | None = None
    default_address: dict | None = None
    sync_status: str | None = None
    error_code: str | None = None
    message: str | None = None


def get(code: str) -> Customer | None:
    """Get customer by unique code."""
    try:
        return Customer.objects.select_related("courier").get(code=code, is_active=True)
    except Customer.DoesNotExist:
        return None


def get_or_raise(code: str) -> Customer:
    cust = get(code)
    if not cust:
        raise ClienteleError("CUSTOMER_NOT_FOUND", customer_code=code)
    return cust


def get_by_uuid(uuid: str) -> Customer | None:
    """Get customer by UUID."""
    try:
        return Customer.objects.select_related("courier").get(uuid=uuid, is_active=True)
    except Customer.DoesNotExist:
        return None


def get_by_email(email: str) -> Customer | None:
    """Get customer by email."""
    try:
        return Customer.objects.select_related("courier").get(
            email__iexact=email.strip(), is_active=True
        )
    except Customer.DoesNotExist:
        return None


def get_for_user(user) -> Customer | None:
    """Get the customer profile linked to an auth user."""
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return Customer.objects.filter(user=user, is_active=True).first()


def search(query: str, limit: int = 20) -> list[Customer]:
    """Search customers by name, code, email, or phone."""
    qs = Customer.objects.filter(is_active=True)

    if query:
        qs = qs.filter(
            Q(code__icontains=query)
            | Q(first_name__icontains=query)
            | Q(last_name__icontains=query)
            | Q(email__icontains=query)
            | Q(phone__icontains=query)
        )

    return list(qs.select_related("courier")[:limit])


def validate(code: str) -> CustomerValidation:
    """Validate customer and return a summary with the default address."""
    cust = get(code)

    if not cust:
        return CustomerValidation(
            valid=False,
            code=code,
            error_code="CUSTOMER_NOT_FOUND",
            message=f"Customer '{code}' not found",
        )

    default_addr = cust.default_address
    addr_dict = None
    if default_addr:
        addr_dict = {
            "id": default_addr.pk,
            "label": default_addr.label,
            "recipient": default_addr.recipient_name,
            "formatted_address": default_addr.formatted_address,
            "short_address": default_addr.short_address,
        }

    return CustomerValidation(
        valid=True,
        code=code,
        customer_id=cust.id,
        name=cust.name,
        email=cust.email,
        delivery_method=cust.delivery_method,
        courier_code=cust.courier.code if cust.courier else None,
        default_address=addr_dict,
        sync_status=cust.sync_status,
    )


def _check_choice(field: str, value: str, choices) -> None:
    if value not in choices.values:
        raise ClienteleError(
            "VALIDATION_FAILED",
            message=f"Invalid {field}: {value!r}",
            errors={field: [f"Must be one of: {', '.join(choices.values)}"]},
        )


def _resolve_courier(courier_code: str | None) -> Courier | None:
    if not courier_code:
        return None
    try:
        return Courier.objects.get(code=courier_code, is_active=True)
    except Courier.DoesNotExist:
        raise ClienteleError("COURIER_NOT_FOUND", courier_code=courier_code)


def _normalize_registration_addresses(delivery_method: str, addresses: list[dict]) -> list[dict]:
    """Apply the cardinality and single-default rules to registration input."""
    Gates.address_capacity(0, adding=len(addresses))

    if delivery_method != DeliveryMethod.PICKUP and not addresses:
        raise ClienteleError("ADDRESS_REQUIRED")

    defaults = sum(1 for a in addresses if a.get("is_default"))
    if defaults > 1:
        raise ClienteleError("DUPLICATE_DEFAULT", count=defaults)

    if addresses and defaults == 0:
        addresses[0]["is_default"] = True
    return addresses


def _registration_conflict(email: str, code: str | None, user) -> ClienteleError | None:
    """The uniqueness rule a new customer would break, if any."""
    if Customer.objects.filter(email__iexact=email.strip()).exists():
        return ClienteleError("DUPLICATE_EMAIL", email=email)
    if code and Customer.objects.filter(code=code).exists():
        return ClienteleError("DUPLICATE_CODE", customer_code=code)
    if user is not None and Customer.objects.filter(user=user).exists():
        return ClienteleError("DUPLICATE_USER")
    return None


def register(
    first_name: str,
    email: str,
    last_name: str = "",
    phone: str = "",
    contact_preference: str = ContactPreference.EMAIL,
    delivery_method: str = DeliveryMethod.PICKUP,
    courier_code: str | None = None,
    addresses: list[dict] | tuple = (),
    is_returning_customer: bool = False,
    user=None,
    code: str | None = None,
    **profile,
) -> Customer:
    """
    Register a customer together with its delivery addresses.

    Args:
        first_name: First name
        email: Email (globally unique)
        last_name: Last name
        phone: Phone number
        contact_preference: "email", "phone" or "sms"
        delivery_method: "pickup", "delivered", "cod" or "cop"
        courier_code: Courier code (required unless pickup)
        addresses: Address field dicts, at most MAX_ADDRESSES
        is_returning_customer: Customer says they bought before
        user: Auth user to link (optional)
        code: Customer code (generated when omitted)
        **profile: profile_* snapshot fields

    Returns:
        Created Customer

    Raises:
        ClienteleError: VALIDATION_FAILED, ADDRESS_REQUIRED, MAX_ADDRESSES,
            DUPLICATE_DEFAULT, COURIER_REQUIRED, COURIER_NOT_FOUND,
            DUPLICATE_EMAIL, DUPLICATE_CODE, DUPLICATE_USER
    """
    from clientele.services import address as address_service
    from clientele.tasks import sync_new_customer_task

    _check_choice("contact_preference", contact_preference, ContactPreference)
    _check_choice("delivery_method", delivery_method, DeliveryMethod)

    unknown = set(profile) - PROFILE_ADDRESS_FIELDS
    if unknown:
        raise ClienteleError(
            "VALIDATION_FAILED", message=f"Unknown fields: {', '.join(sorted(unknown))}"
        )

    cleaned = [address_service.clean_address_fields(dict(a)) for a in addresses]
    cleaned = _normalize_registration_addresses(delivery_method, cleaned)

    courier = _resolve_courier(courier_code)
    Gates.courier_requirement(delivery_method, courier)
    Gates.email_uniqueness(email)
    conflict = _registration_conflict(email, code, user)
    if conflict is not None:
        raise conflict

    extra = {"code": code} if code else {}
    try:
        with transaction.atomic():
            cust = Customer.objects.create(
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone=phone,
                contact_preference=contact_preference,
                delivery_method=delivery_method,
                courier=courier,
                is_returning_customer=is_returning_customer,
                user=user,
                **profile,
                **extra,
            )
            for data in cleaned:
                CustomerAddress.objects.create(customer=cust, **data)
    except IntegrityError as exc:
        # Lost a race against a concurrent registration
        conflict = _registration_conflict(email, code, user)
        if conflict is None:
            raise
        raise conflict from exc

    logger.info("Customer registered: %s (%d addresses)", cust.code, len(cleaned))

    transaction.on_commit(
        lambda: sync_new_customer_task.delay(cust.code, cust.is_returning_customer)
    )
    customer_created.send(sender=Customer, customer=cust)
    return cust


def update_profile(code: str, courier_code: str | None = None, **fields) -> Customer:
    """
    Update customer fields (only whitelisted fields are accepted).

    Switching to a delivery method other than pickup requires at least one
    address and a courier. When the customer is linked to a ledger contact
    and a ledger-relevant field changed, a best-effort profile push is
    submitted after commit.

    Raises:
        ClienteleError: CUSTOMER_NOT_FOUND, VALIDATION_FAILED, ADDRESS_REQUIRED,
            COURIER_REQUIRED, COURIER_NOT_FOUND, DUPLICATE_EMAIL
    """
    from clientele.tasks import push_profile_task

    with transaction.atomic():
        try:
            cust = Customer.objects.select_for_update().get(code=code, is_active=True)
        except Customer.DoesNotExist:
            raise ClienteleError("CUSTOMER_NOT_FOUND", customer_code=code)

        changes = {}
        for key, value in fields.items():
            if key not in UPDATABLE_FIELDS:
                continue
            old_value = getattr(cust, key)
            if old_value != value:
                changes[key] = {"old": old_value, "new": value}
            setattr(cust, key, value)

        if courier_code is not None:
            courier = _resolve_courier(courier_code) if courier_code else None
            if courier != cust.courier:
                changes["courier"] = {
                    "old": cust.courier.code if cust.courier else None,
                    "new": courier.code if courier else None,
                }
            cust.courier = courier

        _check_choice("contact_preference", cust.contact_preference, ContactPreference)
        _check_choice("delivery_method", cust.delivery_method, DeliveryMethod)

        if "email" in changes:
            Gates.email_uniqueness(cust.email, exclude_customer_id=cust.pk)

        if cust.needs_address:
            if not cust.addresses.exists():
                raise ClienteleError("ADDRESS_REQUIRED")
            Gates.courier_requirement(cust.delivery_method, cust.courier)

        try:
            cust.save()
        except IntegrityError as exc:
            raise ClienteleError("DUPLICATE_EMAIL", email=cust.email) from exc

    if changes:
        customer_updated.send(sender=Customer, customer=cust, changes=changes)
        if cust.ledger_contact_id and LEDGER_FIELDS & changes.keys():
            transaction.on_commit(lambda: push_profile_task.delay(cust.code))
    return cust


def delete(code: str) -> None:
    """Delete a customer and (by cascade) all of its addresses."""
    cust = get_or_raise(code)
    email = cust.email
    cust.delete()
    logger.info("Customer deleted: %s", code)
    customer_deleted.send(sender=Customer, code=code, email=email)


def delete_account(user) -> str:
    """
    Self-service deletion: the customer linked to ``user`` and, unless it
    is a staff account, the auth user itself.

    Returns:
        Code of the deleted customer

    Raises:
        ClienteleError: CUSTOMER_NOT_FOUND
    """
    cust = get_for_user(user)
    if cust is None:
        raise ClienteleError("CUSTOMER_NOT_FOUND", message="Customer profile not found")

    code = cust.code
    with transaction.atomic():
        delete(code)
        if not user.is_staff:
            user.delete()
    return code
