"""Address service.

Every mutation runs in transaction.atomic() with the owning customer row
locked (select_for_update), so concurrent calls for one customer are
serialized and the clear-then-set default switch is never observed halfway.

Rules:
- At most MAX_ADDRESSES addresses per customer (G3)
- The first address is always the default
- Exactly one default whenever a customer has any address
- A non-pickup customer cannot delete its only address (G4)
"""

import logging

from django.db import DatabaseError, transaction
from django.utils import timezone

from clientele.exceptions import ClienteleError
from clientele.forms import AddressForm, form_errors
from clientele.gates import Gates
from clientele.models import Customer, CustomerAddress
from clientele.services.customer import get

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = (
    "label",
    "recipient_first_name",
    "recipient_last_name",
    "street_address",
    "barangay",
    "city",
    "province",
    "region",
    "postal_code",
)


def clean_address_fields(data: dict) -> dict:
    """
    Validate raw address input.

    Returns:
        Cleaned dict with ADDRESS_FIELDS and is_default

    Raises:
        ClienteleError: VALIDATION_FAILED with per-field errors
    """
    form = AddressForm(data)
    if not form.is_valid():
        raise ClienteleError("VALIDATION_FAILED", errors=form_errors(form))
    return dict(form.cleaned_data)


def _lock_customer(customer_code: str) -> Customer:
    """Lock the customer row for the rest of the current transaction."""
    try:
        return Customer.objects.select_for_update().get(code=customer_code, is_active=True)
    except Customer.DoesNotExist:
        raise ClienteleError("CUSTOMER_NOT_FOUND", customer_code=customer_code)


def _owned_address(cust: Customer, address_id: int) -> CustomerAddress:
    try:
        return CustomerAddress.objects.get(pk=address_id, customer=cust)
    except CustomerAddress.DoesNotExist:
        raise ClienteleError("ADDRESS_NOT_FOUND", address_id=address_id)


def addresses(customer_code: str) -> list[CustomerAddress]:
    """List customer addresses (default first)."""
    cust = get(customer_code)
    if not cust:
        return []
    return list(cust.addresses.all())


def default_address(customer_code: str) -> CustomerAddress | None:
    """Return default address."""
    cust = get(customer_code)
    if not cust:
        return None
    return cust.default_address


def add_address(customer_code: str, is_default: bool = False, **fields) -> CustomerAddress:
    """
    Add address to customer.

    Args:
        customer_code: Customer code
        is_default: Request this address as the default
        **fields: label, recipient_first_name, recipient_last_name,
            street_address, barangay, city, province, region, postal_code

    Returns:
        Created CustomerAddress. The customer's first address is always
        the default, whatever is_default says.

    Raises:
        ClienteleError: CUSTOMER_NOT_FOUND, MAX_ADDRESSES, VALIDATION_FAILED
    """
    data = clean_address_fields({**fields, "is_default": is_default})

    with transaction.atomic():
        cust = _lock_customer(customer_code)
        count = cust.addresses.count()
        Gates.address_capacity(count)

        if count == 0:
            data["is_default"] = True
        elif data["is_default"]:
            cust.addresses.filter(is_default=True).update(
                is_default=False, updated_at=timezone.now()
            )

        addr = CustomerAddress.objects.create(customer=cust, **data)

    logger.info(
        "Address %s added to %s (default=%s)", addr.pk, customer_code, addr.is_default
    )
    return addr


def update_address(customer_code: str, address_id: int, **fields) -> CustomerAddress:
    """
    Update an address owned by the customer.

    Only the fields passed are changed. is_default=True demotes the other
    addresses first; is_default omitted or False leaves other defaults
    untouched. The current default cannot be demoted here: defaults move
    by promoting another address (set_default_address).

    Raises:
        ClienteleError: CUSTOMER_NOT_FOUND, ADDRESS_NOT_FOUND, VALIDATION_FAILED
    """
    with transaction.atomic():
        cust = _lock_customer(customer_code)
        addr = _owned_address(cust, address_id)

        merged = {f: getattr(addr, f) for f in ADDRESS_FIELDS}
        merged["region"] = merged["region"] or ""
        merged.update({k: v for k, v in fields.items() if k in ADDRESS_FIELDS})
        merged["is_default"] = fields.get("is_default", False)
        data = clean_address_fields(merged)

        promote = data.pop("is_default")
        if promote and not addr.is_default:
            cust.addresses.filter(is_default=True).exclude(pk=addr.pk).update(
                is_default=False, updated_at=timezone.now()
            )
            addr.is_default = True

        for key, value in data.items():
            setattr(addr, key, value)
        addr.save()

    return addr


def delete_address(customer_code: str, address_id: int) -> bool:
    """
    Delete an address.

    When the deleted address was the default and others remain, the oldest
    remaining address becomes the default.

    Raises:
        ClienteleError: CUSTOMER_NOT_FOUND, ADDRESS_NOT_FOUND,
            CANNOT_DELETE_ONLY_ADDRESS
    """
    with transaction.atomic():
        cust = _lock_customer(customer_code)
        addr = _owned_address(cust, address_id)

        count = cust.addresses.count()
        Gates.delete_guard(cust.delivery_method, count)

        was_default = addr.is_default
        addr.delete()

        promoted = None
        if was_default:
            promoted = cust.addresses.order_by("created_at", "pk").first()
            if promoted:
                promoted.is_default = True
                promoted.save(update_fields=["is_default", "updated_at"])

    logger.info(
        "Address %s deleted from %s (promoted=%s)",
        address_id,
        customer_code,
        promoted.pk if promoted else None,
    )
    return True


def set_default_address(customer_code: str, address_id: int) -> CustomerAddress:
    """
    Make an address the customer's default.

    Clears every other default, sets this one, then touches the customer's
    updated_at, all in one transaction. A database failure in either step
    rolls back both and names the failing step.

    Raises:
        ClienteleError: CUSTOMER_NOT_FOUND, ADDRESS_NOT_FOUND,
            DEFAULT_CLEAR_FAILED, DEFAULT_SET_FAILED
    """
    with transaction.atomic():
        cust = _lock_customer(customer_code)
        addr = _owned_address(cust, address_id)
        now = timezone.now()

        try:
            CustomerAddress.objects.filter(customer=cust).exclude(pk=addr.pk).update(
                is_default=False, updated_at=now
            )
        except DatabaseError as exc:
            logger.exception("Clearing defaults failed for %s", customer_code)
            raise ClienteleError("DEFAULT_CLEAR_FAILED", address_id=address_id) from exc

        try:
            CustomerAddress.objects.filter(pk=addr.pk).update(is_default=True, updated_at=now)
        except DatabaseError as exc:
            logger.exception("Setting default %s failed for %s", address_id, customer_code)
            raise ClienteleError("DEFAULT_SET_FAILED", address_id=address_id) from exc

        Customer.objects.filter(pk=cust.pk).update(updated_at=now)

    addr.refresh_from_db()
    return addr
