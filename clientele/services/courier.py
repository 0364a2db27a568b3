"""Courier service - the couriers delivery customers choose from."""

import logging

from django.db import IntegrityError
from django.db.models import ProtectedError

from clientele.exceptions import ClienteleError
from clientele.forms import CourierForm, form_errors
from clientele.models import Courier

logger = logging.getLogger(__name__)


def list_couriers(only_active: bool = True) -> list[Courier]:
    """List couriers ordered by name."""
    qs = Courier.objects.all()
    if only_active:
        qs = qs.filter(is_active=True)
    return list(qs)


def get_or_raise(code: str) -> Courier:
    try:
        return Courier.objects.get(code=code)
    except Courier.DoesNotExist:
        raise ClienteleError("COURIER_NOT_FOUND", courier_code=code)


def create(code: str, name: str, is_active: bool = True) -> Courier:
    """
    Create a courier.

    Raises:
        ClienteleError: VALIDATION_FAILED, DUPLICATE_COURIER
    """
    form = CourierForm({"code": code, "name": name, "is_active": is_active})
    if not form.is_valid():
        raise ClienteleError("VALIDATION_FAILED", errors=form_errors(form))

    if Courier.objects.filter(code=form.cleaned_data["code"]).exists():
        raise ClienteleError("DUPLICATE_COURIER", courier_code=code)

    try:
        courier = Courier.objects.create(**form.cleaned_data)
    except IntegrityError as exc:
        raise ClienteleError("DUPLICATE_COURIER", courier_code=code) from exc

    logger.info("Courier created: %s", courier.code)
    return courier


def update(code: str, name: str | None = None, is_active: bool | None = None) -> Courier:
    """Rename or (de)activate a courier. The code is read-only."""
    courier = get_or_raise(code)
    if name is not None:
        name = name.strip()
        if not name:
            raise ClienteleError("VALIDATION_FAILED", errors={"name": ["This field is required."]})
        courier.name = name
    if is_active is not None:
        courier.is_active = is_active
    courier.save()
    return courier


def delete(code: str) -> None:
    """
    Delete a courier.

    Raises:
        ClienteleError: COURIER_NOT_FOUND, COURIER_IN_USE
    """
    courier = get_or_raise(code)
    try:
        courier.delete()
    except ProtectedError as exc:
        raise ClienteleError(
            "COURIER_IN_USE",
            courier_code=code,
            customers=courier.customers.count(),
        ) from exc
    logger.info("Courier deleted: %s", code)
