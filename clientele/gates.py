"""
Clientele Gates - Validation rules.

G1: EmailUniqueness - Email cannot belong to another Customer
G2: SingleDefault - Max 1 default address per customer
G3: AddressCapacity - Customer cannot exceed MAX_ADDRESSES
G4: DeleteGuard - Non-pickup customers keep at least one address
G5: CourierRequirement - Non-pickup customers must have a courier
G6: CronAuthenticity - Cron call carries the configured bearer secret
"""

import hmac
import logging
from dataclasses import dataclass

from clientele.exceptions import ClienteleError

logger = logging.getLogger(__name__)


class GateError(ClienteleError):
    """Gate validation error."""

    def __init__(
        self,
        gate_name: str,
        code: str,
        message: str | None = None,
        details: dict | None = None,
    ):
        self.gate_name = gate_name
        self.details = details or {}
        super().__init__(code, message, **self.details)
        self.args = (f"[{gate_name}] {self.message}",)


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


# =============================================================================
# Gates
# =============================================================================


class Gates:
    """Clientele validation gates."""

    # =========================================================================
    # G1: Email Uniqueness
    # =========================================================================

    @classmethod
    def email_uniqueness(
        cls,
        email: str,
        exclude_customer_id: int | None = None,
    ) -> GateResult:
        """
        G1: Email cannot exist in another Customer (case-insensitive).

        Args:
            email: Email to check
            exclude_customer_id: Customer ID to exclude from check (for updates)

        Raises:
            GateError: If email belongs to another customer
        """
        from clientele.models import Customer

        query = Customer.objects.filter(email__iexact=email.strip())
        if exclude_customer_id:
            query = query.exclude(pk=exclude_customer_id)

        existing = query.first()
        if existing:
            raise GateError(
                "G1_EmailUniqueness",
                "DUPLICATE_EMAIL",
                details={"existing_customer_code": existing.code},
            )

        return GateResult(True, "G1_EmailUniqueness")

    @classmethod
    def check_email_uniqueness(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.email_uniqueness(*args, **kwargs)
            return True
        except GateError:
            return False

    # =========================================================================
    # G2: Single Default
    # =========================================================================

    @classmethod
    def single_default(cls, customer_id: int) -> GateResult:
        """
        G2: Maximum 1 default address per customer.

        The database enforces this with a partial unique constraint; the
        gate exists for audits and for data loaded around the constraint.

        Raises:
            GateError: If multiple defaults exist
        """
        from clientele.models import CustomerAddress

        count = CustomerAddress.objects.filter(
            customer_id=customer_id,
            is_default=True,
        ).count()

        if count > 1:
            raise GateError(
                "G2_SingleDefault",
                "DUPLICATE_DEFAULT",
                f"Multiple default addresses ({count}).",
                {"count": count},
            )

        return GateResult(True, "G2_SingleDefault")

    @classmethod
    def check_single_default(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.single_default(*args, **kwargs)
            return True
        except GateError:
            return False

    # =========================================================================
    # G3: Address Capacity
    # =========================================================================

    @classmethod
    def address_capacity(cls, current_count: int, adding: int = 1) -> GateResult:
        """
        G3: Customer cannot hold more than MAX_ADDRESSES addresses.

        Args:
            current_count: Addresses the customer holds now
            adding: Addresses about to be added

        Raises:
            GateError: If the result would exceed the limit
        """
        from clientele.conf import clientele_settings

        limit = clientele_settings.MAX_ADDRESSES
        if current_count + adding > limit:
            raise GateError(
                "G3_AddressCapacity",
                "MAX_ADDRESSES",
                f"Maximum {limit} addresses allowed",
                {"limit": limit, "count": current_count},
            )

        return GateResult(True, "G3_AddressCapacity")

    @classmethod
    def check_address_capacity(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.address_capacity(*args, **kwargs)
            return True
        except GateError:
            return False

    # =========================================================================
    # G4: Delete Guard
    # =========================================================================

    @classmethod
    def delete_guard(cls, delivery_method: str, current_count: int) -> GateResult:
        """
        G4: A non-pickup customer cannot delete its only address.

        Raises:
            GateError: If the address is the last one of a delivery customer
        """
        from clientele.models import DeliveryMethod

        if delivery_method != DeliveryMethod.PICKUP and current_count <= 1:
            raise GateError(
                "G4_DeleteGuard",
                "CANNOT_DELETE_ONLY_ADDRESS",
                details={"delivery_method": delivery_method},
            )

        return GateResult(True, "G4_DeleteGuard")

    @classmethod
    def check_delete_guard(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.delete_guard(*args, **kwargs)
            return True
        except GateError:
            return False

    # =========================================================================
    # G5: Courier Requirement
    # =========================================================================

    @classmethod
    def courier_requirement(cls, delivery_method: str, courier) -> GateResult:
        """
        G5: Non-pickup customers must reference a courier.

        Raises:
            GateError: If delivery needs a courier and none is given
        """
        from clientele.models import DeliveryMethod

        if delivery_method != DeliveryMethod.PICKUP and not courier:
            raise GateError(
                "G5_CourierRequirement",
                "COURIER_REQUIRED",
                details={"delivery_method": delivery_method},
            )

        return GateResult(True, "G5_CourierRequirement")

    # =========================================================================
    # G6: Cron Authenticity
    # =========================================================================

    @classmethod
    def cron_authenticity(cls, authorization: str, secret: str) -> GateResult:
        """
        G6: Cron request carries ``Authorization: Bearer <secret>``.

        Args:
            authorization: Raw Authorization header
            secret: Configured CRON_SECRET

        Raises:
            GateError: If the secret is unset or does not match
        """
        if not secret:
            logger.warning(
                "G6_CronAuthenticity: CRON_SECRET is empty, cron endpoints are disabled."
            )
            raise GateError(
                "G6_CronAuthenticity",
                "UNAUTHORIZED",
                "Cron secret not configured.",
            )

        expected = f"Bearer {secret}"
        if not hmac.compare_digest((authorization or "").encode(), expected.encode()):
            raise GateError("G6_CronAuthenticity", "UNAUTHORIZED", "Invalid cron token.")

        return GateResult(True, "G6_CronAuthenticity")

    @classmethod
    def check_cron_authenticity(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.cron_authenticity(*args, **kwargs)
            return True
        except GateError:
            return False
