"""
Request capabilities.

Views never read session or user state directly. They build an AuthContext
from the request once and ask it questions; services only ever receive a
resolved customer code.
"""

from dataclasses import dataclass

from clientele.exceptions import ClienteleError
from clientele.models import Customer


@dataclass(frozen=True)
class AuthContext:
    """What the current caller is allowed to do."""

    user: object | None = None
    customer: Customer | None = None

    @classmethod
    def from_request(cls, request) -> "AuthContext":
        from clientele.services.customer import get_for_user

        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return cls()
        return cls(user=user, customer=get_for_user(user))

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def is_admin(self) -> bool:
        return bool(self.user is not None and self.user.is_active and self.user.is_staff)

    def require_admin(self) -> None:
        """
        Raises:
            ClienteleError: UNAUTHORIZED (anonymous), FORBIDDEN (not staff)
        """
        if not self.is_authenticated:
            raise ClienteleError("UNAUTHORIZED")
        if not self.is_admin():
            raise ClienteleError("FORBIDDEN")

    def require_customer(self) -> Customer:
        """
        Returns:
            The caller's Customer

        Raises:
            ClienteleError: UNAUTHORIZED (anonymous), CUSTOMER_NOT_FOUND
                (user without a customer profile)
        """
        if not self.is_authenticated:
            raise ClienteleError("UNAUTHORIZED")
        if self.customer is None:
            raise ClienteleError("CUSTOMER_NOT_FOUND")
        return self.customer
