"""Clientele exceptions."""


class ClienteleError(Exception):
    """
    Structured exception for customer operations.

    Every error carries a stable ``code``, a human message and a ``category``
    that calling layers map to a response (validation, conflict, not_found,
    external, unauthorized, forbidden).

    Usage:
        try:
            address_service.delete_address("CUS-1A2B3C4D", 7)
        except ClienteleError as e:
            if e.code == "CANNOT_DELETE_ONLY_ADDRESS":
                handle_guard()
    """

    _default_messages = {
        "CUSTOMER_NOT_FOUND": "Customer not found",
        "ADDRESS_NOT_FOUND": "Address not found",
        "COURIER_NOT_FOUND": "Courier not found",
        "TEMPLATE_NOT_FOUND": "Email template not found",
        "LEDGER_CONTACT_NOT_FOUND": "Ledger contact not found",
        "VALIDATION_FAILED": "Validation failed",
        "MAX_ADDRESSES": "Maximum number of addresses reached",
        "ADDRESS_REQUIRED": "Delivery orders require at least one address",
        "CANNOT_DELETE_ONLY_ADDRESS": "Cannot delete the only address for delivery orders",
        "COURIER_REQUIRED": "Please select a courier for delivery orders",
        "INVALID_SYNC_ACTION": "Sync action must be 'create' or 'match'",
        "TOO_MANY_RECIPIENTS": "Too many recipients",
        "DUPLICATE_EMAIL": "A customer with this email already exists",
        "DUPLICATE_CODE": "A customer with this code already exists",
        "DUPLICATE_USER": "This account already has a customer profile",
        "INVALID_TOKEN": "Invalid token",
        "TOKEN_USED": "Token already used",
        "TOKEN_EXPIRED": "Token expired",
        "QUERY_TOO_SHORT": "Search query must be at least 2 characters",
        "DUPLICATE_DEFAULT": "Only one address can be the default",
        "DUPLICATE_COURIER": "A courier with this code already exists",
        "COURIER_IN_USE": "Courier is assigned to customers",
        "SYNC_IN_PROGRESS": "A sync is already in progress for this customer",
        "RATE_LIMITED": "Daily email limit reached",
        "NOT_CONNECTED": "Ledger is not connected",
        "LEDGER_UNAVAILABLE": "Ledger request failed, try again later",
        "NOT_LINKED": "Customer is not linked to a ledger contact",
        "DEFAULT_CLEAR_FAILED": "Failed to clear existing default address",
        "DEFAULT_SET_FAILED": "Failed to set default address",
        "UNAUTHORIZED": "Authentication required",
        "FORBIDDEN": "Admin access required",
    }

    _categories = {
        "CUSTOMER_NOT_FOUND": "not_found",
        "ADDRESS_NOT_FOUND": "not_found",
        "COURIER_NOT_FOUND": "not_found",
        "TEMPLATE_NOT_FOUND": "not_found",
        "LEDGER_CONTACT_NOT_FOUND": "not_found",
        "DUPLICATE_EMAIL": "conflict",
        "DUPLICATE_CODE": "conflict",
        "DUPLICATE_USER": "conflict",
        "DUPLICATE_DEFAULT": "conflict",
        "DUPLICATE_COURIER": "conflict",
        "COURIER_IN_USE": "conflict",
        "SYNC_IN_PROGRESS": "conflict",
        "RATE_LIMITED": "conflict",
        "NOT_CONNECTED": "external",
        "LEDGER_UNAVAILABLE": "external",
        "DEFAULT_CLEAR_FAILED": "internal",
        "DEFAULT_SET_FAILED": "internal",
        "UNAUTHORIZED": "unauthorized",
        "FORBIDDEN": "forbidden",
    }

    def __init__(self, code: str, message: str | None = None, **data):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    @property
    def category(self) -> str:
        """Error category; unlisted codes are validation errors."""
        return self._categories.get(self.code, "validation")

    def as_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "category": self.category,
            "data": self.data,
        }


class LedgerError(Exception):
    """
    Failure talking to the external ledger (network, auth, rate limit, 4xx/5xx).

    Raised by LedgerBackend implementations; the sync coordinator captures
    it into the customer's sync state instead of propagating it.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)
