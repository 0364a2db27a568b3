"""
Django Clientele - Customer profiles, delivery addresses and ledger sync.

Usage:
    from clientele import CustomerService
    from clientele.gates import Gates, GateError, GateResult
    from clientele.services import address as address_service
    from clientele.services import sync as sync_service

    cust = CustomerService.get("CUS-1A2B3C4D")
    validation = CustomerService.validate("CUS-1A2B3C4D")

    address_service.set_default_address("CUS-1A2B3C4D", address_id=7)
    sync_service.trigger_sync("CUS-1A2B3C4D", action="match")
    sync_service.process_queue()
"""


def __getattr__(name):
    if name == "CustomerService":
        from clientele.service import CustomerService

        return CustomerService
    if name == "Gates":
        from clientele.gates import Gates

        return Gates
    if name == "GateError":
        from clientele.gates import GateError

        return GateError
    if name == "GateResult":
        from clientele.gates import GateResult

        return GateResult
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["CustomerService", "Gates", "GateError", "GateResult"]
__version__ = "0.1.0"
