"""
Ledger sync coordinator.

Drives Customer sync columns through the state machine:

    pending  --match found / contact created-->  synced
    pending  --no match, ambiguous, error----->  failed (attempts + 1)
    failed   --retry-->                          synced | failed
    failed   --reset-->                          pending (error and attempts cleared)
    *        --manual link-->                    manual
    *        --manual unlink-->                  pending
    synced   --profile push-->                   synced | failed (link kept)

``skipped`` is only stored when the ledger is not connected at the moment a
sync would have run; it never counts as an attempt and the next queue pass
picks the customer up again.

Every attempt first claims the row with a conditional UPDATE (status moves
to ``syncing``). A caller that loses the claim does nothing: the queue counts
the item as skipped, admin calls get SYNC_IN_PROGRESS. Ledger errors are
captured into the row, never raised, except where an admin asked for an
operation that cannot start (NOT_CONNECTED, NOT_LINKED).
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta

from django.core.cache import cache
from django.db import close_old_connections, transaction
from django.db.models import F, Q
from django.utils import timezone
from django.utils.module_loading import import_string

from clientele import sync_state as states
from clientele.conf import clientele_settings
from clientele.exceptions import ClienteleError, LedgerError
from clientele.models import Customer, SyncStatus
from clientele.protocols.ledger import (
    INVOICE_FILTER_STATUSES,
    BillingAddress,
    ContactPayload,
    InvoicePage,
    LedgerBackend,
    LedgerContact,
)
from clientele.services.customer import get_or_raise
from clientele.signals import sync_status_changed

logger = logging.getLogger(__name__)

SYNC_ACTIONS = ("match", "create")
QUEUE_STATUSES = (SyncStatus.PENDING, SyncStatus.FAILED, SyncStatus.SKIPPED)
NOT_CONNECTED_REASON = "Ledger not connected"


@dataclass
class SyncOutcome:
    """Result of one sync attempt."""

    success: bool
    status: str
    contact_id: str | None = None
    error: str | None = None
    claimed: bool = True


@dataclass
class QueueSummary:
    """Tally of one process_queue() pass."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


@dataclass
class ContactMatch:
    """Outcome of looking up a customer in the ledger."""

    contact: LedgerContact | None = None
    candidates: int = 0

    @property
    def ambiguous(self) -> bool:
        return self.candidates > 1


# ======================================================================
# Backend
# ======================================================================


def get_ledger() -> LedgerBackend:
    """Instantiate the configured LEDGER_BACKEND."""
    backend_class = import_string(clientele_settings.LEDGER_BACKEND)
    return backend_class()


def _is_connected(ledger: LedgerBackend) -> bool:
    try:
        return bool(ledger.is_connected())
    except Exception:
        logger.exception("Ledger connectivity check failed")
        return False


def find_matching_contact(ledger: LedgerBackend, email: str, name: str) -> ContactMatch:
    """
    Find the ledger contact for a customer: exact email first, then exact name.

    Raises:
        LedgerError: Propagated from the backend
    """
    if email:
        hits = [
            c for c in ledger.search_contacts(email) if c.email.lower() == email.lower()
        ]
        if hits:
            return ContactMatch(hits[0] if len(hits) == 1 else None, len(hits))

    if name:
        hits = [
            c
            for c in ledger.search_contacts(name)
            if c.contact_name.strip().lower() == name.lower()
        ]
        if hits:
            return ContactMatch(hits[0] if len(hits) == 1 else None, len(hits))

    return ContactMatch()


def search_contacts(query: str) -> list[LedgerContact]:
    """
    Admin lookup of ledger contacts by name or email (for manual linking).

    Raises:
        ClienteleError: QUERY_TOO_SHORT, NOT_CONNECTED, LEDGER_UNAVAILABLE
    """
    query = (query or "").strip()
    if len(query) < 2:
        raise ClienteleError("QUERY_TOO_SHORT")

    ledger = get_ledger()
    if not _is_connected(ledger):
        raise ClienteleError("NOT_CONNECTED")
    try:
        return list(ledger.search_contacts(query))
    except LedgerError as exc:
        logger.warning("Contact search %r failed: %s", query, exc.message)
        raise ClienteleError("LEDGER_UNAVAILABLE") from exc


def contact_payload(cust: Customer) -> ContactPayload:
    """Local customer data pushed to the ledger."""
    billing = None
    if cust.has_profile_address:
        street = cust.profile_street_address
        if cust.profile_barangay:
            street = f"{street}, Brgy. {cust.profile_barangay}"
        billing = BillingAddress(
            address=street,
            city=cust.profile_city,
            state=cust.profile_province,
            zip=cust.profile_postal_code,
        )
    return ContactPayload(
        contact_name=cust.name,
        email=cust.email,
        phone=cust.phone,
        billing_address=billing,
    )


# ======================================================================
# State storage
# ======================================================================


def _claimable(statuses) -> Q:
    """Rows in one of ``statuses`` or holding a stale ``syncing`` claim."""
    stale_before = timezone.now() - timedelta(seconds=clientele_settings.SYNC_STALE_AFTER)
    stale = Q(sync_status=SyncStatus.SYNCING) & (
        Q(sync_last_attempt_at__lt=stale_before) | Q(sync_last_attempt_at__isnull=True)
    )
    if statuses is None:
        return ~Q(sync_status=SyncStatus.SYNCING) | stale
    return Q(sync_status__in=list(statuses)) | stale


def _claim(cust: Customer, statuses=None) -> bool:
    """Move the row to ``syncing`` if nobody else holds it."""
    previous = cust.sync_status
    claimed = (
        Customer.objects.filter(_claimable(statuses), pk=cust.pk).update(
            sync_status=SyncStatus.SYNCING,
            sync_last_attempt_at=timezone.now(),
        )
        == 1
    )
    if claimed:
        cust.refresh_from_db()
        sync_status_changed.send(
            sender=Customer, customer=cust, previous=previous, state=cust.sync_state
        )
    return claimed


def _store(cust: Customer, state: states.SyncState) -> Customer:
    """Persist a state variant and announce the transition."""
    previous = cust.sync_status
    Customer.objects.filter(pk=cust.pk).update(
        **states.to_columns(state), sync_last_attempt_at=timezone.now()
    )
    cust.refresh_from_db()
    sync_status_changed.send(sender=Customer, customer=cust, previous=previous, state=state)
    logger.info("Customer %s sync: %s -> %s", cust.code, previous, state.status)
    return cust


def _store_failure(cust: Customer, error: str) -> Customer:
    """Record a failed attempt; the attempt counter is incremented in SQL."""
    previous = cust.sync_status
    Customer.objects.filter(pk=cust.pk).update(
        sync_status=SyncStatus.FAILED,
        sync_error=error or "Unknown error",
        sync_attempts=F("sync_attempts") + 1,
        sync_last_attempt_at=timezone.now(),
    )
    cust.refresh_from_db()
    sync_status_changed.send(
        sender=Customer, customer=cust, previous=previous, state=cust.sync_state
    )
    logger.warning(
        "Customer %s sync failed (attempt %d): %s", cust.code, cust.sync_attempts, error
    )
    return cust


def _outcome(cust: Customer) -> SyncOutcome:
    return SyncOutcome(
        success=cust.sync_status in (SyncStatus.SYNCED, SyncStatus.MANUAL),
        status=cust.sync_status,
        contact_id=cust.ledger_contact_id,
        error=cust.sync_error if cust.sync_status == SyncStatus.FAILED else None,
    )


# ======================================================================
# Attempts
# ======================================================================


def _attempt(
    ledger: LedgerBackend,
    cust: Customer,
    action: str,
    statuses=None,
    create_if_missing: bool = False,
) -> SyncOutcome:
    """
    Claim the row, run one match/create against the ledger, store the result.

    Returns an unclaimed outcome when another worker holds the row.
    """
    if not _claim(cust, statuses):
        cust.refresh_from_db()
        return SyncOutcome(
            success=False,
            status=cust.sync_status,
            contact_id=cust.ledger_contact_id,
            error="Sync already in progress",
            claimed=False,
        )

    try:
        if action == "create":
            contact = ledger.create_contact(contact_payload(cust))
            return _outcome(_store(cust, states.Synced(contact_id=contact.contact_id)))

        match = find_matching_contact(ledger, cust.email, cust.name)
        if match.contact:
            return _outcome(_store(cust, states.Synced(contact_id=match.contact.contact_id)))
        if match.ambiguous:
            return _outcome(
                _store_failure(
                    cust,
                    f"Multiple matches found ({match.candidates}). Admin review required.",
                )
            )
        if create_if_missing:
            contact = ledger.create_contact(contact_payload(cust))
            return _outcome(_store(cust, states.Synced(contact_id=contact.contact_id)))
        return _outcome(_store_failure(cust, "No matching contact found in the ledger"))

    except LedgerError as exc:
        return _outcome(_store_failure(cust, exc.message))
    except Exception as exc:
        logger.exception("Unexpected error syncing customer %s", cust.code)
        return _outcome(_store_failure(cust, f"Unexpected error: {exc.__class__.__name__}"))


def trigger_sync(customer_code: str, action: str = "match") -> SyncOutcome:
    """
    Admin-triggered sync attempt.

    Args:
        customer_code: Customer code
        action: "match" (find an existing contact) or "create" (new contact)

    Returns:
        SyncOutcome; ledger errors are captured into the customer row

    Raises:
        ClienteleError: INVALID_SYNC_ACTION, CUSTOMER_NOT_FOUND,
            NOT_CONNECTED (state unchanged), SYNC_IN_PROGRESS
    """
    if action not in SYNC_ACTIONS:
        raise ClienteleError("INVALID_SYNC_ACTION", action=action)

    cust = get_or_raise(customer_code)
    ledger = get_ledger()
    if not _is_connected(ledger):
        raise ClienteleError("NOT_CONNECTED")

    outcome = _attempt(ledger, cust, action)
    if not outcome.claimed:
        raise ClienteleError("SYNC_IN_PROGRESS", customer_code=customer_code)
    return outcome


def sync_profile(customer_code: str) -> SyncOutcome:
    """
    Push local profile fields to the linked ledger contact.

    A failed push records the error and keeps the link.

    Raises:
        ClienteleError: CUSTOMER_NOT_FOUND, NOT_LINKED, NOT_CONNECTED,
            SYNC_IN_PROGRESS
    """
    cust = get_or_raise(customer_code)
    if not cust.ledger_contact_id:
        raise ClienteleError("NOT_LINKED", customer_code=customer_code)

    ledger = get_ledger()
    if not _is_connected(ledger):
        raise ClienteleError("NOT_CONNECTED")

    if not _claim(cust):
        raise ClienteleError("SYNC_IN_PROGRESS", customer_code=customer_code)

    contact_id = cust.ledger_contact_id
    try:
        ledger.update_contact(contact_id, contact_payload(cust))
    except LedgerError as exc:
        return _outcome(_store_failure(cust, exc.message))
    except Exception as exc:
        logger.exception("Unexpected error pushing profile for %s", cust.code)
        return _outcome(_store_failure(cust, f"Unexpected error: {exc.__class__.__name__}"))

    return _outcome(_store(cust, states.Synced(contact_id=contact_id)))


def push_profile_quietly(customer_code: str) -> None:
    """Best-effort sync_profile() after a customer edit; never raises."""
    try:
        sync_profile(customer_code)
    except ClienteleError as exc:
        logger.info("Profile push for %s not run: %s", customer_code, exc.code)


def reset_sync_status(customer_code: str) -> Customer:
    """
    Back to ``pending`` with error and attempts cleared; the link is kept.

    Raises:
        ClienteleError: CUSTOMER_NOT_FOUND
    """
    with transaction.atomic():
        cust = _lock(customer_code)
        return _store(cust, states.Pending(contact_id=cust.ledger_contact_id))


def link_contact(customer_code: str, contact_id: str, verify: bool = True) -> Customer:
    """
    Admin override: link to a specific ledger contact (status ``manual``).

    With verify=True and a connected ledger the contact must exist.

    Raises:
        ClienteleError: CUSTOMER_NOT_FOUND, VALIDATION_FAILED,
            LEDGER_CONTACT_NOT_FOUND, LEDGER_UNAVAILABLE
    """
    contact_id = (contact_id or "").strip()
    if not contact_id:
        raise ClienteleError("VALIDATION_FAILED", errors={"contact_id": ["Contact ID is required"]})

    get_or_raise(customer_code)

    if verify:
        ledger = get_ledger()
        if _is_connected(ledger):
            try:
                contact = ledger.get_contact(contact_id)
            except LedgerError as exc:
                logger.warning("Contact lookup %s failed: %s", contact_id, exc.message)
                raise ClienteleError("LEDGER_UNAVAILABLE") from exc
            if contact is None:
                raise ClienteleError("LEDGER_CONTACT_NOT_FOUND", contact_id=contact_id)
        else:
            logger.warning("Linking %s to %s without verification", customer_code, contact_id)

    with transaction.atomic():
        cust = _lock(customer_code)
        return _store(cust, states.Manual(contact_id=contact_id))


def unlink_contact(customer_code: str) -> Customer:
    """
    Admin override: clear the ledger link (status ``pending``).

    Raises:
        ClienteleError: CUSTOMER_NOT_FOUND
    """
    with transaction.atomic():
        cust = _lock(customer_code)
        return _store(cust, states.Pending())


def _lock(customer_code: str) -> Customer:
    try:
        return Customer.objects.select_for_update().get(code=customer_code, is_active=True)
    except Customer.DoesNotExist:
        raise ClienteleError("CUSTOMER_NOT_FOUND", customer_code=customer_code)


# ======================================================================
# Queue
# ======================================================================


def _retry_due() -> Q:
    """Failed rows under the attempt ceiling whose backoff has elapsed."""
    now = timezone.now()
    delays = list(clientele_settings.SYNC_RETRY_DELAYS) or [0]
    due = Q(pk__in=[])
    for attempts in range(1, clientele_settings.SYNC_MAX_ATTEMPTS):
        minutes = delays[min(attempts - 1, len(delays) - 1)]
        due |= Q(sync_attempts=attempts) & (
            Q(sync_last_attempt_at__lte=now - timedelta(minutes=minutes))
            | Q(sync_last_attempt_at__isnull=True)
        )
    return Q(sync_status=SyncStatus.FAILED) & due


def queue(limit: int | None = None) -> list[str]:
    """Codes of customers due for a sync attempt, oldest attempt first."""
    due = Q(sync_status__in=[SyncStatus.PENDING, SyncStatus.SKIPPED]) | _retry_due()

    qs = (
        Customer.objects.filter(due, is_active=True)
        .order_by(F("sync_last_attempt_at").asc(nulls_first=True), "created_at", "pk")
        .values_list("code", flat=True)
    )
    if limit:
        qs = qs[:limit]
    return list(qs)


def _process_item(ledger: LedgerBackend, code: str) -> SyncOutcome:
    try:
        cust = Customer.objects.get(code=code)
        return _attempt(
            ledger,
            cust,
            "match",
            statuses=QUEUE_STATUSES,
            create_if_missing=not cust.is_returning_customer,
        )
    except Exception as exc:
        logger.exception("Queue item %s failed", code)
        return SyncOutcome(success=False, status=SyncStatus.FAILED, error=str(exc))


def _process_item_in_thread(ledger: LedgerBackend, code: str) -> SyncOutcome:
    close_old_connections()
    try:
        return _process_item(ledger, code)
    finally:
        close_old_connections()


def process_queue(
    limit: int | None = None,
    workers: int | None = None,
) -> QueueSummary:
    """
    Run one match attempt for every due customer (pending, skipped while
    disconnected, or failed with its retry delay elapsed).

    Customers who registered as new (not returning) get a contact created
    when no match exists. Items are independent: one failure never stops
    the pass. When the ledger is not connected nothing is touched.

    Args:
        limit: Maximum customers to process (None = all due)
        workers: Thread pool size (default SYNC_WORKERS; 1 = serial)

    Returns:
        QueueSummary
    """
    summary = QueueSummary()
    ledger = get_ledger()
    if not _is_connected(ledger):
        summary.errors.append(NOT_CONNECTED_REASON)
        logger.warning("Sync queue not processed: %s", NOT_CONNECTED_REASON)
        return summary

    codes = queue(limit=limit)
    if not codes:
        return summary

    workers = workers or clientele_settings.SYNC_WORKERS

    if workers > 1 and len(codes) > 1:
        with ThreadPoolExecutor(
            max_workers=min(workers, len(codes)), thread_name_prefix="clientele-sync"
        ) as pool:
            outcomes = list(
                pool.map(lambda c: _process_item_in_thread(ledger, c), codes)
            )
    else:
        outcomes = [_process_item(ledger, code) for code in codes]

    for code, outcome in zip(codes, outcomes):
        if not outcome.claimed:
            summary.skipped += 1
            continue
        summary.processed += 1
        if outcome.success:
            summary.succeeded += 1
        else:
            summary.failed += 1
            summary.errors.append(f"{code}: {outcome.error}")

    logger.info(
        "Sync queue: processed=%d succeeded=%d failed=%d skipped=%d",
        summary.processed,
        summary.succeeded,
        summary.failed,
        summary.skipped,
    )
    return summary


def sync_new_customer(customer_code: str, is_returning_customer: bool) -> None:
    """
    Registration-time sync, best-effort.

    Not connected: ``skipped``. Returning customer: immediate match attempt.
    New customer: left ``pending`` for process_queue(). Errors are logged only.
    """
    try:
        cust = Customer.objects.get(code=customer_code)
        ledger = get_ledger()

        if not _is_connected(ledger):
            if cust.sync_status == SyncStatus.PENDING:
                _store(cust, states.Skipped(reason=NOT_CONNECTED_REASON))
            return

        if is_returning_customer:
            _attempt(ledger, cust, "match", statuses=(SyncStatus.PENDING,))
    except Exception:
        logger.exception("Registration sync for %s failed", customer_code)


# ======================================================================
# Invoices
# ======================================================================


def customer_invoices(customer_code: str, filter: str = "recent", page: int = 1) -> InvoicePage:
    """
    Invoices of the customer's linked ledger contact, cached LEDGER_CACHE_TTL.

    Raises:
        ClienteleError: CUSTOMER_NOT_FOUND, VALIDATION_FAILED, NOT_LINKED,
            NOT_CONNECTED, LEDGER_UNAVAILABLE
    """
    if filter not in INVOICE_FILTER_STATUSES:
        raise ClienteleError(
            "VALIDATION_FAILED",
            errors={"filter": [f"Must be one of: {', '.join(INVOICE_FILTER_STATUSES)}"]},
        )
    page = max(int(page or 1), 1)

    cust = get_or_raise(customer_code)
    if not cust.ledger_contact_id:
        raise ClienteleError("NOT_LINKED", customer_code=customer_code)

    cache_key = f"clientele:invoices:{cust.ledger_contact_id}:{filter}:{page}"
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    ledger = get_ledger()
    if not _is_connected(ledger):
        raise ClienteleError("NOT_CONNECTED")

    try:
        result = ledger.list_invoices(cust.ledger_contact_id, filter=filter, page=page)
    except LedgerError as exc:
        logger.warning("Invoice fetch for %s failed: %s", customer_code, exc.message)
        raise ClienteleError("LEDGER_UNAVAILABLE") from exc

    cache.set(cache_key, result, clientele_settings.LEDGER_CACHE_TTL)
    return result
