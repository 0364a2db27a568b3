"""Tests for the ledger sync coordinator."""

from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from clientele import sync_state as states
from clientele.exceptions import ClienteleError, LedgerError
from clientele.models import Customer
from clientele.protocols.ledger import LedgerInvoice
from clientele.services import sync as sync_service
from clientele.signals import sync_status_changed


pytestmark = pytest.mark.django_db


def set_sync(cust, **columns):
    Customer.objects.filter(pk=cust.pk).update(**columns)
    cust.refresh_from_db()
    return cust


def failed(cust, attempts=1, minutes_ago=120, contact_id=None):
    return set_sync(
        cust,
        sync_status="failed",
        sync_error="Previous failure",
        sync_attempts=attempts,
        sync_last_attempt_at=timezone.now() - timedelta(minutes=minutes_ago),
        ledger_contact_id=contact_id,
    )


# ═══════════════════════════════════════════════════════════════════
# Matching
# ═══════════════════════════════════════════════════════════════════


class TestFindMatchingContact:
    def test_email_match(self, ledger):
        ledger.add_contact("ZC-1", "Someone Else", "juan@example.com")
        match = sync_service.find_matching_contact(ledger, "juan@example.com", "Juan Dela Cruz")
        assert match.contact.contact_id == "ZC-1"

    def test_name_fallback(self, ledger):
        ledger.add_contact("ZC-2", "Juan Dela Cruz", "old@example.com")
        match = sync_service.find_matching_contact(ledger, "juan@example.com", "Juan Dela Cruz")
        assert match.contact.contact_id == "ZC-2"

    def test_partial_name_is_not_a_match(self, ledger):
        ledger.add_contact("ZC-3", "Juan Dela Cruz Jr", "")
        match = sync_service.find_matching_contact(ledger, "juan@example.com", "Juan Dela Cruz")
        assert match.contact is None
        assert match.ambiguous is False

    def test_ambiguous(self, ledger):
        ledger.add_contact("ZC-4", "Juan Dela Cruz", "")
        ledger.add_contact("ZC-5", "juan dela cruz", "")
        match = sync_service.find_matching_contact(ledger, "juan@example.com", "Juan Dela Cruz")
        assert match.contact is None
        assert match.candidates == 2


class TestContactPayload:
    def test_billing_address_from_profile(self, delivery_customer):
        payload = sync_service.contact_payload(delivery_customer)
        assert payload.contact_name == "Maria Santos"
        assert payload.email == "maria@example.com"
        assert payload.billing_address.address == "45 Mabini Ave, Brgy. Poblacion"
        assert payload.billing_address.city == "Quezon City"
        assert payload.billing_address.zip == "1100"

    def test_no_profile_address(self, customer):
        assert sync_service.contact_payload(customer).billing_address is None


# ═══════════════════════════════════════════════════════════════════
# TriggerSync
# ═══════════════════════════════════════════════════════════════════


class TestTriggerSync:
    def test_match_found(self, customer, ledger):
        ledger.add_contact("ZC-1", "Juan Dela Cruz", "juan@example.com")

        outcome = sync_service.trigger_sync("CUS-0001", "match")

        assert outcome.success is True
        assert outcome.status == "synced"
        assert outcome.contact_id == "ZC-1"
        customer.refresh_from_db()
        assert customer.sync_attempts == 0
        assert customer.sync_error is None
        assert customer.sync_last_attempt_at is not None

    def test_match_twice_same_reference(self, customer, ledger):
        ledger.add_contact("ZC-1", "Juan Dela Cruz", "juan@example.com")

        first = sync_service.trigger_sync("CUS-0001", "match")
        second = sync_service.trigger_sync("CUS-0001", "match")

        assert first.contact_id == second.contact_id == "ZC-1"
        customer.refresh_from_db()
        assert customer.sync_status == "synced"
        assert customer.ledger_contact_id == "ZC-1"

    def test_no_match_fails(self, customer, ledger):
        outcome = sync_service.trigger_sync("CUS-0001", "match")

        assert outcome.success is False
        assert outcome.status == "failed"
        customer.refresh_from_db()
        assert customer.sync_attempts == 1
        assert customer.sync_error == "No matching contact found in the ledger"
        assert ledger.created == []

    def test_ambiguous_match_fails_for_review(self, customer, ledger):
        ledger.add_contact("ZC-1", "Juan Dela Cruz", "")
        ledger.add_contact("ZC-2", "Juan Dela Cruz", "")

        outcome = sync_service.trigger_sync("CUS-0001", "match")

        assert outcome.status == "failed"
        assert outcome.error == "Multiple matches found (2). Admin review required."

    def test_create(self, delivery_customer, ledger):
        outcome = sync_service.trigger_sync("CUS-0002", "create")

        assert outcome.success is True
        assert outcome.contact_id == "ZC-0001"
        assert ledger.created[0].billing_address.address == "45 Mabini Ave, Brgy. Poblacion"

    def test_ledger_error_captured(self, customer, ledger):
        ledger.fail_with = LedgerError("Zoho API error: 429 - rate limited", status_code=429)

        outcome = sync_service.trigger_sync("CUS-0001", "match")
        outcome = sync_service.trigger_sync("CUS-0001", "match")

        assert outcome.success is False
        assert outcome.error == "Zoho API error: 429 - rate limited"
        customer.refresh_from_db()
        assert customer.sync_attempts == 2

    def test_not_connected_leaves_state(self, customer, ledger):
        ledger.connected = False
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.trigger_sync("CUS-0001", "match")
        assert exc_info.value.code == "NOT_CONNECTED"
        assert exc_info.value.category == "external"
        customer.refresh_from_db()
        assert customer.sync_status == "pending"
        assert customer.sync_last_attempt_at is None

    def test_invalid_action(self, customer, ledger):
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.trigger_sync("CUS-0001", "delete")
        assert exc_info.value.code == "INVALID_SYNC_ACTION"

    def test_unknown_customer(self, db, ledger):
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.trigger_sync("CUS-NOPE")
        assert exc_info.value.code == "CUSTOMER_NOT_FOUND"

    def test_in_flight_claim_blocks(self, customer, ledger):
        set_sync(customer, sync_status="syncing", sync_last_attempt_at=timezone.now())
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.trigger_sync("CUS-0001", "match")
        assert exc_info.value.code == "SYNC_IN_PROGRESS"

    def test_stale_claim_reclaimed(self, customer, ledger):
        ledger.add_contact("ZC-1", "Juan Dela Cruz", "juan@example.com")
        set_sync(
            customer,
            sync_status="syncing",
            sync_last_attempt_at=timezone.now() - timedelta(hours=1),
        )
        outcome = sync_service.trigger_sync("CUS-0001", "match")
        assert outcome.status == "synced"

    def test_signal_sent_per_transition(self, customer, ledger):
        ledger.add_contact("ZC-1", "Juan Dela Cruz", "juan@example.com")
        seen = []

        def handler(sender, customer, previous, state, **kwargs):
            seen.append((previous, state.status))

        sync_status_changed.connect(handler)
        try:
            sync_service.trigger_sync("CUS-0001", "match")
        finally:
            sync_status_changed.disconnect(handler)

        assert seen == [("pending", "syncing"), ("syncing", "synced")]


# ═══════════════════════════════════════════════════════════════════
# SyncProfile
# ═══════════════════════════════════════════════════════════════════


class TestSyncProfile:
    def test_not_linked(self, customer, ledger):
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.sync_profile("CUS-0001")
        assert exc_info.value.code == "NOT_LINKED"
        customer.refresh_from_db()
        assert customer.sync_status == "pending"

    def test_not_connected(self, customer, ledger):
        set_sync(customer, sync_status="synced", ledger_contact_id="ZC-1")
        ledger.connected = False
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.sync_profile("CUS-0001")
        assert exc_info.value.code == "NOT_CONNECTED"

    def test_push_success(self, delivery_customer, ledger):
        set_sync(delivery_customer, sync_status="manual", ledger_contact_id="ZC-9")

        outcome = sync_service.sync_profile("CUS-0002")

        assert outcome.status == "synced"
        assert ledger.updated[0][0] == "ZC-9"

    def test_push_failure_keeps_link(self, customer, ledger):
        set_sync(customer, sync_status="synced", ledger_contact_id="ZC-1")
        ledger.fail_with = LedgerError("Zoho API timeout: /contacts/ZC-1")

        outcome = sync_service.sync_profile("CUS-0001")

        assert outcome.status == "failed"
        customer.refresh_from_db()
        assert customer.ledger_contact_id == "ZC-1"
        assert customer.sync_attempts == 1
        assert customer.sync_error == "Zoho API timeout: /contacts/ZC-1"


class TestStoredColumns:
    def test_store_writes_variant_columns(self, customer):
        state = states.Skipped(reason="Ledger not connected")

        sync_service._store(customer, state)

        row = Customer.objects.values(
            "sync_status", "sync_error", "sync_attempts", "ledger_contact_id"
        ).get(pk=customer.pk)
        assert row == states.to_columns(state)
        assert customer.sync_state == state

    def test_failure_increments_in_sql(self, customer):
        failed(customer, attempts=2)
        stale = Customer.objects.get(pk=customer.pk)
        Customer.objects.filter(pk=customer.pk).update(sync_attempts=5)

        sync_service._store_failure(stale, "boom")

        customer.refresh_from_db()
        assert customer.sync_attempts == 6
        assert customer.sync_error == "boom"


# ═══════════════════════════════════════════════════════════════════
# Reset / link / unlink
# ═══════════════════════════════════════════════════════════════════


class TestResetSyncStatus:
    @pytest.mark.parametrize(
        "columns",
        [
            {"sync_status": "pending"},
            {"sync_status": "failed", "sync_error": "boom", "sync_attempts": 3},
            {"sync_status": "synced", "ledger_contact_id": "ZC-1"},
            {"sync_status": "manual", "ledger_contact_id": "ZC-2"},
            {"sync_status": "skipped", "sync_error": "Ledger not connected"},
            {"sync_status": "failed", "sync_error": "x", "sync_attempts": 1, "ledger_contact_id": "ZC-3"},
        ],
    )
    def test_reset_clears_and_keeps_link(self, customer, columns):
        set_sync(customer, **columns)
        link = customer.ledger_contact_id

        cust = sync_service.reset_sync_status("CUS-0001")

        assert cust.sync_status == "pending"
        assert cust.sync_error is None
        assert cust.sync_attempts == 0
        assert cust.ledger_contact_id == link


class TestManualLink:
    def test_link_verified(self, customer, ledger):
        ledger.add_contact("ZC-7", "Juan D.", "")
        cust = sync_service.link_contact("CUS-0001", "ZC-7")
        assert cust.sync_status == "manual"
        assert cust.ledger_contact_id == "ZC-7"

    def test_link_unknown_contact(self, customer, ledger):
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.link_contact("CUS-0001", "ZC-404")
        assert exc_info.value.code == "LEDGER_CONTACT_NOT_FOUND"
        customer.refresh_from_db()
        assert customer.ledger_contact_id is None

    def test_link_from_failed(self, customer, ledger):
        failed(customer, attempts=2)
        cust = sync_service.link_contact("CUS-0001", "ZC-8", verify=False)
        assert cust.sync_status == "manual"
        assert cust.sync_attempts == 0
        assert cust.sync_error is None

    def test_link_while_disconnected(self, customer, ledger):
        ledger.connected = False
        cust = sync_service.link_contact("CUS-0001", "ZC-8")
        assert cust.sync_status == "manual"

    def test_link_requires_id(self, customer, ledger):
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.link_contact("CUS-0001", "  ")
        assert exc_info.value.code == "VALIDATION_FAILED"

    def test_unlink(self, customer):
        set_sync(customer, sync_status="manual", ledger_contact_id="ZC-7")
        cust = sync_service.unlink_contact("CUS-0001")
        assert cust.sync_status == "pending"
        assert cust.ledger_contact_id is None


class TestSearchContacts:
    def test_matches_name_or_email(self, ledger):
        ledger.add_contact("ZC-1", "Juan Dela Cruz", "juan@example.com")
        ledger.add_contact("ZC-2", "Maria Santos", "maria@shop.ph")
        assert [c.contact_id for c in sync_service.search_contacts("  santos ")] == ["ZC-2"]
        assert [c.contact_id for c in sync_service.search_contacts("example.com")] == ["ZC-1"]

    @pytest.mark.parametrize("query", ["", "j", "  j  ", None])
    def test_query_too_short(self, ledger, query):
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.search_contacts(query)
        assert exc_info.value.code == "QUERY_TOO_SHORT"

    def test_not_connected(self, ledger):
        ledger.connected = False
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.search_contacts("juan")
        assert exc_info.value.code == "NOT_CONNECTED"

    def test_ledger_failure(self, ledger):
        ledger.fail_with = LedgerError("timeout")
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.search_contacts("juan")
        assert exc_info.value.code == "LEDGER_UNAVAILABLE"


# ═══════════════════════════════════════════════════════════════════
# ProcessQueue
# ═══════════════════════════════════════════════════════════════════


class TestQueueSelection:
    def test_pending_selected(self, customer):
        assert sync_service.queue() == ["CUS-0001"]

    def test_backoff_not_elapsed(self, customer):
        failed(customer, attempts=1, minutes_ago=2)
        assert sync_service.queue() == []

    def test_backoff_elapsed(self, customer):
        failed(customer, attempts=1, minutes_ago=6)
        assert sync_service.queue() == ["CUS-0001"]

    def test_second_retry_waits_longer(self, customer):
        failed(customer, attempts=2, minutes_ago=10)
        assert sync_service.queue() == []
        failed(customer, attempts=2, minutes_ago=16)
        assert sync_service.queue() == ["CUS-0001"]

    def test_attempt_ceiling(self, customer):
        failed(customer, attempts=3, minutes_ago=600)
        assert sync_service.queue() == []

    @pytest.mark.parametrize("status,contact", [("synced", "ZC-1"), ("manual", "ZC-1")])
    def test_linked_not_selected(self, customer, status, contact):
        set_sync(customer, sync_status=status, ledger_contact_id=contact)
        assert sync_service.queue() == []

    def test_skipped_selected(self, customer):
        set_sync(customer, sync_status="skipped", sync_error="Ledger not connected")
        assert sync_service.queue() == ["CUS-0001"]

    def test_limit(self, customer, delivery_customer):
        assert len(sync_service.queue(limit=1)) == 1


class TestProcessQueue:
    def test_summary(self, customer, delivery_customer, ledger):
        ledger.add_contact("ZC-1", "Juan Dela Cruz", "juan@example.com")
        Customer.objects.filter(pk=delivery_customer.pk).update(is_returning_customer=True)

        summary = sync_service.process_queue()

        assert summary.processed == 2
        assert summary.succeeded == 1
        assert summary.failed == 1
        assert summary.errors == ["CUS-0002: No matching contact found in the ledger"]

    def test_new_customer_falls_back_to_create(self, customer, ledger):
        summary = sync_service.process_queue()

        assert summary.succeeded == 1
        customer.refresh_from_db()
        assert customer.sync_status == "synced"
        assert ledger.created[0].email == "juan@example.com"

    def test_not_connected_touches_nothing(self, customer, ledger):
        ledger.connected = False

        summary = sync_service.process_queue()

        assert summary.processed == 0
        assert summary.errors == ["Ledger not connected"]
        customer.refresh_from_db()
        assert customer.sync_status == "pending"

    def test_item_isolation(self, customer, delivery_customer, ledger, monkeypatch):
        original = sync_service.find_matching_contact

        def flaky(backend, email, name):
            if email == "juan@example.com":
                raise RuntimeError("unexpected payload")
            return original(backend, email, name)

        monkeypatch.setattr(sync_service, "find_matching_contact", flaky)

        summary = sync_service.process_queue()

        assert summary.processed == 2
        assert summary.succeeded == 1
        assert summary.failed == 1
        customer.refresh_from_db()
        assert customer.sync_status == "failed"
        assert customer.sync_error == "Unexpected error: RuntimeError"

    @pytest.mark.django_db(transaction=True)
    def test_worker_pool(self, customer, delivery_customer, ledger, monkeypatch):
        original = sync_service.find_matching_contact

        def flaky(backend, email, name):
            if email == "juan@example.com":
                raise RuntimeError("unexpected payload")
            return original(backend, email, name)

        monkeypatch.setattr(sync_service, "find_matching_contact", flaky)
        ledger.add_contact("ZC-2", "Maria Santos", "maria@example.com")

        summary = sync_service.process_queue(workers=2)

        assert summary.processed == 2
        assert summary.succeeded == 1
        assert summary.failed == 1
        assert summary.errors == ["CUS-0001: Unexpected error: RuntimeError"]
        customer.refresh_from_db()
        delivery_customer.refresh_from_db()
        assert customer.sync_status == "failed"
        assert customer.sync_attempts == 1
        assert delivery_customer.sync_status == "synced"
        assert delivery_customer.ledger_contact_id == "ZC-2"

    def test_claimed_elsewhere_skipped(self, customer, ledger, monkeypatch):
        monkeypatch.setattr(sync_service, "queue", lambda **kwargs: ["CUS-0001"])
        set_sync(customer, sync_status="syncing", sync_last_attempt_at=timezone.now())

        summary = sync_service.process_queue()

        assert summary.skipped == 1
        assert summary.processed == 0

    def test_command(self, customer, ledger):
        out = StringIO()
        call_command("clientele_sync_queue", "--workers", "1", stdout=out)
        assert "Processed 1: 1 synced" in out.getvalue()


# ═══════════════════════════════════════════════════════════════════
# SyncNewCustomer
# ═══════════════════════════════════════════════════════════════════


class TestSyncNewCustomer:
    def test_not_connected_skips(self, customer, ledger):
        ledger.connected = False
        sync_service.sync_new_customer("CUS-0001", False)
        customer.refresh_from_db()
        assert customer.sync_status == "skipped"
        assert customer.sync_attempts == 0

    def test_new_customer_stays_pending(self, customer, ledger):
        sync_service.sync_new_customer("CUS-0001", False)
        customer.refresh_from_db()
        assert customer.sync_status == "pending"
        assert ledger.created == []

    def test_returning_customer_matched(self, customer, ledger):
        ledger.add_contact("ZC-1", "Juan Dela Cruz", "juan@example.com")
        sync_service.sync_new_customer("CUS-0001", True)
        customer.refresh_from_db()
        assert customer.sync_status == "synced"

    def test_skipped_customer_synced_once_connected(self, customer, ledger):
        ledger.connected = False
        sync_service.sync_new_customer("CUS-0001", False)

        ledger.connected = True
        summary = sync_service.process_queue()

        assert summary.succeeded == 1
        customer.refresh_from_db()
        assert customer.sync_status == "synced"
        assert customer.sync_error is None
        assert ledger.created[0].email == "juan@example.com"

    def test_errors_never_raise(self, db, ledger):
        sync_service.sync_new_customer("CUS-NOPE", True)


# ═══════════════════════════════════════════════════════════════════
# Invoices
# ═══════════════════════════════════════════════════════════════════


class TestCustomerInvoices:
    @pytest.fixture
    def linked(self, customer, ledger):
        set_sync(customer, sync_status="synced", ledger_contact_id="ZC-1")
        ledger.invoices["ZC-1"] = [
            LedgerInvoice(
                invoice_id="INV-1",
                invoice_number="INV-000001",
                status="sent",
                date="2026-10-01",
                due_date="2026-10-15",
                total=1500.0,
                balance=1500.0,
            )
        ]
        return customer

    def test_lists_invoices(self, linked, ledger):
        page = sync_service.customer_invoices("CUS-0001")
        assert [i.invoice_number for i in page.items] == ["INV-000001"]
        assert page.total == 1

    def test_cached(self, linked, ledger):
        sync_service.customer_invoices("CUS-0001")
        sync_service.customer_invoices("CUS-0001")
        assert ledger.invoice_calls == 1

    def test_not_linked(self, customer, ledger):
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.customer_invoices("CUS-0001")
        assert exc_info.value.code == "NOT_LINKED"

    def test_invalid_filter(self, linked):
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.customer_invoices("CUS-0001", filter="draft")
        assert exc_info.value.code == "VALIDATION_FAILED"

    def test_ledger_error(self, linked, ledger):
        ledger.fail_with = LedgerError("Zoho API error: 500 - oops", status_code=500)
        with pytest.raises(ClienteleError) as exc_info:
            sync_service.customer_invoices("CUS-0001", filter="all")
        assert exc_info.value.code == "LEDGER_UNAVAILABLE"
