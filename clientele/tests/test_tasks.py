"""Tests for the Celery tasks (run eagerly)."""

import pytest

from clientele.models import Customer
from clientele.services import customer as customer_service
from clientele.tasks import process_sync_queue_task, push_profile_task, sync_new_customer_task


pytestmark = pytest.mark.django_db


class TestSyncNewCustomerTask:
    def test_disconnected_marks_skipped(self, customer, ledger):
        ledger.connected = False
        sync_new_customer_task.delay("CUS-0001", False)
        customer.refresh_from_db()
        assert customer.sync_status == "skipped"

    def test_returning_customer_matched(self, customer, ledger):
        ledger.add_contact("ZC-1", "Juan Dela Cruz", "juan@example.com")
        sync_new_customer_task.delay("CUS-0001", True)
        customer.refresh_from_db()
        assert customer.ledger_contact_id == "ZC-1"

    def test_unknown_customer_never_raises(self, db, ledger):
        result = sync_new_customer_task.delay("CUS-NOPE", True)
        assert result.successful()

    def test_queued_by_registration_after_commit(
        self, ledger, django_capture_on_commit_callbacks
    ):
        ledger.add_contact("ZC-7", "Rosa Reyes", "rosa@example.com")
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            cust = customer_service.register(
                first_name="Rosa",
                last_name="Reyes",
                email="rosa@example.com",
                is_returning_customer=True,
            )

        cust.refresh_from_db()
        assert cust.sync_status == "pending"

        for callback in callbacks:
            callback()
        cust.refresh_from_db()
        assert cust.sync_status == "synced"


class TestPushProfileTask:
    def test_pushes_linked_customer(self, delivery_customer, ledger):
        Customer.objects.filter(pk=delivery_customer.pk).update(
            sync_status="manual", ledger_contact_id="ZC-9"
        )
        push_profile_task.delay("CUS-0002")
        assert ledger.updated[0][0] == "ZC-9"

    def test_unlinked_is_quiet(self, customer, ledger):
        result = push_profile_task.delay("CUS-0001")
        assert result.successful()
        assert ledger.updated == []

    def test_queued_by_profile_edit(
        self, delivery_customer, ledger, django_capture_on_commit_callbacks
    ):
        Customer.objects.filter(pk=delivery_customer.pk).update(
            sync_status="synced", ledger_contact_id="ZC-9"
        )
        with django_capture_on_commit_callbacks(execute=True):
            customer_service.update_profile("CUS-0002", phone="09179999999")
        assert ledger.updated[0][1].phone == "09179999999"


class TestProcessSyncQueueTask:
    def test_returns_summary(self, customer, ledger):
        result = process_sync_queue_task.delay()
        assert result.get() == {
            "processed": 1,
            "succeeded": 1,
            "failed": 0,
            "skipped": 0,
            "errors": [],
        }
        customer.refresh_from_db()
        assert customer.sync_status == "synced"
