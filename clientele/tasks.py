"""
Celery tasks for best-effort ledger work.

Registration and profile edits submit these after commit so the customer
write never waits on the ledger. The host project owns the Celery app;
shared_task binds these to it.
"""

import logging

from celery import shared_task

from clientele.services import sync as sync_service

logger = logging.getLogger(__name__)


@shared_task
def sync_new_customer_task(customer_code: str, is_returning_customer: bool):
    """Registration-time sync; see services.sync.sync_new_customer."""
    sync_service.sync_new_customer(customer_code, is_returning_customer)


@shared_task
def push_profile_task(customer_code: str):
    """Push an edited profile to the linked ledger contact."""
    sync_service.push_profile_quietly(customer_code)


@shared_task(bind=True, max_retries=3)
def process_sync_queue_task(self, limit: int | None = None):
    """
    Periodic sync pass (schedule with celery beat as an alternative to cron).

    Returns the QueueSummary as a dict.
    """
    try:
        summary = sync_service.process_queue(limit=limit)
    except Exception as exc:
        logger.warning("Sync queue pass failed: %s", exc)
        raise self.retry(exc=exc, countdown=60)
    return summary.as_dict()
