"""Notification endpoints (admin sends, cron flush)."""

import logging
from datetime import datetime

from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from clientele.contrib.notifications.service import NotificationService
from clientele.exceptions import ClienteleError
from clientele.views import ApiView, CronView

logger = logging.getLogger(__name__)


def _parse_schedule(value) -> datetime | None:
    if not value:
        return None
    parsed = parse_datetime(str(value))
    if parsed is None:
        raise ClienteleError(
            "VALIDATION_FAILED", errors={"scheduled_for": ["Expected an ISO 8601 datetime"]}
        )
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


class AdminSendEmailView(ApiView):
    def post(self, request):
        self.auth.require_admin()
        data = self.json_body()
        codes = data.get("customer_codes") or []
        if not isinstance(codes, list):
            raise ClienteleError(
                "VALIDATION_FAILED", errors={"customer_codes": ["Expected a list of codes"]}
            )
        result = NotificationService.send_bulk(
            [str(c) for c in codes],
            str(data.get("template_name", "")),
            scheduled_for=_parse_schedule(data.get("scheduled_for")),
        )
        return JsonResponse(
            {
                "sent": result.sent,
                "scheduled": result.scheduled,
                "failed": result.failed,
                "errors": result.errors,
            }
        )


class AdminDailyCountView(ApiView):
    def get(self, request):
        self.auth.require_admin()
        rate = NotificationService.check_rate_limit(0)
        return JsonResponse(
            {"count": rate.limit - rate.remaining, "remaining": rate.remaining, "limit": rate.limit}
        )


class CronScheduledEmailsView(CronView):
    def get(self, request):
        summary = NotificationService.process_scheduled_emails()
        return JsonResponse({"success": True, **summary})
