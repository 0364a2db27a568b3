"""Tests for clientele.contrib.notifications."""

import json
from datetime import timedelta
from io import StringIO
from smtplib import SMTPException

import pytest
from django.core import mail
from django.core.exceptions import ValidationError
from django.core.mail import EmailMultiAlternatives
from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone

from clientele.contrib.notifications.models import EmailLog, EmailStatus, EmailTemplate
from clientele.contrib.notifications.service import NotificationService
from clientele.exceptions import ClienteleError
from clientele.models import ConfirmationToken


pytestmark = pytest.mark.django_db

CRON_AUTH = {"HTTP_AUTHORIZATION": "Bearer test-cron-secret"}


@pytest.fixture
def welcome(db):
    return EmailTemplate.objects.create(
        name="welcome",
        display_name="Welcome",
        subject="Hi {{ first_name }}",
        body="Hello {{ first_name }} & welcome.\nVisit {{ dashboard_url }}",
    )


def limit_to(settings, count):
    settings.CLIENTELE = {**settings.CLIENTELE, "EMAIL_DAILY_LIMIT": count}


# ═══════════════════════════════════════════════════════════════════
# Rendering
# ═══════════════════════════════════════════════════════════════════


class TestRender:
    def test_placeholders(self, welcome, customer):
        subject, text, html = NotificationService.render(welcome, customer)
        assert subject == "Hi Juan"
        assert text == "Hello Juan & welcome.\nVisit https://shop.example.com/customer/dashboard"
        assert "Hello Juan &amp; welcome.<br>" in html
        assert html.startswith("<p>")

    def test_confirm_url_only_with_token(self, welcome, customer):
        welcome.body = "Confirm: {{ confirm_url }}"
        _, text, _ = NotificationService.render(welcome, customer)
        assert text == "Confirm: "

        _, text, _ = NotificationService.render(welcome, customer, confirm_token="abc123")
        assert text == "Confirm: https://shop.example.com/confirm/abc123"

    def test_template_name_validated(self, db):
        template = EmailTemplate(name="Bad Name", display_name="x", subject="s", body="b")
        with pytest.raises(ValidationError) as exc_info:
            template.full_clean()
        assert "name" in exc_info.value.message_dict


# ═══════════════════════════════════════════════════════════════════
# Sending
# ═══════════════════════════════════════════════════════════════════


class TestSendTemplateEmail:
    def test_sends_and_logs(self, welcome, customer):
        log = NotificationService.send_template_email("CUS-0001", "welcome")

        assert log.status == EmailStatus.SENT
        assert log.subject == "Hi Juan"
        assert log.provider_message_id.startswith("<")
        assert log.sent_at is not None
        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.to == ["juan@example.com"]
        assert message.alternatives[0][1] == "text/html"

    def test_confirmation_link_issued(self, welcome, delivery_customer):
        welcome.body = "Please confirm your details: {{ confirm_url }}"
        welcome.save()

        NotificationService.send_template_email("CUS-0002", "welcome")

        token = ConfirmationToken.objects.get(customer=delivery_customer)
        assert f"https://shop.example.com/confirm/{token.token}" in mail.outbox[0].body

    def test_no_token_without_confirm_url(self, welcome, customer):
        NotificationService.send_template_email("CUS-0001", "welcome")
        assert not ConfirmationToken.objects.exists()

    def test_unknown_template(self, customer):
        with pytest.raises(ClienteleError) as exc_info:
            NotificationService.send_template_email("CUS-0001", "missing")
        assert exc_info.value.code == "TEMPLATE_NOT_FOUND"

    def test_inactive_template(self, welcome, customer):
        EmailTemplate.objects.filter(pk=welcome.pk).update(is_active=False)
        with pytest.raises(ClienteleError) as exc_info:
            NotificationService.send_template_email("CUS-0001", "welcome")
        assert exc_info.value.code == "TEMPLATE_NOT_FOUND"

    def test_unknown_customer(self, welcome):
        with pytest.raises(ClienteleError) as exc_info:
            NotificationService.send_template_email("CUS-NOPE", "welcome")
        assert exc_info.value.code == "CUSTOMER_NOT_FOUND"

    def test_transport_failure_logged(self, welcome, customer, monkeypatch):
        def refuse(self, fail_silently=False):
            raise SMTPException("relay refused")

        monkeypatch.setattr(EmailMultiAlternatives, "send", refuse)

        log = NotificationService.send_template_email("CUS-0001", "welcome")

        assert log.status == EmailStatus.FAILED
        assert log.error_message == "relay refused"
        assert EmailLog.objects.get(pk=log.pk).status == EmailStatus.FAILED

    def test_future_send_is_scheduled(self, welcome, customer):
        when = timezone.now() + timedelta(hours=2)
        log = NotificationService.send_template_email("CUS-0001", "welcome", scheduled_for=when)
        assert log.status == EmailStatus.SCHEDULED
        assert log.scheduled_for == when
        assert mail.outbox == []


class TestSendBulk:
    def test_bulk(self, welcome, customer, delivery_customer):
        result = NotificationService.send_bulk(["CUS-0001", "CUS-0002", "CUS-0001"], "welcome")
        assert result.sent == 2
        assert result.failed == 0
        assert len(mail.outbox) == 2

    def test_missing_recipient_counted(self, welcome, customer):
        result = NotificationService.send_bulk(["CUS-0001", "CUS-GONE"], "welcome")
        assert result.sent == 1
        assert result.failed == 1
        assert result.errors == ["CUS-GONE: customer not found"]

    def test_no_recipients(self, welcome):
        with pytest.raises(ClienteleError) as exc_info:
            NotificationService.send_bulk([], "welcome")
        assert exc_info.value.code == "VALIDATION_FAILED"

    def test_too_many_recipients(self, welcome):
        codes = [f"CUS-{i:04d}" for i in range(101)]
        with pytest.raises(ClienteleError) as exc_info:
            NotificationService.send_bulk(codes, "welcome")
        assert exc_info.value.code == "TOO_MANY_RECIPIENTS"
        assert exc_info.value.data["count"] == 101

    def test_rate_limited(self, welcome, customer, delivery_customer, settings):
        limit_to(settings, 1)
        with pytest.raises(ClienteleError) as exc_info:
            NotificationService.send_bulk(["CUS-0001", "CUS-0002"], "welcome")
        assert exc_info.value.code == "RATE_LIMITED"
        assert exc_info.value.data == {"remaining": 1, "limit": 1}
        assert mail.outbox == []

    def test_scheduled_bulk_not_rate_limited(self, welcome, customer, delivery_customer, settings):
        limit_to(settings, 0)
        when = timezone.now() + timedelta(days=1)
        result = NotificationService.send_bulk(["CUS-0001", "CUS-0002"], "welcome", scheduled_for=when)
        assert result.scheduled == 2


class TestDailyCount:
    def test_counts_sent_and_pending(self, welcome, customer):
        NotificationService.send_template_email("CUS-0001", "welcome")
        EmailLog.objects.create(
            customer=customer, template=welcome, to_address=customer.email, subject="s",
            status=EmailStatus.PENDING,
        )
        EmailLog.objects.create(
            customer=customer, template=welcome, to_address=customer.email, subject="s",
            status=EmailStatus.FAILED,
        )
        assert NotificationService.daily_count() == 2

    def test_remaining(self, welcome, customer, settings):
        limit_to(settings, 5)
        NotificationService.send_template_email("CUS-0001", "welcome")
        rate = NotificationService.check_rate_limit(4)
        assert rate.allowed is True
        assert rate.remaining == 4
        assert NotificationService.check_rate_limit(5).allowed is False


# ═══════════════════════════════════════════════════════════════════
# Scheduled
# ═══════════════════════════════════════════════════════════════════


class TestProcessScheduledEmails:
    def schedule(self, customer, template, minutes):
        return EmailLog.objects.create(
            customer=customer,
            template=template,
            to_address=customer.email,
            subject="Hi",
            status=EmailStatus.SCHEDULED,
            scheduled_for=timezone.now() + timedelta(minutes=minutes),
        )

    def test_sends_due_only(self, welcome, customer):
        due = self.schedule(customer, welcome, -5)
        later = self.schedule(customer, welcome, 60)

        summary = NotificationService.process_scheduled_emails()

        assert summary == {"processed": 1, "sent": 1, "failed": 0}
        due.refresh_from_db()
        later.refresh_from_db()
        assert due.status == EmailStatus.SENT
        assert later.status == EmailStatus.SCHEDULED
        assert len(mail.outbox) == 1

    def test_deleted_template(self, welcome, customer):
        log = self.schedule(customer, welcome, -5)
        welcome.delete()

        summary = NotificationService.process_scheduled_emails()

        assert summary["failed"] == 1
        log.refresh_from_db()
        assert log.status == EmailStatus.FAILED
        assert log.error_message == "Template no longer exists"

    def test_daily_limit_not_applied(self, welcome, customer, delivery_customer, settings):
        limit_to(settings, 1)
        self.schedule(customer, welcome, -5)
        self.schedule(delivery_customer, welcome, -5)

        summary = NotificationService.process_scheduled_emails()

        assert summary == {"processed": 2, "sent": 2, "failed": 0}
        assert len(mail.outbox) == 2

    def test_sent_once(self, welcome, customer):
        self.schedule(customer, welcome, -5)
        NotificationService.process_scheduled_emails()
        assert NotificationService.process_scheduled_emails()["processed"] == 0
        assert len(mail.outbox) == 1

    def test_command(self, welcome, customer):
        self.schedule(customer, welcome, -1)
        out = StringIO()
        call_command("clientele_send_scheduled_emails", stdout=out)
        assert "Processed 1: 1 sent, 0 failed." in out.getvalue()


# ═══════════════════════════════════════════════════════════════════
# Endpoints
# ═══════════════════════════════════════════════════════════════════


class TestNotificationEndpoints:
    def test_admin_send(self, client, staff_user, welcome, customer):
        client.force_login(staff_user)
        response = client.post(
            reverse("clientele:admin-send-email"),
            data=json.dumps({"customer_codes": ["CUS-0001"], "template_name": "welcome"}),
            content_type="application/json",
        )
        assert response.status_code == 200
        assert response.json()["sent"] == 1

    def test_admin_send_bad_schedule(self, client, staff_user, welcome, customer):
        client.force_login(staff_user)
        response = client.post(
            reverse("clientele:admin-send-email"),
            data=json.dumps(
                {"customer_codes": ["CUS-0001"], "template_name": "welcome", "scheduled_for": "soon"}
            ),
            content_type="application/json",
        )
        assert response.status_code == 400

    def test_admin_only(self, client, customer_user):
        client.force_login(customer_user)
        response = client.get(reverse("clientele:admin-daily-count"))
        assert response.status_code == 403

    def test_daily_count(self, client, staff_user, welcome, customer):
        NotificationService.send_template_email("CUS-0001", "welcome")
        client.force_login(staff_user)
        response = client.get(reverse("clientele:admin-daily-count"))
        assert response.json() == {"count": 1, "remaining": 99, "limit": 100}

    def test_cron_requires_token(self, client, db):
        assert client.get(reverse("clientele:cron-scheduled-emails")).status_code == 401

    def test_cron(self, client, db):
        response = client.get(reverse("clientele:cron-scheduled-emails"), **CRON_AUTH)
        assert response.json() == {"success": True, "processed": 0, "sent": 0, "failed": 0}
