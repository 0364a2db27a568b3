"""Notification service - templated customer emails with a daily limit."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, time
from email.utils import make_msgid

from django.core.mail import EmailMultiAlternatives
from django.core.mail.utils import DNS_NAME
from django.db.models import Q
from django.template import Context, Template
from django.utils import timezone
from django.utils.html import linebreaks

from clientele.conf import clientele_settings
from clientele.contrib.notifications.models import EmailLog, EmailStatus, EmailTemplate
from clientele.exceptions import ClienteleError
from clientele.models import Customer
from clientele.services import delivery as delivery_service

logger = logging.getLogger(__name__)

MAX_RECIPIENTS = 100


@dataclass
class RateLimit:
    """Daily sending allowance."""

    allowed: bool
    remaining: int
    limit: int


@dataclass
class BulkResult:
    """Tally of a send_bulk() call."""

    sent: int = 0
    scheduled: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


class NotificationService:
    """
    Service for customer emails.

    Uses @classmethod for extensibility (consistent with other contrib services).
    """

    # ======================================================================
    # Rendering
    # ======================================================================

    @classmethod
    def context_for(cls, customer: Customer, confirm_token: str | None = None) -> dict:
        base = clientele_settings.APP_URL.rstrip("/")
        context = {
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "email": customer.email,
            "dashboard_url": f"{base}/customer/dashboard",
        }
        if confirm_token:
            context["confirm_url"] = f"{base}/confirm/{confirm_token}"
        return context

    @classmethod
    def render(
        cls, template: EmailTemplate, customer: Customer, confirm_token: str | None = None
    ) -> tuple[str, str, str]:
        """
        Render a template for a customer.

        {{ confirm_url }} is only filled when a confirm_token is given.

        Returns:
            (subject, text_body, html_body)
        """
        context = Context(cls.context_for(customer, confirm_token), autoescape=False)
        subject = Template(template.subject).render(context).strip()
        text = Template(template.body).render(context)
        return subject, text, linebreaks(text, autoescape=True)

    # ======================================================================
    # Rate limit
    # ======================================================================

    @classmethod
    def daily_count(cls) -> int:
        """Emails sent or being sent since local midnight."""
        start = timezone.make_aware(datetime.combine(timezone.localdate(), time.min))
        return EmailLog.objects.filter(
            created_at__gte=start,
            status__in=[EmailStatus.SENT, EmailStatus.PENDING],
        ).count()

    @classmethod
    def check_rate_limit(cls, count: int) -> RateLimit:
        """Would sending ``count`` more emails today stay within EMAIL_DAILY_LIMIT?"""
        limit = clientele_settings.EMAIL_DAILY_LIMIT
        current = cls.daily_count()
        return RateLimit(
            allowed=current + count <= limit,
            remaining=max(0, limit - current),
            limit=limit,
        )

    # ======================================================================
    # Sending
    # ======================================================================

    @classmethod
    def _template(cls, template_name: str) -> EmailTemplate:
        try:
            return EmailTemplate.objects.get(name=template_name, is_active=True)
        except EmailTemplate.DoesNotExist:
            raise ClienteleError("TEMPLATE_NOT_FOUND", template_name=template_name)

    @classmethod
    def _deliver(cls, log: EmailLog, customer: Customer, template: EmailTemplate) -> EmailLog:
        """Send one rendered email; the outcome is stored on the log, never raised."""
        try:
            token = None
            if "confirm_url" in template.body:
                token = delivery_service.create_confirmation_token(customer.code)
            subject, text, html = cls.render(template, customer, token)
            message_id = make_msgid(domain=DNS_NAME)
            msg = EmailMultiAlternatives(
                subject=subject,
                body=text,
                from_email=clientele_settings.EMAIL_FROM or None,
                to=[log.to_address],
                headers={"Message-ID": message_id},
            )
            msg.attach_alternative(html, "text/html")
            msg.send(fail_silently=False)
        except Exception as exc:
            logger.exception("Failed to send email to %s", log.to_address)
            log.status = EmailStatus.FAILED
            log.error_message = str(exc) or exc.__class__.__name__
            log.save(update_fields=["status", "error_message"])
            return log

        log.subject = subject
        log.status = EmailStatus.SENT
        log.sent_at = timezone.now()
        log.provider_message_id = message_id
        log.save(update_fields=["subject", "status", "sent_at", "provider_message_id"])
        return log

    @classmethod
    def _send(cls, customer: Customer, template: EmailTemplate, scheduled_for=None) -> EmailLog:
        if scheduled_for and scheduled_for > timezone.now():
            subject, _, _ = cls.render(template, customer)
            log = EmailLog.objects.create(
                customer=customer,
                template=template,
                to_address=customer.email,
                subject=subject,
                status=EmailStatus.SCHEDULED,
                scheduled_for=scheduled_for,
            )
            logger.info("Email %s to %s scheduled for %s", template.name, customer.code, scheduled_for)
            return log

        log = EmailLog.objects.create(
            customer=customer,
            template=template,
            to_address=customer.email,
            subject=template.subject,
            status=EmailStatus.PENDING,
        )
        return cls._deliver(log, customer, template)

    @classmethod
    def send_template_email(
        cls,
        customer_code: str,
        template_name: str,
        scheduled_for: datetime | None = None,
    ) -> EmailLog:
        """
        Send (or schedule) a template email to one customer.

        Args:
            customer_code: Customer code
            template_name: Active EmailTemplate name
            scheduled_for: Future send time (None = now)

        Returns:
            EmailLog with status sent, failed or scheduled

        Raises:
            ClienteleError: CUSTOMER_NOT_FOUND, TEMPLATE_NOT_FOUND
        """
        try:
            customer = Customer.objects.get(code=customer_code, is_active=True)
        except Customer.DoesNotExist:
            raise ClienteleError("CUSTOMER_NOT_FOUND", customer_code=customer_code)
        return cls._send(customer, cls._template(template_name), scheduled_for)

    @classmethod
    def send_bulk(
        cls,
        customer_codes: list[str],
        template_name: str,
        scheduled_for: datetime | None = None,
    ) -> BulkResult:
        """
        Send a template email to many customers.

        Raises:
            ClienteleError: VALIDATION_FAILED (no recipients),
                TOO_MANY_RECIPIENTS, TEMPLATE_NOT_FOUND, RATE_LIMITED
        """
        codes = list(dict.fromkeys(customer_codes))
        if not codes:
            raise ClienteleError("VALIDATION_FAILED", message="No recipients given")
        if len(codes) > MAX_RECIPIENTS:
            raise ClienteleError(
                "TOO_MANY_RECIPIENTS",
                message=f"Maximum {MAX_RECIPIENTS} recipients per send",
                count=len(codes),
            )

        template = cls._template(template_name)

        if not (scheduled_for and scheduled_for > timezone.now()):
            rate = cls.check_rate_limit(len(codes))
            if not rate.allowed:
                raise ClienteleError(
                    "RATE_LIMITED",
                    message=f"Daily limit reached. {rate.remaining} emails remaining today.",
                    remaining=rate.remaining,
                    limit=rate.limit,
                )

        customers = {
            c.code: c for c in Customer.objects.filter(code__in=codes, is_active=True)
        }
        result = BulkResult()
        for code in codes:
            customer = customers.get(code)
            if customer is None:
                result.failed += 1
                result.errors.append(f"{code}: customer not found")
                continue
            log = cls._send(customer, template, scheduled_for)
            if log.status == EmailStatus.SENT:
                result.sent += 1
            elif log.status == EmailStatus.SCHEDULED:
                result.scheduled += 1
            else:
                result.failed += 1
                result.errors.append(f"{code}: {log.error_message}")

        logger.info(
            "Bulk email %s: sent=%d scheduled=%d failed=%d",
            template_name,
            result.sent,
            result.scheduled,
            result.failed,
        )
        return result

    # ======================================================================
    # Scheduled
    # ======================================================================

    @classmethod
    def process_scheduled_emails(cls, limit: int | None = None) -> dict:
        """
        Send every scheduled email that is due.

        Each log is claimed (scheduled -> pending) before sending, so
        overlapping runs never send the same email twice.

        Returns:
            {"processed": int, "sent": int, "failed": int}
        """
        due = (
            EmailLog.objects.filter(status=EmailStatus.SCHEDULED)
            .filter(Q(scheduled_for__lte=timezone.now()) | Q(scheduled_for__isnull=True))
            .order_by("scheduled_for", "pk")
            .values_list("pk", flat=True)
        )
        if limit:
            due = due[:limit]

        summary = {"processed": 0, "sent": 0, "failed": 0}
        for pk in list(due):
            claimed = EmailLog.objects.filter(pk=pk, status=EmailStatus.SCHEDULED).update(
                status=EmailStatus.PENDING
            )
            if not claimed:
                continue
            summary["processed"] += 1

            try:
                log = EmailLog.objects.select_related("customer", "template").get(pk=pk)
                if log.template is None:
                    log.status = EmailStatus.FAILED
                    log.error_message = "Template no longer exists"
                    log.save(update_fields=["status", "error_message"])
                else:
                    cls._deliver(log, log.customer, log.template)
            except Exception as exc:
                logger.exception("Scheduled email %s failed", pk)
                EmailLog.objects.filter(pk=pk).update(
                    status=EmailStatus.FAILED, error_message=str(exc)
                )
                summary["failed"] += 1
                continue

            if log.status == EmailStatus.SENT:
                summary["sent"] += 1
            else:
                summary["failed"] += 1

        logger.info(
            "Scheduled emails: processed=%d sent=%d failed=%d",
            summary["processed"],
            summary["sent"],
            summary["failed"],
        )
        return summary
