"""EmailTemplate and EmailLog models."""

from django.core.validators import RegexValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

template_name_validator = RegexValidator(
    r"^[a-z0-9-]+$",
    _("Name must be lowercase letters, numbers, and hyphens only"),
)


class EmailTemplate(models.Model):
    """
    Admin-editable email template.

    ``subject`` and ``body`` use Django template syntax. Available variables:
    first_name, last_name, email, dashboard_url.
    """

    name = models.CharField(
        _("name"),
        max_length=100,
        unique=True,
        validators=[template_name_validator],
        help_text=_("Identifier used by code (e.g. profile-reminder)"),
    )
    display_name = models.CharField(_("display name"), max_length=200)
    subject = models.CharField(_("subject"), max_length=200)
    body = models.TextField(_("body"))
    is_active = models.BooleanField(_("active"), default=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("email template")
        verbose_name_plural = _("email templates")
        ordering = ["display_name"]

    def __str__(self):
        return f"{self.display_name} ({self.name})"


class EmailStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    SCHEDULED = "scheduled", _("Scheduled")
    SENT = "sent", _("Sent")
    FAILED = "failed", _("Failed")


class EmailLog(models.Model):
    """One email sent, scheduled, or attempted for a customer."""

    customer = models.ForeignKey(
        "clientele.Customer",
        on_delete=models.CASCADE,
        related_name="email_logs",
        verbose_name=_("customer"),
    )
    template = models.ForeignKey(
        EmailTemplate,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="logs",
        verbose_name=_("template"),
    )
    to_address = models.EmailField(_("to"))
    subject = models.CharField(_("subject"), max_length=200)
    status = models.CharField(
        _("status"),
        max_length=20,
        choices=EmailStatus.choices,
        default=EmailStatus.PENDING,
        db_index=True,
    )
    scheduled_for = models.DateTimeField(_("scheduled for"), null=True, blank=True)
    sent_at = models.DateTimeField(_("sent at"), null=True, blank=True)
    error_message = models.TextField(_("error"), blank=True)
    provider_message_id = models.CharField(_("provider message id"), max_length=255, blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = _("email log")
        verbose_name_plural = _("email logs")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "scheduled_for"], name="clientele_email_due_idx"),
        ]

    def __str__(self):
        return f"{self.to_address} [{self.subject}] ({self.status})"
