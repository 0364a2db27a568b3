"""
LedgerToken model - OAuth tokens for the accounting ledger.

Only one row is kept: a new authorization replaces the previous tokens.
"""

from datetime import timedelta

from django.db import models, transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class LedgerToken(models.Model):
    """Stored OAuth credentials for the ledger connection."""

    access_token = models.TextField(_("access token"), blank=True)
    refresh_token = models.TextField(_("refresh token"))
    expires_at = models.DateTimeField(_("expires at"), null=True, blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "clientele_ledger_token"
        verbose_name = _("ledger token")
        verbose_name_plural = _("ledger tokens")

    def __str__(self):
        return f"Ledger token (expires {self.expires_at:%Y-%m-%d %H:%M})" if self.expires_at else "Ledger token"

    def is_expired(self, buffer_seconds: int = 300) -> bool:
        """True when the access token is missing or expires within the buffer."""
        if not self.access_token or not self.expires_at:
            return True
        return timezone.now() >= self.expires_at - timedelta(seconds=buffer_seconds)

    @classmethod
    def current(cls) -> "LedgerToken | None":
        return cls.objects.order_by("-updated_at").first()

    @classmethod
    def store(cls, access_token: str, refresh_token: str, expires_in: int) -> "LedgerToken":
        """Replace any stored tokens with a fresh authorization."""
        with transaction.atomic():
            cls.objects.all().delete()
            return cls.objects.create(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=timezone.now() + timedelta(seconds=expires_in),
            )
