"""Courier model."""

from django.core.validators import RegexValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

courier_code_validator = RegexValidator(
    r"^[a-z0-9_]+$",
    _("Code must be lowercase letters, numbers, and underscores only"),
)


class Courier(models.Model):
    """Delivery courier selectable by delivery customers."""

    code = models.CharField(
        _("code"),
        max_length=50,
        unique=True,
        validators=[courier_code_validator],
        help_text=_("Read-only after creation (e.g. lbc, jnt_express)"),
    )
    name = models.CharField(_("name"), max_length=100)
    is_active = models.BooleanField(_("active"), default=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("courier")
        verbose_name_plural = _("couriers")
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.code})"
