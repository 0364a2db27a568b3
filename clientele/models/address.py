"""CustomerAddress model (Philippine delivery address)."""

from django.core.validators import RegexValidator
from django.db import models, transaction
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

postal_code_validator = RegexValidator(
    r"^\d{4}$", _("Postal code must be exactly 4 digits")
)


class CustomerAddress(models.Model):
    """
    Named delivery location owned by exactly one customer.

    Rules:
    - At most one is_default=True per customer (partial unique constraint)
    - Cardinality (0..MAX_ADDRESSES) is enforced by services.address
    """

    customer = models.ForeignKey(
        "clientele.Customer",
        on_delete=models.CASCADE,
        related_name="addresses",
        verbose_name=_("customer"),
    )

    label = models.CharField(_("label"), max_length=100)
    recipient_first_name = models.CharField(_("recipient first name"), max_length=100, blank=True)
    recipient_last_name = models.CharField(_("recipient last name"), max_length=100, blank=True)

    street_address = models.CharField(_("street address"), max_length=500)
    barangay = models.CharField(_("barangay"), max_length=255)
    city = models.CharField(_("city/municipality"), max_length=255)
    province = models.CharField(_("province"), max_length=255)
    region = models.CharField(_("region"), max_length=100, null=True, blank=True)
    postal_code = models.CharField(
        _("postal code"),
        max_length=4,
        validators=[postal_code_validator],
    )

    is_default = models.BooleanField(_("default"), default=False)

    # Audit
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("address")
        verbose_name_plural = _("addresses")
        ordering = ["-is_default", "created_at", "pk"]
        constraints = [
            models.UniqueConstraint(
                fields=["customer"],
                condition=Q(is_default=True),
                name="clientele_single_default_address",
            ),
        ]

    def __str__(self):
        return f"{self.label}: {self.short_address}"

    @property
    def recipient_name(self) -> str:
        return f"{self.recipient_first_name} {self.recipient_last_name}".strip()

    @property
    def short_address(self) -> str:
        """Short address for lists."""
        return ", ".join(p for p in [self.street_address, self.barangay, self.city] if p)

    @property
    def formatted_address(self) -> str:
        parts = [
            self.street_address,
            f"Brgy. {self.barangay}" if self.barangay else "",
            self.city,
            self.province,
            self.region or "",
            self.postal_code,
        ]
        return ", ".join(p for p in parts if p)

    def save(self, *args, **kwargs):
        # Demote the previous default in the same transaction so the
        # partial unique constraint never sees two defaults.
        with transaction.atomic():
            if self.is_default:
                CustomerAddress.objects.filter(
                    customer_id=self.customer_id, is_default=True
                ).exclude(pk=self.pk).update(is_default=False)
            super().save(*args, **kwargs)
