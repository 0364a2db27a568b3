# Generated migration for Courier, Customer, CustomerAddress and LedgerToken

import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import clientele.models.customer


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Courier",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "code",
                    models.CharField(
                        help_text="Read-only after creation (e.g. lbc, jnt_express)",
                        max_length=50,
                        unique=True,
                        validators=[
                            django.core.validators.RegexValidator(
                                "^[a-z0-9_]+$",
                                "Code must be lowercase letters, numbers, and underscores only",
                            )
                        ],
                        verbose_name="code",
                    ),
                ),
                ("name", models.CharField(max_length=100, verbose_name="name")),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "courier",
                "verbose_name_plural": "couriers",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="LedgerToken",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("access_token", models.TextField(blank=True, verbose_name="access token")),
                ("refresh_token", models.TextField(verbose_name="refresh token")),
                ("expires_at", models.DateTimeField(blank=True, null=True, verbose_name="expires at")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "ledger token",
                "verbose_name_plural": "ledger tokens",
                "db_table": "clientele_ledger_token",
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "code",
                    models.CharField(
                        default=clientele.models.customer.generate_customer_code,
                        help_text="Unique customer code (e.g. CUS-1A2B3C4D)",
                        max_length=50,
                        unique=True,
                        verbose_name="code",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("first_name", models.CharField(max_length=100, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=100, verbose_name="last name")),
                ("email", models.EmailField(max_length=255, unique=True, verbose_name="email")),
                ("phone", models.CharField(blank=True, max_length=50, verbose_name="phone")),
                (
                    "contact_preference",
                    models.CharField(
                        choices=[("email", "Email"), ("phone", "Phone"), ("sms", "SMS")],
                        default="email",
                        max_length=10,
                        verbose_name="contact preference",
                    ),
                ),
                (
                    "delivery_method",
                    models.CharField(
                        choices=[
                            ("pickup", "Pickup"),
                            ("delivered", "Delivered"),
                            ("cod", "Cash on delivery"),
                            ("cop", "Cash on pickup"),
                        ],
                        default="pickup",
                        max_length=20,
                        verbose_name="delivery method",
                    ),
                ),
                (
                    "profile_street_address",
                    models.CharField(blank=True, max_length=500, verbose_name="street address"),
                ),
                ("profile_barangay", models.CharField(blank=True, max_length=255, verbose_name="barangay")),
                ("profile_city", models.CharField(blank=True, max_length=255, verbose_name="city")),
                ("profile_province", models.CharField(blank=True, max_length=255, verbose_name="province")),
                ("profile_region", models.CharField(blank=True, max_length=100, verbose_name="region")),
                ("profile_postal_code", models.CharField(blank=True, max_length=4, verbose_name="postal code")),
                (
                    "is_returning_customer",
                    models.BooleanField(default=False, verbose_name="returning customer"),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                (
                    "sync_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("syncing", "Syncing"),
                            ("synced", "Synced"),
                            ("failed", "Failed"),
                            ("skipped", "Skipped"),
                            ("manual", "Manually linked"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=10,
                        verbose_name="sync status",
                    ),
                ),
                ("sync_error", models.TextField(blank=True, null=True, verbose_name="sync error")),
                ("sync_attempts", models.PositiveIntegerField(default=0, verbose_name="sync attempts")),
                (
                    "sync_last_attempt_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="last sync attempt"),
                ),
                (
                    "ledger_contact_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        max_length=64,
                        null=True,
                        verbose_name="ledger contact ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at"),
                ),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "courier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="customers",
                        to="clientele.courier",
                        verbose_name="courier",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="clientele_customer",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="user",
                    ),
                ),
            ],
            options={
                "verbose_name": "customer",
                "verbose_name_plural": "customers",
                "ordering": ["first_name", "last_name"],
                "indexes": [
                    models.Index(
                        fields=["sync_status", "sync_attempts"],
                        name="clientele_customer_sync_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("sync_status", "failed"),
                            _negated=True,
                        )
                        | models.Q(
                            ("sync_error__isnull", False),
                            models.Q(("sync_error", ""), _negated=True),
                            ("sync_attempts__gte", 1),
                        ),
                        name="clientele_failed_sync_has_error",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("sync_status__in", ["synced", "manual"]),
                            _negated=True,
                        )
                        | models.Q(("ledger_contact_id__isnull", False)),
                        name="clientele_linked_sync_has_contact",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CustomerAddress",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("label", models.CharField(max_length=100, verbose_name="label")),
                (
                    "recipient_first_name",
                    models.CharField(blank=True, max_length=100, verbose_name="recipient first name"),
                ),
                (
                    "recipient_last_name",
                    models.CharField(blank=True, max_length=100, verbose_name="recipient last name"),
                ),
                ("street_address", models.CharField(max_length=500, verbose_name="street address")),
                ("barangay", models.CharField(max_length=255, verbose_name="barangay")),
                ("city", models.CharField(max_length=255, verbose_name="city/municipality")),
                ("province", models.CharField(max_length=255, verbose_name="province")),
                ("region", models.CharField(blank=True, max_length=100, null=True, verbose_name="region")),
                (
                    "postal_code",
                    models.CharField(
                        max_length=4,
                        validators=[
                            django.core.validators.RegexValidator(
                                "^\\d{4}$", "Postal code must be exactly 4 digits"
                            )
                        ],
                        verbose_name="postal code",
                    ),
                ),
                ("is_default", models.BooleanField(default=False, verbose_name="default")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="addresses",
                        to="clientele.customer",
                        verbose_name="customer",
                    ),
                ),
            ],
            options={
                "verbose_name": "address",
                "verbose_name_plural": "addresses",
                "ordering": ["-is_default", "created_at", "pk"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_default", True)),
                        fields=("customer",),
                        name="clientele_single_default_address",
                    )
                ],
            },
        ),
    ]
