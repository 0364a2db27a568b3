# Generated migration for delivery tracking and confirmation tokens

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import clientele.models.delivery


class Migration(migrations.Migration):

    dependencies = [
        ("clientele", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.AddField(
            model_name="customer",
            name="delivery_confirmed_at",
            field=models.DateTimeField(blank=True, null=True, verbose_name="delivery confirmed at"),
        ),
        migrations.AddField(
            model_name="customer",
            name="delivered_at",
            field=models.DateTimeField(blank=True, null=True, verbose_name="delivered at"),
        ),
        migrations.CreateModel(
            name="DeliveryLog",
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
                    "action",
                    models.CharField(
                        choices=[
                            ("confirmed", "Confirmed ready to ship"),
                            ("delivered", "Marked as delivered"),
                            ("reset", "Reset to pending"),
                        ],
                        max_length=20,
                        verbose_name="action",
                    ),
                ),
                ("notes", models.TextField(blank=True, verbose_name="notes")),
                (
                    "created_at",
                    models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at"),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="delivery_logs",
                        to="clientele.customer",
                        verbose_name="customer",
                    ),
                ),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="performed by",
                    ),
                ),
            ],
            options={
                "verbose_name": "delivery log",
                "verbose_name_plural": "delivery logs",
                "db_table": "clientele_delivery_log",
                "ordering": ["-created_at", "-pk"],
            },
        ),
        migrations.CreateModel(
            name="ConfirmationToken",
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
                    "token",
                    models.CharField(
                        default=clientele.models.delivery.generate_confirmation_token,
                        editable=False,
                        max_length=64,
                        unique=True,
                        verbose_name="token",
                    ),
                ),
                ("expires_at", models.DateTimeField(verbose_name="expires at")),
                ("used_at", models.DateTimeField(blank=True, null=True, verbose_name="used at")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="confirmation_tokens",
                        to="clientele.customer",
                        verbose_name="customer",
                    ),
                ),
            ],
            options={
                "verbose_name": "confirmation token",
                "verbose_name_plural": "confirmation tokens",
                "db_table": "clientele_confirmation_token",
            },
        ),
    ]
