"""Notifications app config."""

from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class NotificationsConfig(AppConfig):
    name = "clientele.contrib.notifications"
    label = "clientele_notifications"
    verbose_name = _("Customer notifications")
    default_auto_field = "django.db.models.BigAutoField"
