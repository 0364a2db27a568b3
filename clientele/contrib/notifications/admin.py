from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from clientele.contrib.notifications.models import EmailLog, EmailTemplate


@admin.register(EmailTemplate)
class EmailTemplateAdmin(admin.ModelAdmin):
    list_display = ["name", "display_name", "subject", "is_active", "updated_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "display_name", "subject"]
    readonly_fields = ["created_at", "updated_at"]
    fieldsets = [
        (None, {"fields": ["name", "display_name", "is_active"]}),
        (
            _("Content"),
            {
                "fields": ["subject", "body"],
                "description": _(
                    "Variables: {{ first_name }}, {{ last_name }}, {{ email }}, {{ dashboard_url }}"
                ),
            },
        ),
        (_("Dates"), {"fields": ["created_at", "updated_at"], "classes": ["collapse"]}),
    ]


@admin.register(EmailLog)
class EmailLogAdmin(admin.ModelAdmin):
    list_display = ["to_address", "subject", "status", "scheduled_for", "sent_at", "created_at"]
    list_filter = ["status", "template"]
    search_fields = ["to_address", "subject", "customer__code", "error_message"]
    readonly_fields = [
        "customer",
        "template",
        "to_address",
        "subject",
        "status",
        "scheduled_for",
        "sent_at",
        "error_message",
        "provider_message_id",
        "created_at",
    ]
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False
