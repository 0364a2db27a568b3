"""Clientele admin (CORE only).

Contrib models have their own admin in their respective modules:
- clientele.contrib.notifications.admin: EmailTemplateAdmin, EmailLogAdmin
"""

from django.contrib import admin, messages
from django.utils.html import format_html

from clientele.exceptions import ClienteleError
from clientele.models import Courier, Customer, CustomerAddress, DeliveryLog, LedgerToken
from clientele.services import delivery as delivery_service
from clientele.services import sync as sync_service


# ===========================================
# Courier Admin
# ===========================================


@admin.register(Courier)
class CourierAdmin(admin.ModelAdmin):
    list_display = ["code", "name", "is_active", "customer_count"]
    list_filter = ["is_active"]
    search_fields = ["code", "name"]

    def get_readonly_fields(self, request, obj=None):
        # code is the stable identifier once created
        return ["code"] if obj else []

    def customer_count(self, obj):
        return obj.customers.count()

    customer_count.short_description = "Customers"


# ===========================================
# Inline Classes (must be defined before CustomerAdmin)
# ===========================================


class CustomerAddressInline(admin.TabularInline):
    model = CustomerAddress
    extra = 0
    fields = ["label", "street_address", "barangay", "city", "postal_code", "is_default"]


class DeliveryLogInline(admin.TabularInline):
    model = DeliveryLog
    extra = 0
    fields = ["action", "notes", "performed_by", "created_at"]
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


# ===========================================
# Customer Admin
# ===========================================


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "name",
        "email",
        "delivery_method",
        "courier",
        "delivery_status",
        "sync_badge",
        "is_active",
    ]
    list_filter = ["delivery_method", "sync_status", "is_returning_customer", "is_active"]
    search_fields = ["code", "first_name", "last_name", "email", "phone", "ledger_contact_id"]
    list_select_related = ["courier"]
    readonly_fields = [
        "uuid",
        "sync_status",
        "sync_error",
        "sync_attempts",
        "sync_last_attempt_at",
        "ledger_contact_id",
        "delivery_confirmed_at",
        "delivered_at",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["user"]
    inlines = [CustomerAddressInline, DeliveryLogInline]
    actions = ["reset_sync", "match_sync", "run_sync_queue", "mark_delivered", "reset_delivery"]

    fieldsets = [
        ("Identification", {"fields": ["code", "uuid", "first_name", "last_name", "user"]}),
        ("Contact", {"fields": ["email", "phone", "contact_preference"]}),
        (
            "Delivery",
            {
                "fields": [
                    "delivery_method",
                    "courier",
                    "is_returning_customer",
                    "delivery_confirmed_at",
                    "delivered_at",
                ]
            },
        ),
        (
            "Profile address",
            {
                "fields": [
                    "profile_street_address",
                    "profile_barangay",
                    "profile_city",
                    "profile_province",
                    "profile_region",
                    "profile_postal_code",
                ],
                "classes": ["collapse"],
            },
        ),
        (
            "Ledger sync",
            {
                "fields": [
                    "sync_status",
                    "sync_error",
                    "sync_attempts",
                    "sync_last_attempt_at",
                    "ledger_contact_id",
                ]
            },
        ),
        ("System", {"fields": ["is_active", "created_at", "updated_at"], "classes": ["collapse"]}),
    ]

    _badge_colors = {
        "synced": "green",
        "manual": "green",
        "failed": "red",
        "syncing": "orange",
        "skipped": "gray",
        "pending": "gray",
    }

    def sync_badge(self, obj):
        return format_html(
            '<span style="color: {};">{}</span>',
            self._badge_colors.get(obj.sync_status, "gray"),
            obj.get_sync_status_display(),
        )

    sync_badge.short_description = "Sync"

    @admin.action(description="Reset ledger sync status")
    def reset_sync(self, request, queryset):
        for cust in queryset:
            sync_service.reset_sync_status(cust.code)
        self.message_user(request, f"{queryset.count()} customer(s) reset to pending.")

    @admin.action(description="Match with ledger contact")
    def match_sync(self, request, queryset):
        ok = failed = 0
        for cust in queryset:
            try:
                outcome = sync_service.trigger_sync(cust.code, "match")
            except ClienteleError as exc:
                self.message_user(request, f"{cust.code}: {exc.message}", messages.ERROR)
                if exc.code == "NOT_CONNECTED":
                    return
                continue
            if outcome.success:
                ok += 1
            else:
                failed += 1
        self.message_user(request, f"Matched {ok}, failed {failed}.")

    @admin.action(description="Process ledger sync queue")
    def run_sync_queue(self, request, queryset):
        summary = sync_service.process_queue()
        level = messages.WARNING if summary.errors else messages.SUCCESS
        self.message_user(
            request,
            f"Processed {summary.processed}: {summary.succeeded} synced, "
            f"{summary.failed} failed, {summary.skipped} skipped.",
            level,
        )

    @admin.action(description="Mark as delivered")
    def mark_delivered(self, request, queryset):
        codes = list(queryset.values_list("code", flat=True))
        updated = delivery_service.bulk_mark_delivered(codes, user=request.user)
        self.message_user(request, f"{updated} customer(s) marked as delivered.")

    @admin.action(description="Reset delivery status to pending")
    def reset_delivery(self, request, queryset):
        codes = list(queryset.values_list("code", flat=True))
        updated = delivery_service.bulk_reset_status(codes, user=request.user)
        self.message_user(request, f"{updated} customer(s) reset to pending.")


# ===========================================
# CustomerAddress Admin
# ===========================================


@admin.register(CustomerAddress)
class CustomerAddressAdmin(admin.ModelAdmin):
    list_display = ["customer", "label", "city", "postal_code", "is_default"]
    list_filter = ["is_default", "province"]
    search_fields = ["customer__code", "customer__first_name", "street_address", "city"]
    raw_id_fields = ["customer"]


# ===========================================
# LedgerToken Admin
# ===========================================


@admin.register(LedgerToken)
class LedgerTokenAdmin(admin.ModelAdmin):
    list_display = ["id", "expires_at", "updated_at", "expired"]
    readonly_fields = ["expires_at", "created_at", "updated_at"]
    exclude = ["access_token", "refresh_token"]

    def expired(self, obj):
        return obj.is_expired(buffer_seconds=0)

    expired.boolean = True

    def has_add_permission(self, request):
        return False
