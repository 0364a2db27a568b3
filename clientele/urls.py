from django.apps import apps
from django.urls import include, path

from clientele import views

app_name = "clientele"

urlpatterns = [
    # Customer
    path("register/", views.RegisterView.as_view(), name="register"),
    path("profile/", views.ProfileView.as_view(), name="profile"),
    path("account/", views.AccountView.as_view(), name="account"),
    path("addresses/", views.AddressListView.as_view(), name="address-list"),
    path("addresses/<int:address_id>/", views.AddressDetailView.as_view(), name="address-detail"),
    path(
        "addresses/<int:address_id>/set-default/",
        views.AddressSetDefaultView.as_view(),
        name="address-set-default",
    ),
    path("invoices/", views.InvoiceListView.as_view(), name="invoice-list"),
    path("confirm/<str:token>/", views.DeliveryConfirmView.as_view(), name="delivery-confirm"),
    # Couriers
    path("couriers/", views.CourierListView.as_view(), name="courier-list"),
    path("couriers/<str:code>/", views.CourierDetailView.as_view(), name="courier-detail"),
    # Admin
    path("admin/customers/<str:code>/sync/", views.AdminSyncView.as_view(), name="admin-sync"),
    path(
        "admin/customers/<str:code>/sync-profile/",
        views.AdminSyncProfileView.as_view(),
        name="admin-sync-profile",
    ),
    path(
        "admin/customers/<str:code>/reset-sync/",
        views.AdminResetSyncView.as_view(),
        name="admin-reset-sync",
    ),
    path(
        "admin/customers/<str:code>/ledger-link/",
        views.AdminLedgerLinkView.as_view(),
        name="admin-ledger-link",
    ),
    path(
        "admin/customers/<str:code>/mark-delivered/",
        views.AdminMarkDeliveredView.as_view(),
        name="admin-mark-delivered",
    ),
    path(
        "admin/customers/<str:code>/reset-delivery/",
        views.AdminResetDeliveryView.as_view(),
        name="admin-reset-delivery",
    ),
    path(
        "admin/customers/<str:code>/delivery-logs/",
        views.AdminDeliveryLogView.as_view(),
        name="admin-delivery-logs",
    ),
    path(
        "admin/bulk-mark-delivered/",
        views.AdminBulkMarkDeliveredView.as_view(),
        name="admin-bulk-mark-delivered",
    ),
    path(
        "admin/bulk-reset-status/",
        views.AdminBulkResetStatusView.as_view(),
        name="admin-bulk-reset-status",
    ),
    path(
        "admin/ledger/contacts/",
        views.AdminLedgerContactsView.as_view(),
        name="admin-ledger-contacts",
    ),
    path("admin/ledger/authorize/", views.LedgerAuthorizeView.as_view(), name="ledger-authorize"),
    path("admin/ledger/callback/", views.LedgerCallbackView.as_view(), name="ledger-callback"),
    # Cron
    path("cron/ledger-sync/", views.CronLedgerSyncView.as_view(), name="cron-ledger-sync"),
]

if apps.is_installed("clientele.contrib.notifications"):
    urlpatterns.append(path("", include("clientele.contrib.notifications.urls")))
