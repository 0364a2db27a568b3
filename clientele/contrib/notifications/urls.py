from django.urls import path

from .views import AdminDailyCountView, AdminSendEmailView, CronScheduledEmailsView

urlpatterns = [
    path("admin/send-email/", AdminSendEmailView.as_view(), name="admin-send-email"),
    path("admin/email-logs/daily-count/", AdminDailyCountView.as_view(), name="admin-daily-count"),
    path("cron/scheduled-emails/", CronScheduledEmailsView.as_view(), name="cron-scheduled-emails"),
]
