"""
Clientele Notifications - Templated customer emails.

Templates are edited in the admin and rendered with the Django template
engine. Every send (or scheduled send) is recorded in EmailLog, which also
backs the daily sending limit.

Usage:
    INSTALLED_APPS = [
        ...
        "clientele",
        "clientele.contrib.notifications",
    ]

    from clientele.contrib.notifications import NotificationService

    NotificationService.send_template_email("CUS-1A2B3C4D", "profile-reminder")
    NotificationService.process_scheduled_emails()
"""


def __getattr__(name):
    if name == "NotificationService":
        from clientele.contrib.notifications.service import NotificationService

        return NotificationService
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["NotificationService"]
