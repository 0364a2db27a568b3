"""Management command to send due scheduled emails."""

from django.apps import apps
from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    help = "Send every scheduled customer email that is due"

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=None, help="Maximum emails to send")

    def handle(self, *args, **options):
        if not apps.is_installed("clientele.contrib.notifications"):
            raise CommandError("clientele.contrib.notifications is not in INSTALLED_APPS")

        from clientele.contrib.notifications.service import NotificationService

        summary = NotificationService.process_scheduled_emails(limit=options["limit"])
        self.stdout.write(
            self.style.SUCCESS(
                f"Processed {summary['processed']}: {summary['sent']} sent, "
                f"{summary['failed']} failed."
            )
        )
