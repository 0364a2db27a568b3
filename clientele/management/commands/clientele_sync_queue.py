"""Management command to run the ledger sync queue (cron entry point)."""

from django.core.management.base import BaseCommand

from clientele.services import sync as sync_service


class Command(BaseCommand):
    help = "Attempt a ledger sync for every pending, skipped or retry-due customer"

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=None,
            help="Maximum customers to process",
        )
        parser.add_argument(
            "--workers",
            type=int,
            default=None,
            help="Override SYNC_WORKERS setting",
        )

    def handle(self, *args, **options):
        summary = sync_service.process_queue(
            limit=options["limit"],
            workers=options["workers"],
        )
        for error in summary.errors:
            self.stderr.write(error)
        self.stdout.write(
            self.style.SUCCESS(
                f"Processed {summary.processed}: {summary.succeeded} synced, "
                f"{summary.failed} failed, {summary.skipped} skipped."
            )
        )
