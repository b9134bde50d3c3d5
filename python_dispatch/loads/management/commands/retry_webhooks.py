import logging

from django.core.management.base import BaseCommand

from loads.services.webhook_dispatcher import get_webhook_config, retry_failed_deliveries

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Re-sends failed partner webhook deliveries (one bounded batch)"

    def add_arguments(self, parser):
        parser.add_argument(
            "--max-retries",
            type=int,
            default=None,
            help="Skip deliveries that already failed this many times (default: WEBHOOK_MAX_RETRIES)",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=None,
            help="Maximum deliveries to retry (default: WEBHOOK_RETRY_BATCH_SIZE)",
        )

    def handle(self, *args, **options):
        if get_webhook_config() is None:
            self.stderr.write(
                self.style.ERROR("Partner webhook not configured or disabled. Nothing to retry.")
            )
            return

        self.stdout.write("Retrying failed partner webhooks...")
        succeeded = retry_failed_deliveries(
            max_retries=options["max_retries"],
            batch_size=options["batch_size"],
        )
        logger.info(f"retry_webhooks command delivered {succeeded} webhook(s)")
        self.stdout.write(
            self.style.SUCCESS(f"Delivered {succeeded} previously failed webhook(s).")
        )
