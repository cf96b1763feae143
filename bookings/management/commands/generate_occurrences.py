"""
Management command to generate booking occurrences from recurrence patterns.

Generation runs in batches; run this periodically (e.g., daily via cron) so
open-ended patterns always have upcoming occurrences.
"""

from django.conf import settings
from django.core.management.base import BaseCommand
from bookings import services


class Command(BaseCommand):
    help = 'Generate the next batch of occurrences for every active recurrence pattern'

    def add_arguments(self, parser):
        parser.add_argument(
            '--count',
            type=int,
            default=settings.OCCURRENCE_BATCH_SIZE,
            help='Maximum number of occurrences per pattern (default: OCCURRENCE_BATCH_SIZE)'
        )

    def handle(self, *args, **options):
        batch_size = options['count']

        self.stdout.write(
            f'Generating up to {batch_size} occurrence(s) per pattern...'
        )

        total_created = services.generate_occurrences_for_all_patterns(
            request_count=batch_size
        )

        self.stdout.write(
            self.style.SUCCESS(
                f'Successfully generated {total_created} new occurrence(s)'
            )
        )
