"""Django management command to run the trash retention sweeper."""

import logging
import threading
from datetime import timedelta
from typing import Any, final

from typing_extensions import override

from django.conf import settings
from django.core.management.base import BaseCommand

from server.apps.drive.logic.retention_operations import RetentionSweeper

logger = logging.getLogger(__name__)


@final
class Command(BaseCommand):
    """Run the retention sweeper in the foreground until interrupted."""

    help = 'Periodically purge folders and files trashed beyond retention'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--interval-hours',
            type=float,
            default=None,
            help='Hours between sweeps (default: from settings)',
        )
        parser.add_argument(
            '--initial-delay',
            type=float,
            default=None,
            help='Seconds before the first sweep (default: from settings)',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the command.

        Args:
            args: Positional arguments.
            options: Keyword arguments from command line.
        """
        interval_hours = (
            options['interval_hours'] or settings.DRIVE_SWEEP_INTERVAL_HOURS
        )
        initial_delay = options['initial_delay']
        if initial_delay is None:
            initial_delay = settings.DRIVE_SWEEP_INITIAL_DELAY_SECONDS

        sweeper = RetentionSweeper(
            interval=timedelta(hours=interval_hours),
            initial_delay=initial_delay,
        )

        self.stdout.write(
            self.style.SUCCESS(
                f'Starting retention sweeper (every {interval_hours}h, '
                f'first sweep in {initial_delay}s)',
            ),
        )
        sweeper.start()
        try:
            self._block()
        except KeyboardInterrupt:
            self.stdout.write(self.style.WARNING('\nShutting down...'))
        finally:
            sweeper.stop()
            self.stdout.write(self.style.SUCCESS('Retention sweeper stopped'))

    def _block(self) -> None:
        """Wait until the process is interrupted."""
        threading.Event().wait()
