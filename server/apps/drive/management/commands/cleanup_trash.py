"""Management command to clean up old folders and files from trash."""

import logging
from typing import Any, final

from typing_extensions import override

from django.conf import settings
from django.core.management.base import BaseCommand

from server.apps.drive.logic.retention_operations import (
    retention_cutoff,
    sweep_expired_trash,
)
from server.apps.drive.logic.trash_operations import expired_before
from server.apps.drive.models import File, Folder

logger = logging.getLogger(__name__)


@final
class Command(BaseCommand):
    """Permanently delete resources that have been in trash too long."""

    help = 'Clean up old folders and files from trash'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )
        parser.add_argument(
            '--retention-days',
            type=int,
            default=None,
            help='Days to keep trash (default: DRIVE_TRASH_RETENTION_DAYS)',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        retention_days = (
            options['retention_days'] or settings.DRIVE_TRASH_RETENTION_DAYS
        )
        cutoff = retention_cutoff(retention_days=retention_days)

        self.stdout.write(
            f'Looking for resources deleted before {cutoff} '
            f'(older than {retention_days} days)',
        )

        if options['dry_run']:
            self._report_dry_run(*expired_before(cutoff))
            return

        report = sweep_expired_trash(retention_days=retention_days)
        for resource_type, resource_id in report.failed_ids:
            self.stderr.write(f'Failed to delete {resource_type} {resource_id}')

        self.stdout.write(
            self.style.SUCCESS(
                f'Purged {report.folders_purged} folders and '
                f'{report.files_purged} files from trash, '
                f'{report.failed} failed',
            ),
        )

    def _report_dry_run(self, folder_ids: list[int], file_ids: list[int]) -> None:
        for folder in Folder.all_objects.filter(id__in=folder_ids).order_by('id'):
            self.stdout.write(
                f'Would delete folder: {folder.name} '
                f'(ID: {folder.id}, deleted: {folder.deleted_at})',
            )
        for file_instance in File.all_objects.filter(id__in=file_ids).order_by('id'):
            self.stdout.write(
                f'Would delete file: {file_instance.name} '
                f'(ID: {file_instance.id}, deleted: {file_instance.deleted_at})',
            )
        self.stdout.write(
            self.style.SUCCESS(
                f'Would purge {len(folder_ids)} folders and '
                f'{len(file_ids)} files from trash',
            ),
        )
