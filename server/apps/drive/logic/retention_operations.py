"""Retention sweeper: permanent deletion of long-trashed resources."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from django.conf import settings
from django.db import close_old_connections
from django.utils import timezone

from server.apps.drive.logic.trash_operations import (
    expired_before,
    permanent_delete_file,
    permanent_delete_folder,
)
from server.apps.drive.models import File, Folder

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Outcome of one retention sweep."""

    cutoff: datetime
    folders_purged: int = 0
    files_purged: int = 0
    skipped: int = 0
    failed: int = 0
    failed_ids: list[tuple[str, int]] = field(default_factory=list)


def retention_cutoff(
    now: datetime | None = None,
    retention_days: int | None = None,
) -> datetime:
    """Compute the deletion time before which trash is purged."""
    if now is None:
        now = timezone.now()
    if retention_days is None:
        retention_days = settings.DRIVE_TRASH_RETENTION_DAYS
    return now - timedelta(days=retention_days)


def sweep_expired_trash(
    now: datetime | None = None,
    retention_days: int | None = None,
) -> SweepReport:
    """Permanently delete every resource trashed before the cutoff.

    Folders go first; their purge cascades into files and subfolders,
    which are then skipped when their own turn comes. A failing
    resource is logged and counted, and the sweep moves on.

    Args:
        now: Current time; defaults to ``timezone.now()``.
        retention_days: Days to keep trash; defaults to the
            DRIVE_TRASH_RETENTION_DAYS setting.

    Returns:
        Counts of purged, skipped and failed resources.
    """
    report = SweepReport(cutoff=retention_cutoff(now, retention_days))
    folder_ids, file_ids = expired_before(report.cutoff)
    logger.info(
        'Retention sweep: %d folders and %d files trashed before %s',
        len(folder_ids),
        len(file_ids),
        report.cutoff,
    )

    for folder_id in folder_ids:
        try:
            permanent_delete_folder(folder_id)
        except Folder.DoesNotExist:
            # Purged as part of an ancestor earlier in this sweep
            report.skipped += 1
        except Exception:
            logger.exception('Failed to purge folder from trash: %d', folder_id)
            report.failed += 1
            report.failed_ids.append(('folder', folder_id))
        else:
            report.folders_purged += 1

    for file_id in file_ids:
        try:
            permanent_delete_file(file_id)
        except File.DoesNotExist:
            report.skipped += 1
        except Exception:
            logger.exception('Failed to purge file from trash: %d', file_id)
            report.failed += 1
            report.failed_ids.append(('file', file_id))
        else:
            report.files_purged += 1

    logger.info(
        'Retention sweep done: %d folders, %d files purged, '
        '%d skipped, %d failed',
        report.folders_purged,
        report.files_purged,
        report.skipped,
        report.failed,
    )
    return report


class RetentionSweeper:
    """Background thread that runs the retention sweep periodically.

    The first sweep runs ``initial_delay`` seconds after ``start()``,
    then one every ``interval``. ``stop()`` wakes the thread and waits
    for it to exit; a sweep in progress is allowed to finish.
    """

    def __init__(
        self,
        interval: timedelta | None = None,
        initial_delay: float | None = None,
        clock: Callable[[], datetime] = timezone.now,
        sweep: Callable[..., SweepReport] = sweep_expired_trash,
    ) -> None:
        """Configure the sweeper; defaults come from settings."""
        if interval is None:
            interval = timedelta(hours=settings.DRIVE_SWEEP_INTERVAL_HOURS)
        if initial_delay is None:
            initial_delay = settings.DRIVE_SWEEP_INITIAL_DELAY_SECONDS
        self.interval = interval
        self.initial_delay = initial_delay
        self._clock = clock
        self._sweep = sweep
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.last_report: SweepReport | None = None

    @property
    def is_running(self) -> bool:
        """Whether the sweeper thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the sweeper thread.

        Raises:
            RuntimeError: If already running.
        """
        if self.is_running:
            raise RuntimeError('Retention sweeper is already running')
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name='drive-retention-sweeper',
            daemon=True,
        )
        self._thread.start()
        logger.info(
            'Retention sweeper started (interval: %s, initial delay: %ss)',
            self.interval,
            self.initial_delay,
        )

    def stop(self, timeout: float | None = None) -> None:
        """Signal the thread to exit and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info('Retention sweeper stopped')

    def run_once(self) -> SweepReport | None:
        """Run a single sweep in the calling thread.

        Failures are logged, not raised, so the loop survives them.

        Returns:
            The sweep report, or None if the sweep failed.
        """
        try:
            self.last_report = self._sweep(now=self._clock())
        except Exception:
            logger.exception('Retention sweep failed')
            return None
        finally:
            close_old_connections()
        return self.last_report

    def _run(self) -> None:
        if self._stop_event.wait(self.initial_delay):
            return
        while True:
            self.run_once()
            if self._stop_event.wait(self.interval.total_seconds()):
                return
