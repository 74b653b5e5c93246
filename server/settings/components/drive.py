"""Drive settings: upload backend, trash retention and sweeper schedule."""

from server.settings.components import config

# Blob store for new uploads: 'local' or 'object'
DRIVE_UPLOAD_BACKEND = config('DRIVE_UPLOAD_BACKEND', default='local')

# Trash older than this is purged by the retention sweeper
DRIVE_TRASH_RETENTION_DAYS = config(
    'DRIVE_TRASH_RETENTION_DAYS',
    cast=int,
    default=30,
)

DRIVE_SWEEP_INTERVAL_HOURS = config(
    'DRIVE_SWEEP_INTERVAL_HOURS',
    cast=float,
    default=24,
)
DRIVE_SWEEP_INITIAL_DELAY_SECONDS = config(
    'DRIVE_SWEEP_INITIAL_DELAY_SECONDS',
    cast=float,
    default=10,
)
