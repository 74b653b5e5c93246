"""Django storage configuration for drive blob stores.

Two backends hold file contents:
- 'default': local filesystem under DRIVE_LOCAL_ROOT
- 'objects': S3-compatible object storage (MinIO locally, R2/S3 in prod)

Every file row records which one holds its bytes.
"""

from typing import Any, Final

from server.settings.components import BASE_DIR, config

DRIVE_LOCAL_ROOT = config(
    'DRIVE_LOCAL_ROOT',
    default=str(BASE_DIR.joinpath('uploads')),
)

STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'server.apps.drive.infrastructure.storage.LocalBlobStorage',
        'OPTIONS': {
            'location': DRIVE_LOCAL_ROOT,
        },
    },
    'objects': {
        'BACKEND': 'server.apps.drive.infrastructure.storage.ObjectBlobStorage',
        'OPTIONS': {
            'bucket_name': config('AWS_STORAGE_BUCKET_NAME', default='drive'),
            'access_key': config('AWS_ACCESS_KEY_ID', default='minioadmin'),
            'secret_key': config('AWS_SECRET_ACCESS_KEY', default='minioadmin'),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_S3_REGION_NAME',
                default='us-east-1',
            ),
            'file_overwrite': False,  # Trashed blobs may share a key
            'default_acl': None,  # Inherit bucket ACL
        },
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
