"""Shared fixtures for drive app tests."""

import boto3
import pytest
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from moto import mock_aws

from server.apps.drive.infrastructure.metadata import build_locator
from server.apps.drive.infrastructure.storage import get_blob_store
from server.apps.drive.models import File, Folder, StorageBackend

User = get_user_model()

_TEST_BUCKET = 'drive'


@pytest.fixture(autouse=True)
def blob_storages(settings, tmp_path):
    """Point both blob stores at throwaway locations.

    The local store writes under tmp_path; the object store targets a
    bucket that only exists inside ``mock_s3``.

    Returns:
        Root directory of the local store.
    """
    local_root = tmp_path / 'blobs'
    settings.STORAGES = {
        'default': {
            'BACKEND': 'server.apps.drive.infrastructure.storage.LocalBlobStorage',
            'OPTIONS': {'location': str(local_root)},
        },
        'objects': {
            'BACKEND': 'server.apps.drive.infrastructure.storage.ObjectBlobStorage',
            'OPTIONS': {
                'bucket_name': _TEST_BUCKET,
                'access_key': 'testing',
                'secret_key': 'testing',
                'region_name': 'us-east-1',
                'file_overwrite': False,
            },
        },
    }
    settings.DRIVE_UPLOAD_BACKEND = StorageBackend.LOCAL
    settings.DRIVE_TRASH_RETENTION_DAYS = 30
    return local_root


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for sharing and isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def admin_user(db):
    """Create superuser.

    Returns:
        Superuser instance.
    """
    return User.objects.create_superuser(
        username='admin',
        password='testpass123',
        email='admin@example.com',
    )


@pytest.fixture
def mock_s3():
    """Mock S3 service with drive bucket.

    Yields:
        boto3 S3 resource with drive bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=_TEST_BUCKET)
        yield conn


@pytest.fixture
def local_store():
    """Get the local blob store.

    Returns:
        LocalBlobStorage instance.
    """
    return get_blob_store(StorageBackend.LOCAL)


@pytest.fixture
def make_folder(user):
    """Factory for folders created directly in the database.

    Returns:
        Callable(name, parent=None, owner=user) -> Folder.
    """
    def factory(name, parent=None, owner=None):
        return Folder.objects.create(
            name=name,
            parent=parent,
            created_by=owner or user,
        )
    return factory


@pytest.fixture
def make_file(user, local_store):
    """Factory for files whose blob is stored in the local store.

    Returns:
        Callable(name, folder=None, owner=user, content=b'...') -> File.
    """
    def factory(name, folder=None, owner=None, content=b'test file content'):
        owner = owner or user
        folder_id = folder.id if folder is not None else None
        locator = local_store.put(
            build_locator(owner.id, folder_id, name),
            SimpleUploadedFile(name, content),
            'text/plain',
        )
        return File.objects.create(
            name=name,
            original_name=name,
            folder=folder,
            locator=locator,
            storage_backend=StorageBackend.LOCAL,
            mime_type='text/plain',
            size=len(content),
            created_by=owner,
        )
    return factory


@pytest.fixture
def sample_upload():
    """Sample upload for testing.

    Returns:
        SimpleUploadedFile with test data.
    """
    return SimpleUploadedFile(
        'report.pdf',
        b'%PDF-1.4 test content',
        content_type='application/pdf',
    )
