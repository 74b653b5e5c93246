"""Integration tests for the object blob store against MinIO.

These tests need a reachable MinIO server (for example from Docker
Compose) and are deselected by default; run them with
``pytest -m integration``.
"""
import io
import os
from typing import Final

import boto3
import pytest
from botocore.client import BaseClient
from botocore.exceptions import ClientError

from server.apps.drive.exceptions import BlobNotFoundError
from server.apps.drive.infrastructure.storage import (
    ObjectBlobStorage,
    get_blob_store,
)
from server.apps.drive.models import StorageBackend

_TEST_BUCKET: Final = 'drive-integration'
_TEST_LOCATOR: Final = '1/root/integration.txt'
_TEST_CONTENT: Final = b'Hello from MinIO integration test!'


def _minio_options() -> dict[str, str]:
    return {
        'endpoint_url': os.getenv('MINIO_ENDPOINT', 'http://minio:9000'),
        'access_key': os.getenv('MINIO_ROOT_USER', 'minioadmin'),
        'secret_key': os.getenv('MINIO_ROOT_PASSWORD', 'minioadmin'),
        'region_name': 'us-east-1',
    }


@pytest.fixture
def s3_client() -> BaseClient:
    """Create S3 client for MinIO.

    Returns:
        Configured boto3 S3 client for MinIO.
    """
    options = _minio_options()
    return boto3.client(
        's3',
        endpoint_url=options['endpoint_url'],
        aws_access_key_id=options['access_key'],
        aws_secret_access_key=options['secret_key'],
        region_name=options['region_name'],
    )


@pytest.fixture
def object_store(settings, s3_client: BaseClient) -> ObjectBlobStorage:
    """Configure the object store against MinIO with a fresh bucket.

    Returns:
        ObjectBlobStorage bound to the integration bucket.
    """
    try:
        s3_client.head_bucket(Bucket=_TEST_BUCKET)
    except ClientError:
        s3_client.create_bucket(Bucket=_TEST_BUCKET)

    settings.STORAGES = {
        **settings.STORAGES,
        'objects': {
            'BACKEND': 'server.apps.drive.infrastructure.storage.ObjectBlobStorage',
            'OPTIONS': {
                **_minio_options(),
                'bucket_name': _TEST_BUCKET,
                'file_overwrite': False,
            },
        },
    }
    store = get_blob_store(StorageBackend.OBJECT)
    store.delete(_TEST_LOCATOR)
    return store


@pytest.mark.integration
def test_put_and_stream(object_store: ObjectBlobStorage, s3_client: BaseClient) -> None:
    """Test a blob written through the store is readable from MinIO."""
    locator = object_store.put(
        _TEST_LOCATOR,
        io.BytesIO(_TEST_CONTENT),
        'text/plain',
    )

    response = s3_client.head_object(Bucket=_TEST_BUCKET, Key=locator)
    assert response['ContentLength'] == len(_TEST_CONTENT)
    assert response['ContentType'] == 'text/plain'
    with object_store.get_stream(locator) as stream:
        assert stream.read() == _TEST_CONTENT


@pytest.mark.integration
def test_copy_and_delete(object_store: ObjectBlobStorage, s3_client: BaseClient) -> None:
    """Test server-side copy and idempotent delete."""
    source = object_store.put(_TEST_LOCATOR, io.BytesIO(_TEST_CONTENT), 'text/plain')
    destination = object_store.copy(source, '1/2/integration.txt')

    assert object_store.delete_if_exists(destination) is True
    assert object_store.delete_if_exists(destination) is False
    assert object_store.delete_if_exists(source) is True

    with pytest.raises(ClientError) as exc_info:
        s3_client.head_object(Bucket=_TEST_BUCKET, Key=source)
    assert exc_info.value.response['Error']['Code'] == '404'


@pytest.mark.integration
def test_missing_blob(object_store: ObjectBlobStorage) -> None:
    """Test missing keys raise BlobNotFoundError."""
    with pytest.raises(BlobNotFoundError):
        object_store.get_stream('1/root/never-written.txt')
