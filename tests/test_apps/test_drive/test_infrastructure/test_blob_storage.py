"""Tests for blob store backends."""

from unittest.mock import patch

import pytest
from botocore.exceptions import EndpointConnectionError
from django.core.files.uploadedfile import SimpleUploadedFile

from server.apps.drive.exceptions import (
    BlobNotFoundError,
    StoreUnavailableError,
    WriteFailedError,
)
from server.apps.drive.infrastructure.storage import (
    LocalBlobStorage,
    ObjectBlobStorage,
    get_blob_store,
)
from server.apps.drive.models import StorageBackend


def _upload(content=b'hello blob'):
    return SimpleUploadedFile('hello.txt', content, content_type='text/plain')


def test_get_blob_store_by_backend(mock_s3):
    """Test each backend tag resolves to its configured store."""
    assert isinstance(get_blob_store(StorageBackend.LOCAL), LocalBlobStorage)
    assert isinstance(get_blob_store('object'), ObjectBlobStorage)


def test_get_blob_store_unknown_backend():
    """Test unknown backend tags are rejected."""
    with pytest.raises(ValueError, match='ftp'):
        get_blob_store('ftp')


class TestLocalBlobStorage:
    """Tests for the filesystem blob store."""

    def test_put_and_read_back(self, local_store, blob_storages):
        """Test a written blob can be streamed back."""
        locator = local_store.put('1/root/hello.txt', _upload(), 'text/plain')

        assert locator == '1/root/hello.txt'
        assert (blob_storages / '1' / 'root' / 'hello.txt').exists()
        with local_store.get_stream(locator) as stream:
            assert stream.read() == b'hello blob'

    def test_put_keeps_existing_blob(self, local_store):
        """Test a second write to a taken locator gets a fresh name."""
        first = local_store.put('1/root/hello.txt', _upload(b'one'), 'text/plain')
        second = local_store.put('1/root/hello.txt', _upload(b'two'), 'text/plain')

        assert first != second
        with local_store.get_stream(first) as stream:
            assert stream.read() == b'one'

    def test_put_write_failure(self, local_store):
        """Test filesystem errors become WriteFailedError."""
        with patch.object(
            LocalBlobStorage,
            '_save',
            side_effect=PermissionError('read-only'),
        ):
            with pytest.raises(WriteFailedError):
                local_store.put('1/root/hello.txt', _upload(), 'text/plain')

    def test_get_stream_missing(self, local_store):
        """Test reading a missing blob raises BlobNotFoundError."""
        with pytest.raises(BlobNotFoundError):
            local_store.get_stream('1/root/missing.txt')

    def test_delete_is_idempotent(self, local_store):
        """Test deleting twice does not fail."""
        locator = local_store.put('1/root/hello.txt', _upload(), 'text/plain')

        local_store.delete(locator)
        local_store.delete(locator)

        assert not local_store.exists(locator)

    def test_delete_if_exists(self, local_store):
        """Test delete_if_exists reports whether something was removed."""
        locator = local_store.put('1/root/hello.txt', _upload(), 'text/plain')

        assert local_store.delete_if_exists(locator) is True
        assert local_store.delete_if_exists(locator) is False

    def test_copy(self, local_store):
        """Test copying duplicates the content under a new locator."""
        source = local_store.put('1/root/hello.txt', _upload(), 'text/plain')

        destination = local_store.copy(source, '1/5/hello.txt')

        assert destination == '1/5/hello.txt'
        with local_store.get_stream(destination) as stream:
            assert stream.read() == b'hello blob'

    def test_remove_container_only_when_empty(self, local_store, blob_storages):
        """Test containers are removed only once they hold no blobs."""
        locator = local_store.put('1/7/hello.txt', _upload(), 'text/plain')

        assert local_store.remove_container('1/7') is False

        local_store.delete(locator)
        assert local_store.remove_container('1/7') is True
        assert not (blob_storages / '1' / '7').exists()
        assert local_store.remove_container('1/7') is False

    def test_rollback_upload_swallows_errors(self, local_store):
        """Test rollback failures are logged, not raised."""
        with patch.object(
            LocalBlobStorage,
            'delete',
            side_effect=OSError('busy'),
        ):
            local_store.rollback_upload('1/root/hello.txt')


class TestObjectBlobStorage:
    """Tests for the S3-compatible blob store."""

    def test_put_and_read_back(self, mock_s3):
        """Test a written object can be streamed back."""
        store = get_blob_store(StorageBackend.OBJECT)

        locator = store.put('1/root/hello.txt', _upload(), 'text/plain')

        obj = mock_s3.Object('drive', locator).get()
        assert obj['Body'].read() == b'hello blob'
        assert obj['ContentType'] == 'text/plain'
        with store.get_stream(locator) as stream:
            assert stream.read() == b'hello blob'

    def test_put_does_not_overwrite(self, mock_s3):
        """Test a taken key is never overwritten."""
        store = get_blob_store(StorageBackend.OBJECT)

        first = store.put('1/root/hello.txt', _upload(b'one'), 'text/plain')
        second = store.put('1/root/hello.txt', _upload(b'two'), 'text/plain')

        assert first != second
        assert mock_s3.Object('drive', first).get()['Body'].read() == b'one'

    def test_put_unavailable(self, mock_s3):
        """Test connection failures become StoreUnavailableError."""
        store = get_blob_store(StorageBackend.OBJECT)

        with patch.object(
            ObjectBlobStorage,
            '_save',
            side_effect=EndpointConnectionError(endpoint_url='http://minio:9000'),
        ):
            with pytest.raises(StoreUnavailableError):
                store.put('1/root/hello.txt', _upload(), 'text/plain')

    def test_get_stream_missing(self, mock_s3):
        """Test reading a missing object raises BlobNotFoundError."""
        store = get_blob_store(StorageBackend.OBJECT)

        with pytest.raises(BlobNotFoundError):
            store.get_stream('1/root/missing.txt')

    def test_copy_server_side(self, mock_s3):
        """Test objects are copied inside the bucket."""
        store = get_blob_store(StorageBackend.OBJECT)
        source = store.put('1/root/hello.txt', _upload(), 'text/plain')

        destination = store.copy(source, '1/9/hello.txt')

        assert destination == '1/9/hello.txt'
        assert mock_s3.Object('drive', destination).get()['Body'].read() == (
            b'hello blob'
        )

    def test_copy_missing_source(self, mock_s3):
        """Test copying a missing object raises BlobNotFoundError."""
        store = get_blob_store(StorageBackend.OBJECT)

        with pytest.raises(BlobNotFoundError):
            store.copy('1/root/missing.txt', '1/9/missing.txt')

    def test_delete_if_exists(self, mock_s3):
        """Test objects are deleted once and then reported absent."""
        store = get_blob_store(StorageBackend.OBJECT)
        locator = store.put('1/root/hello.txt', _upload(), 'text/plain')

        assert store.delete_if_exists(locator) is True
        assert store.delete_if_exists(locator) is False
        assert store.remove_container('1/root') is False
