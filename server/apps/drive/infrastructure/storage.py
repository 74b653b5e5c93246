"""Blob store backends for file contents.

Both backends expose the same narrow interface on top of Django's
``Storage`` API: put, get_stream, delete, exists and copy. The logic
layer never touches paths or bucket keys beyond the opaque locator.
"""

import logging
from pathlib import Path
from typing import IO, Any, ClassVar, Final, final

from typing_extensions import override

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
)
from django.core.files.base import File as DjangoFile
from django.core.files.storage import FileSystemStorage, storages
from storages.backends.s3 import S3Storage

from server.apps.drive.exceptions import (
    BlobNotFoundError,
    StoreUnavailableError,
    WriteFailedError,
)
from server.apps.drive.models import StorageBackend

logger = logging.getLogger(__name__)

# STORAGES aliases for each backend
_STORAGE_ALIASES: Final = {
    StorageBackend.LOCAL: 'default',
    StorageBackend.OBJECT: 'objects',
}


class BlobStore:
    """Uniform blob interface mixed into a Django storage class."""

    backend: ClassVar[StorageBackend]

    # Exceptions meaning the backend is unreachable
    unavailable_errors: ClassVar[tuple[type[Exception], ...]] = ()

    # Exceptions meaning the backend rejected the write
    write_errors: ClassVar[tuple[type[Exception], ...]] = (OSError,)

    def put(self, locator: str, stream: IO[bytes], content_type: str) -> str:
        """Write a byte stream under the given locator.

        Args:
            locator: Requested locator (e.g., '12/34/report.pdf').
            stream: Readable binary stream.
            content_type: MIME type stored with the blob where supported.

        Returns:
            Committed locator (may differ from the requested one when the
            backend picks an available name).

        Raises:
            StoreUnavailableError: If the backend cannot be reached.
            WriteFailedError: If the backend rejects the write.
        """
        content = DjangoFile(stream, name=locator)
        content.content_type = content_type  # type: ignore[attr-defined]
        try:
            logger.info('Writing blob: %s (%s)', locator, self.backend)
            committed = self.save(locator, content)  # type: ignore[attr-defined]
        except self.unavailable_errors as exc:
            logger.exception('Blob store unavailable: %s', self.backend)
            raise StoreUnavailableError(
                f'{self.backend} blob store is unavailable',
            ) from exc
        except self.write_errors as exc:
            logger.exception('Failed to write blob: %s', locator)
            raise WriteFailedError(f'Failed to write blob: {locator}') from exc
        logger.info('Blob written: %s', committed)
        return committed

    def get_stream(self, locator: str) -> IO[bytes]:
        """Open a blob for reading.

        Args:
            locator: Blob locator.

        Returns:
            Readable binary stream; caller closes it.

        Raises:
            BlobNotFoundError: If nothing is stored under the locator.
        """
        if not self.exists(locator):  # type: ignore[attr-defined]
            raise BlobNotFoundError(locator)
        return self.open(locator, 'rb')  # type: ignore[attr-defined]

    def copy(self, source: str, destination: str) -> str:
        """Copy a blob to a new locator.

        Args:
            source: Existing blob locator.
            destination: Requested destination locator.

        Returns:
            Committed destination locator.

        Raises:
            BlobNotFoundError: If the source is missing.
        """
        with self.get_stream(source) as stream:
            logger.info('Copying blob: %s -> %s', source, destination)
            return self.save(destination, stream)  # type: ignore[attr-defined]

    def delete_if_exists(self, locator: str) -> bool:
        """Delete a blob after probing for it.

        Used by purges so a retried purge of an already-cleaned row
        completes without error.

        Args:
            locator: Blob locator.

        Returns:
            True if a blob was deleted, False if it was already absent.
        """
        if not self.exists(locator):  # type: ignore[attr-defined]
            logger.warning('Blob already absent: %s', locator)
            return False
        self.delete(locator)  # type: ignore[attr-defined]
        return True

    def rollback_upload(self, locator: str) -> None:
        """Delete a blob written for a DB transaction that failed.

        Best effort: errors are logged, not raised, since the DB
        rollback has already happened.

        Args:
            locator: Blob locator to delete.
        """
        try:
            logger.warning('Rolling back upload, deleting blob: %s', locator)
            self.delete(locator)  # type: ignore[attr-defined]
        except Exception:
            logger.exception(
                'Failed to rollback upload, orphaned blob: %s',
                locator,
            )

    def remove_container(self, prefix: str) -> bool:
        """Remove the physical container for a prefix if it is empty.

        Args:
            prefix: Locator prefix (e.g., '12/34').

        Returns:
            True if a container was removed.
        """
        return False


@final
class LocalBlobStorage(BlobStore, FileSystemStorage):
    """Blob store on the local filesystem."""

    backend = StorageBackend.LOCAL

    @override
    def delete(self, name: str) -> None:
        """Delete blob from disk; missing files are ignored.

        Args:
            name: Blob locator.
        """
        logger.info('Deleting blob from disk: %s', name)
        super().delete(name)

    @override
    def remove_container(self, prefix: str) -> bool:
        """Remove an empty directory left behind by a purge.

        Args:
            prefix: Directory locator relative to the storage root.

        Returns:
            True if the directory existed, was empty and was removed.
        """
        if not prefix:
            return False
        container = Path(self.path(prefix))
        if not container.is_dir() or any(container.iterdir()):
            return False
        container.rmdir()
        logger.info('Removed empty blob container: %s', container)
        return True


@final
class ObjectBlobStorage(BlobStore, S3Storage):
    """Blob store on S3-compatible object storage (MinIO, R2, S3)."""

    backend = StorageBackend.OBJECT
    unavailable_errors = (EndpointConnectionError, ConnectTimeoutError)
    write_errors = (ClientError, BotoCoreError)

    @override
    def delete(self, name: str) -> None:
        """Delete object from S3 with error handling and logging.

        S3 deletes are idempotent, a missing key is not an error.

        Args:
            name: Object key.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting object from storage: %s', name)
            super().delete(name)
        except Exception:
            logger.exception('Failed to delete object from storage: %s', name)
            raise

    @override
    def copy(self, source: str, destination: str) -> str:
        """Server-side copy of an object.

        Args:
            source: Source object key.
            destination: Requested destination key.

        Returns:
            Committed destination key.

        Raises:
            BlobNotFoundError: If the source is missing.
        """
        if not self.exists(source):
            raise BlobNotFoundError(source)
        committed = self.get_available_name(destination)
        copy_source: dict[str, Any] = {
            'Bucket': self.bucket_name,
            'Key': source,
        }
        logger.info('Copying object: %s -> %s', source, committed)
        self.bucket.copy(copy_source, committed)
        return committed


def get_blob_store(backend: str) -> BlobStore:
    """Get the configured blob store for a backend tag.

    Args:
        backend: StorageBackend value ('local' or 'object').

    Returns:
        Storage instance from Django's STORAGES registry.
    """
    return storages[_STORAGE_ALIASES[StorageBackend(backend)]]  # type: ignore[return-value]
