"""Business logic for file operations."""

import logging
from collections.abc import Sequence
from typing import IO, Any

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import UploadedFile
from django.db import transaction

from server.apps.drive.exceptions import NameConflictError
from server.apps.drive.infrastructure.metadata import (
    build_locator,
    detect_mime_type,
    split_relative_path,
    validate_resource_name,
)
from server.apps.drive.infrastructure.storage import BlobStore, get_blob_store
from server.apps.drive.logic.folder_operations import ensure_folder_path
from server.apps.drive.logic.name_operations import (
    resolve_unique_name,
    sibling_names,
)
from server.apps.drive.logic.permission_operations import (
    inherit_parent_permissions,
)
from server.apps.drive.models import File, Folder, ResourceType

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)

# (folder segments, file name, upload)
_PlannedUpload = tuple[list[str], str, UploadedFile]


def _get_file_size(file_obj: UploadedFile) -> int:
    """Get file size from file object.

    Args:
        file_obj: File-like object.

    Returns:
        File size in bytes.
    """
    if file_obj.size is not None:
        return file_obj.size
    file_size = len(file_obj.read())
    file_obj.seek(0)
    return file_size


def _plan_uploads(
    uploads: Sequence[UploadedFile],
    relative_paths: Sequence[str | None],
) -> list[_PlannedUpload]:
    """Split each upload's relative path into folders and a file name.

    Everything is validated before any blob is written.
    """
    planned = []
    for index, upload in enumerate(uploads):
        relative_path = None
        if index < len(relative_paths):
            relative_path = relative_paths[index]
        segments = split_relative_path(relative_path or upload.name)
        if not segments:
            raise ValidationError('Uploaded file has no name')
        planned.append((segments[:-1], segments[-1], upload))
    return planned


def upload_files(  # noqa: WPS211
    owner: _User,
    uploads: Sequence[UploadedFile],
    folder_id: int | None = None,
    relative_paths: Sequence[str | None] = (),
    folder_paths: Sequence[str] = (),
    backend: str | None = None,
) -> list[File]:
    """Upload a batch of files, optionally recreating a folder structure.

    Transaction safety: every blob is written first, then a single DB
    transaction creates the folders named by the relative paths,
    resolves duplicate names and inserts the file rows. If the
    transaction fails, the blobs already written are deleted
    (rollback).

    Args:
        owner: Uploading user.
        uploads: Uploaded files.
        folder_id: Target folder, None for root.
        relative_paths: Per-upload path relative to the target folder,
            file name included (e.g., 'photos/2024/trip.jpg'). Missing
            entries fall back to the upload's name.
        folder_paths: Extra folder paths to create even when empty.
        backend: Blob store for the batch; defaults to the
            DRIVE_UPLOAD_BACKEND setting.

    Returns:
        Created File instances, in upload order.

    Raises:
        ValidationError: If nothing was uploaded or a path is invalid.
        Folder.DoesNotExist: If the target folder is missing or in trash.
        StoreUnavailableError: If the blob store cannot be reached.
        WriteFailedError: If the blob store rejects a write.
    """
    if not uploads and not folder_paths:
        raise ValidationError('No files uploaded')
    if folder_id is not None:
        Folder.objects.get(id=folder_id)

    storage_backend = backend or settings.DRIVE_UPLOAD_BACKEND
    store = get_blob_store(storage_backend)
    planned = _plan_uploads(uploads, relative_paths)

    written: list[str] = []
    try:
        # Step 1: Write blobs
        for _folders, file_name, upload in planned:
            written.append(
                store.put(
                    build_locator(owner.id, folder_id, file_name),
                    upload,
                    detect_mime_type(file_name, upload.content_type),
                ),
            )

        # Step 2: Create folders and rows in one transaction
        with transaction.atomic():
            for folder_path in folder_paths:
                ensure_folder_path(
                    split_relative_path(folder_path),
                    folder_id,
                    owner,
                )
            created = [
                _create_file_row(owner, folder_id, plan, locator, storage_backend)
                for plan, locator in zip(planned, written, strict=True)
            ]
    except Exception:
        logger.exception(
            'Upload batch failed, rolling back %d written blobs',
            len(written),
        )
        for locator in written:
            store.rollback_upload(locator)
        raise

    logger.info(
        'Uploaded %d files for user %s into folder %s (%s)',
        len(created),
        owner.pk,
        folder_id,
        storage_backend,
    )
    return created


def _create_file_row(
    owner: _User,
    folder_id: int | None,
    plan: _PlannedUpload,
    locator: str,
    storage_backend: str,
) -> File:
    folder_segments, file_name, upload = plan
    target_id = ensure_folder_path(folder_segments, folder_id, owner)
    file_instance = File.objects.create(
        name=resolve_unique_name(file_name, target_id, owner),
        original_name=file_name,
        folder_id=target_id,
        locator=locator,
        storage_backend=storage_backend,
        mime_type=detect_mime_type(file_name, upload.content_type),
        size=_get_file_size(upload),
        created_by=owner,
    )
    inherit_parent_permissions(ResourceType.FILE, file_instance.id, target_id)
    logger.info(
        'File record created in database: %s (ID: %d)',
        locator,
        file_instance.id,
    )
    return file_instance


def open_file(file_id: int) -> tuple[File, IO[bytes]]:
    """Open a live file's contents for reading.

    Args:
        file_id: File ID.

    Returns:
        Tuple of (File, readable stream); caller closes the stream.

    Raises:
        File.DoesNotExist: If missing or in trash.
        BlobNotFoundError: If the row exists but its blob is gone.
    """
    file_instance = File.objects.get(id=file_id)
    store = get_blob_store(file_instance.storage_backend)
    return file_instance, store.get_stream(file_instance.locator)


def rename_file(file_id: int, name: str) -> File:
    """Rename a live file; the blob stays where it is.

    Raises:
        File.DoesNotExist: If missing or in trash.
        ValidationError: If the name is invalid.
        NameConflictError: If a live sibling already has the name.
    """
    file_instance = File.objects.get(id=file_id)
    new_name = validate_resource_name(name)
    taken = sibling_names(
        file_instance.folder_id,
        file_instance.created_by,
        exclude_id=file_instance.id,
    )
    if new_name in taken:
        raise NameConflictError(new_name, file_instance.folder_id)

    old_name = file_instance.name
    file_instance.name = new_name
    file_instance.save(update_fields=['name', 'updated_at'])
    logger.info('File renamed: %s -> %s (ID: %d)', old_name, new_name, file_id)
    return file_instance


def move_file(file_id: int, folder_id: int | None) -> File:
    """Move a live file into another folder.

    Only the row changes; the locator is opaque and stays valid. The
    name is de-duplicated in the destination and the destination's
    grants are applied to the file.

    Args:
        file_id: File to move.
        folder_id: Destination folder, None for root.

    Returns:
        Updated File instance.

    Raises:
        File.DoesNotExist: If the file is missing or in trash.
        Folder.DoesNotExist: If the destination is missing or in trash.
    """
    file_instance = File.objects.get(id=file_id)
    if folder_id is not None:
        Folder.objects.get(id=folder_id)

    with transaction.atomic():
        file_instance.name = resolve_unique_name(
            file_instance.name,
            folder_id,
            file_instance.created_by,
            exclude_id=file_instance.id,
        )
        old_folder_id = file_instance.folder_id
        file_instance.folder_id = folder_id
        file_instance.save(update_fields=['name', 'folder', 'updated_at'])
        inherit_parent_permissions(ResourceType.FILE, file_instance.id, folder_id)

    logger.info(
        'File moved: %s (ID: %d) %s -> %s',
        file_instance.name,
        file_id,
        old_folder_id,
        folder_id,
    )
    return file_instance


def copy_file(file_id: int, folder_id: int | None, owner: _User) -> File:
    """Copy a file's contents and metadata into a folder.

    The copy lives in the same blob store as the source and belongs to
    ``owner``.

    Args:
        file_id: Source file.
        folder_id: Destination folder, None for root.
        owner: User making the copy.

    Returns:
        New File instance for the copy.

    Raises:
        File.DoesNotExist: If the source is missing or in trash.
        Folder.DoesNotExist: If the destination is missing or in trash.
        BlobNotFoundError: If the source blob is gone.
    """
    source = File.objects.get(id=file_id)
    if folder_id is not None:
        Folder.objects.get(id=folder_id)

    store: BlobStore = get_blob_store(source.storage_backend)
    destination = store.copy(
        source.locator,
        build_locator(owner.id, folder_id, source.name),
    )

    try:
        with transaction.atomic():
            new_file = File.objects.create(
                name=resolve_unique_name(source.name, folder_id, owner),
                original_name=source.original_name,
                folder_id=folder_id,
                locator=destination,
                storage_backend=source.storage_backend,
                mime_type=source.mime_type,
                size=source.size,
                created_by=owner,
            )
            inherit_parent_permissions(ResourceType.FILE, new_file.id, folder_id)
    except Exception:
        logger.exception('Database creation failed, rolling back blob copy')
        store.rollback_upload(destination)
        raise

    logger.info(
        'File copied: %s -> %s (ID: %d -> %d)',
        source.locator,
        destination,
        source.id,
        new_file.id,
    )
    return new_file
