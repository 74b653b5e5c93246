"""Business logic for trash (soft delete, restore, purge) operations.

Soft delete and restore cascade over a folder's whole subtree inside a
single transaction. Purges remove blobs first (best effort, outside any
transaction), then rows, deepest folders first.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from server.apps.drive.exceptions import NameConflictError
from server.apps.drive.infrastructure.metadata import (
    build_container,
    extract_container,
)
from server.apps.drive.infrastructure.storage import get_blob_store
from server.apps.drive.logic.name_operations import sibling_names
from server.apps.drive.logic.permission_operations import (
    delete_resource_permissions,
)
from server.apps.drive.logic.tree_walk import walk_post_order, walk_pre_order
from server.apps.drive.models import File, Folder, ResourceType, StorageBackend

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


@dataclass
class CascadeResult:
    """Rows touched by a cascade."""

    folders: int = 0
    files: int = 0
    failed_blobs: int = 0


def delete_folder(folder_id: int) -> CascadeResult:
    """Move a folder and everything below it to trash.

    Descendants are marked in pre-order. Rows already in trash keep
    their original ``deleted_at`` so their retention clock is not reset.

    Args:
        folder_id: Folder to delete.

    Returns:
        Number of folders and files newly trashed.

    Raises:
        Folder.DoesNotExist: If missing or already in trash.
    """
    folder = Folder.objects.get(id=folder_id)
    now = timezone.now()
    result = CascadeResult()

    with transaction.atomic():
        for current_id in walk_pre_order(folder.id):
            result.folders += Folder.all_objects.filter(
                id=current_id,
                is_deleted=False,
            ).update(is_deleted=True, deleted_at=now, updated_at=now)
            result.files += File.all_objects.filter(
                folder_id=current_id,
                is_deleted=False,
            ).update(is_deleted=True, deleted_at=now, updated_at=now)

    logger.info(
        'Folder moved to trash: %s (ID: %d, %d folders, %d files)',
        folder.name,
        folder_id,
        result.folders,
        result.files,
    )
    return result


def restore_folder(folder_id: int) -> CascadeResult:
    """Restore a trashed folder and everything below it.

    Works even when an ancestor is still in trash; the folder is then
    only reachable by ID until the ancestor is restored too.

    Args:
        folder_id: Folder to restore.

    Returns:
        Number of folders and files restored.

    Raises:
        Folder.DoesNotExist: If missing or not in trash.
        NameConflictError: If a live sibling already uses the name.
    """
    folder = Folder.all_objects.get(id=folder_id, is_deleted=True)
    taken = sibling_names(
        folder.parent_id,
        folder.created_by,
        ResourceType.FOLDER,
    )
    if folder.name in taken:
        raise NameConflictError(folder.name, folder.parent_id)

    now = timezone.now()
    result = CascadeResult()
    with transaction.atomic():
        for current_id in walk_pre_order(folder.id):
            result.folders += Folder.all_objects.filter(
                id=current_id,
                is_deleted=True,
            ).update(is_deleted=False, deleted_at=None, updated_at=now)
            result.files += File.all_objects.filter(
                folder_id=current_id,
                is_deleted=True,
            ).update(is_deleted=False, deleted_at=None, updated_at=now)

    logger.info(
        'Folder restored: %s (ID: %d, %d folders, %d files)',
        folder.name,
        folder_id,
        result.folders,
        result.files,
    )
    return result


def _purge_blob(file_instance: File) -> bool:
    """Delete a file's blob, logging instead of raising.

    Returns:
        False if the delete failed.
    """
    store = get_blob_store(file_instance.storage_backend)
    try:
        store.delete_if_exists(file_instance.locator)
    except Exception:
        logger.exception(
            'Failed to delete blob, continuing purge: %s (file ID: %d)',
            file_instance.locator,
            file_instance.id,
        )
        return False
    return True


def _remove_local_containers(prefixes: set[str]) -> None:
    store = get_blob_store(StorageBackend.LOCAL)
    # Deepest first so parents can become empty
    for prefix in sorted(prefixes, key=len, reverse=True):
        try:
            store.remove_container(prefix)
        except OSError:
            logger.exception('Failed to remove blob container: %s', prefix)


def permanent_delete_folder(folder_id: int) -> CascadeResult:
    """Irreversibly delete a trashed folder and its trashed descendants.

    Trashed children are purged before their parents. For each folder:
    its trashed file blobs are deleted, then those file rows, then the
    permission rows pointing at the purged resources, then the folder
    row. Live folders and files found under a purged folder (restored on
    their own) are moved to the root level instead and keep their
    content. Blob failures are logged and the purge continues; the probe
    before each blob delete makes a retried purge safe. Empty local
    containers are removed at the end.

    Args:
        folder_id: Trashed folder to purge.

    Returns:
        Number of folders and files deleted, and blobs that failed.

    Raises:
        Folder.DoesNotExist: If missing or not in trash.
    """
    folder = Folder.all_objects.get(id=folder_id, is_deleted=True)
    owner_id = folder.created_by_id
    result = CascadeResult()
    containers: set[str] = set()

    for current_id in walk_post_order(folder.id, trashed_only=True):
        files = list(
            File.all_objects.filter(folder_id=current_id, is_deleted=True),
        )
        for file_instance in files:
            if not _purge_blob(file_instance):
                result.failed_blobs += 1
            if file_instance.storage_backend == StorageBackend.LOCAL:
                containers.add(extract_container(file_instance.locator))
        containers.add(build_container(owner_id, current_id))

        file_ids = [file_instance.id for file_instance in files]
        with transaction.atomic():
            delete_resource_permissions(ResourceType.FILE, file_ids)
            result.files += File.all_objects.filter(id__in=file_ids).delete()[0]
            _detach_live_children(current_id)
            delete_resource_permissions(ResourceType.FOLDER, [current_id])
            Folder.all_objects.filter(id=current_id).delete()
        result.folders += 1

    _remove_local_containers(containers)

    logger.info(
        'Folder permanently deleted: %s (ID: %d, %d folders, %d files, '
        '%d blob failures)',
        folder.name,
        folder_id,
        result.folders,
        result.files,
        result.failed_blobs,
    )
    return result


def _detach_live_children(folder_id: int) -> None:
    # Anything still pointing here is live; trashed children went first
    moved_folders = Folder.all_objects.filter(parent_id=folder_id).update(
        parent=None,
    )
    moved_files = File.all_objects.filter(folder_id=folder_id).update(
        folder=None,
    )
    if moved_folders or moved_files:
        logger.info(
            'Moved %d live folders and %d live files out of purged folder %d',
            moved_folders,
            moved_files,
            folder_id,
        )


def soft_delete_file(file_id: int) -> File:
    """Move a file to trash.

    Args:
        file_id: ID of file to soft delete.

    Returns:
        Updated File instance.

    Raises:
        File.DoesNotExist: If missing or already in trash.
    """
    file_instance = File.objects.get(id=file_id)
    file_instance.is_deleted = True
    file_instance.deleted_at = timezone.now()
    file_instance.save(update_fields=['is_deleted', 'deleted_at', 'updated_at'])

    logger.info('File moved to trash: %s (ID: %d)', file_instance.name, file_id)
    return file_instance


def restore_file(file_id: int) -> File:
    """Restore a file from trash into its original folder.

    Args:
        file_id: ID of file to restore.

    Returns:
        Updated File instance.

    Raises:
        File.DoesNotExist: If missing or not in trash.
        NameConflictError: If a live sibling already uses the name.
    """
    file_instance = File.all_objects.get(id=file_id, is_deleted=True)
    taken = sibling_names(file_instance.folder_id, file_instance.created_by)
    if file_instance.name in taken:
        raise NameConflictError(file_instance.name, file_instance.folder_id)

    file_instance.is_deleted = False
    file_instance.deleted_at = None
    file_instance.save(update_fields=['is_deleted', 'deleted_at', 'updated_at'])

    logger.info('File restored: %s (ID: %d)', file_instance.name, file_id)
    return file_instance


def permanent_delete_file(file_id: int) -> None:
    """Permanently delete a trashed file: blob, permissions and row.

    Args:
        file_id: ID of file to permanently delete.

    Raises:
        File.DoesNotExist: If missing or not in trash.
    """
    file_instance = File.all_objects.get(id=file_id, is_deleted=True)
    store = get_blob_store(file_instance.storage_backend)
    store.delete_if_exists(file_instance.locator)

    with transaction.atomic():
        delete_resource_permissions(ResourceType.FILE, [file_instance.id])
        file_instance.delete()

    if file_instance.storage_backend == StorageBackend.LOCAL:
        _remove_local_containers({extract_container(file_instance.locator)})

    logger.info(
        'File permanently deleted: %s (ID: %d, size: %d)',
        file_instance.locator,
        file_id,
        file_instance.size,
    )


def list_trash_folders(
    owner: _User,
    parent_id: int | None = None,
) -> QuerySet[Folder]:
    """List trashed folders of a user.

    At the top level only folders whose parent is live (or absent) are
    shown, so a trashed subtree appears once, at its root.

    Args:
        owner: Folder owner.
        parent_id: Trashed folder to look into, None for the top level.

    Returns:
        QuerySet of trashed folders, most recently deleted first.
    """
    queryset = Folder.all_objects.filter(created_by=owner, is_deleted=True)
    if parent_id is None:
        queryset = queryset.filter(
            Q(parent__isnull=True) | Q(parent__is_deleted=False),
        )
    else:
        queryset = queryset.filter(parent_id=parent_id)
    return queryset.order_by('-deleted_at', '-id')


def list_trash_files(
    owner: _User,
    folder_id: int | None = None,
) -> QuerySet[File]:
    """List trashed files of a user.

    Args:
        owner: File owner.
        folder_id: Trashed folder to look into, None for the top level
            (files whose folder is live or absent).

    Returns:
        QuerySet of trashed files, most recently deleted first.
    """
    queryset = File.all_objects.filter(created_by=owner, is_deleted=True)
    if folder_id is None:
        queryset = queryset.filter(
            Q(folder__isnull=True) | Q(folder__is_deleted=False),
        )
    else:
        queryset = queryset.filter(folder_id=folder_id)
    return queryset.order_by('-deleted_at', '-id')


def expired_before(cutoff: datetime) -> tuple[list[int], list[int]]:
    """Find trashed folder and file IDs deleted before a cutoff.

    Returns:
        Tuple of (folder IDs, file IDs), oldest deletions first.
    """
    folder_ids = list(
        Folder.all_objects.filter(is_deleted=True, deleted_at__lt=cutoff)
        .order_by('deleted_at', 'id')
        .values_list('id', flat=True),
    )
    file_ids = list(
        File.all_objects.filter(is_deleted=True, deleted_at__lt=cutoff)
        .order_by('deleted_at', 'id')
        .values_list('id', flat=True),
    )
    return folder_ids, file_ids
