"""Business logic for folder operations."""

import logging
import shutil
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import IO, Any

from django.core.exceptions import ValidationError
from django.db import transaction

from server.apps.drive.exceptions import BlobNotFoundError, NameConflictError
from server.apps.drive.infrastructure.metadata import validate_resource_name
from server.apps.drive.infrastructure.storage import get_blob_store
from server.apps.drive.logic.name_operations import (
    resolve_unique_name,
    sibling_names,
)
from server.apps.drive.logic.permission_operations import (
    inherit_parent_permissions,
)
from server.apps.drive.logic.tree_walk import is_descendant
from server.apps.drive.models import File, Folder, ResourceType

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


@dataclass
class FolderNode:
    """Folder in the nested tree returned by ``get_folder_tree``."""

    id: int
    name: str
    parent_id: int | None
    children: list['FolderNode'] = field(default_factory=list)


def get_folder(folder_id: int) -> Folder:
    """Get a live folder.

    Raises:
        Folder.DoesNotExist: If missing or in trash.
    """
    return Folder.objects.get(id=folder_id)


def create_folder(
    name: str,
    parent_id: int | None,
    owner: _User,
) -> Folder:
    """Create a folder, optionally under a parent.

    Duplicate sibling names are permitted here; uploads and moves go
    through the name resolver instead.

    Args:
        name: Folder name.
        parent_id: Parent folder ID, None for root.
        owner: Creating user.

    Returns:
        Created Folder instance.

    Raises:
        ValidationError: If the name is invalid.
        Folder.DoesNotExist: If the parent is missing or in trash.
    """
    folder_name = validate_resource_name(name)
    if parent_id is not None:
        Folder.objects.get(id=parent_id)

    with transaction.atomic():
        folder = Folder.objects.create(
            name=folder_name,
            parent_id=parent_id,
            created_by=owner,
        )
        inherit_parent_permissions(ResourceType.FOLDER, folder.id, parent_id)

    logger.info(
        'Folder created: %s (ID: %d, parent: %s)',
        folder.name,
        folder.id,
        parent_id,
    )
    return folder


def ensure_folder_path(
    path_segments: list[str],
    parent_id: int | None,
    owner: _User,
) -> int | None:
    """Make sure a chain of nested folders exists and return the leaf.

    Each segment reuses a live folder with the same name, parent and
    owner when there is one, so calling this twice with the same path
    creates nothing the second time.

    Args:
        path_segments: Folder names from outermost to innermost.
        parent_id: Folder the path starts in, None for root.
        owner: Owner of the folders.

    Returns:
        ID of the innermost folder, or ``parent_id`` for an empty path.
    """
    current_id = parent_id
    for segment in path_segments:
        segment_name = validate_resource_name(segment)
        existing = (
            Folder.objects.filter(
                name=segment_name,
                parent_id=current_id,
                created_by=owner,
            )
            .order_by('id')
            .first()
        )
        if existing is not None:
            current_id = existing.id
            continue

        folder = Folder.objects.create(
            name=segment_name,
            parent_id=current_id,
            created_by=owner,
        )
        inherit_parent_permissions(ResourceType.FOLDER, folder.id, current_id)
        logger.debug(
            'Folder materialized for path: %s (ID: %d)',
            segment_name,
            folder.id,
        )
        current_id = folder.id
    return current_id


def rename_folder(folder_id: int, name: str) -> Folder:
    """Rename a live folder.

    Args:
        folder_id: Folder to rename.
        name: New name.

    Returns:
        Updated Folder instance.

    Raises:
        Folder.DoesNotExist: If missing or in trash.
        ValidationError: If the name is invalid.
        NameConflictError: If a live sibling already has the name.
    """
    folder = Folder.objects.get(id=folder_id)
    new_name = validate_resource_name(name)

    taken = sibling_names(
        folder.parent_id,
        folder.created_by,
        ResourceType.FOLDER,
        exclude_id=folder.id,
    )
    if new_name in taken:
        raise NameConflictError(new_name, folder.parent_id)

    old_name = folder.name
    folder.name = new_name
    folder.save(update_fields=['name', 'updated_at'])

    logger.info('Folder renamed: %s -> %s (ID: %d)', old_name, new_name, folder_id)
    return folder


def move_folder(folder_id: int, new_parent_id: int | None) -> Folder:
    """Move a folder (with its subtree) under a new parent.

    The name is de-duplicated against the new siblings, and the grants
    held on the new parent are re-applied to the moved subtree.

    Args:
        folder_id: Folder to move.
        new_parent_id: Destination folder ID, None for root.

    Returns:
        Updated Folder instance.

    Raises:
        Folder.DoesNotExist: If the folder or destination is missing.
        ValidationError: If the destination is the folder itself or one
            of its descendants.
    """
    folder = Folder.objects.get(id=folder_id)
    if new_parent_id is not None:
        Folder.objects.get(id=new_parent_id)
        if is_descendant(new_parent_id, folder_id):
            raise ValidationError('Cannot move a folder into its own subtree')

    with transaction.atomic():
        folder.name = resolve_unique_name(
            folder.name,
            new_parent_id,
            folder.created_by,
            ResourceType.FOLDER,
            exclude_id=folder.id,
        )
        old_parent_id = folder.parent_id
        folder.parent_id = new_parent_id
        folder.save(update_fields=['name', 'parent', 'updated_at'])
        inherit_parent_permissions(ResourceType.FOLDER, folder.id, new_parent_id)

    logger.info(
        'Folder moved: %s (ID: %d) %s -> %s',
        folder.name,
        folder_id,
        old_parent_id,
        new_parent_id,
    )
    return folder


def get_folder_tree(owner: _User) -> list[FolderNode]:
    """Build the nested forest of a user's live folders.

    Two passes: index every folder, then attach each one to its parent.
    A folder whose parent is not in the live set (trashed or owned by
    someone else) becomes a root.

    Args:
        owner: Folder owner.

    Returns:
        Root nodes, each with nested children, ordered by ID.
    """
    rows = Folder.objects.filter(created_by=owner).order_by('id')
    nodes = {
        row.id: FolderNode(id=row.id, name=row.name, parent_id=row.parent_id)
        for row in rows
    }

    roots: list[FolderNode] = []
    for node in nodes.values():
        parent = nodes.get(node.parent_id) if node.parent_id else None
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)
    return roots


def iter_folder_files(folder_id: int) -> Iterator[tuple[str, File]]:
    """Yield live files in a folder subtree with their relative paths.

    Example: a file 'a.txt' in subfolder 'docs' yields ('docs/a.txt', file).

    Args:
        folder_id: Subtree root.

    Yields:
        Tuples of (path relative to the folder, File).

    Raises:
        Folder.DoesNotExist: If missing or in trash.
    """
    Folder.objects.get(id=folder_id)
    stack: list[tuple[int, str]] = [(folder_id, '')]
    seen: set[int] = set()
    while stack:
        current_id, prefix = stack.pop()
        if current_id in seen:
            continue
        seen.add(current_id)

        for file_instance in File.objects.filter(folder_id=current_id).order_by('id'):
            yield f'{prefix}{file_instance.name}', file_instance

        children = Folder.objects.filter(parent_id=current_id).order_by('-id')
        stack.extend(
            (child.id, f'{prefix}{child.name}/') for child in children
        )


def write_folder_archive(folder_id: int, fileobj: IO[bytes]) -> int:
    """Write a zip of a folder subtree into a binary stream.

    An empty folder produces an empty archive. Files whose blob is
    missing are skipped.

    Args:
        folder_id: Folder to archive.
        fileobj: Writable binary stream.

    Returns:
        Number of files written to the archive.
    """
    written = 0
    with zipfile.ZipFile(fileobj, 'w', zipfile.ZIP_DEFLATED) as archive:
        for relative_path, file_instance in iter_folder_files(folder_id):
            store = get_blob_store(file_instance.storage_backend)
            try:
                stream = store.get_stream(file_instance.locator)
            except BlobNotFoundError:
                logger.warning(
                    'Skipping file with missing blob: %s (ID: %d)',
                    file_instance.locator,
                    file_instance.id,
                )
                continue
            with stream, archive.open(relative_path, 'w') as entry:
                shutil.copyfileobj(stream, entry)
            written += 1

    logger.info('Folder %d archived: %d files', folder_id, written)
    return written
