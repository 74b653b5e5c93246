"""Duplicate-name resolution for uploads, moves and copies."""

import logging
from typing import Any

from server.apps.drive.infrastructure.metadata import split_name
from server.apps.drive.models import File, Folder, ResourceType

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def sibling_names(
    folder_id: int | None,
    owner: _User,
    resource_type: str = ResourceType.FILE,
    exclude_id: int | None = None,
) -> set[str]:
    """Collect names of live resources in a folder.

    Args:
        folder_id: Folder to look in, None for root.
        owner: Owner whose resources are considered.
        resource_type: 'file' or 'folder'.
        exclude_id: Resource to leave out (the one being renamed/moved).

    Returns:
        Set of names in use.
    """
    if resource_type == ResourceType.FOLDER:
        queryset = Folder.objects.filter(parent_id=folder_id, created_by=owner)
    else:
        queryset = File.objects.filter(folder_id=folder_id, created_by=owner)
    if exclude_id is not None:
        queryset = queryset.exclude(id=exclude_id)
    return set(queryset.values_list('name', flat=True))


def resolve_unique_name(
    name: str,
    folder_id: int | None,
    owner: _User,
    resource_type: str = ResourceType.FILE,
    exclude_id: int | None = None,
) -> str:
    """Generate a sibling-unique name by suffixing ' (n)'.

    'report.pdf' becomes 'report (1).pdf', then 'report (2).pdf', and so
    on. Not lock-protected: two concurrent uploads of the same name may
    both resolve to the same result.

    Args:
        name: Desired name.
        folder_id: Target folder ID, None for root.
        owner: Owner of the target folder contents.
        resource_type: 'file' or 'folder'.
        exclude_id: Resource to ignore when checking collisions.

    Returns:
        The desired name if free, otherwise the first free variant.
    """
    taken = sibling_names(folder_id, owner, resource_type, exclude_id)
    if name not in taken:
        return name

    stem, extension = split_name(name)
    counter = 1
    # Terminates: taken is finite
    while f'{stem} ({counter}){extension}' in taken:
        counter += 1

    resolved = f'{stem} ({counter}){extension}'
    logger.info(
        'Name "%s" taken in folder %s, using "%s"',
        name,
        folder_id,
        resolved,
    )
    return resolved
