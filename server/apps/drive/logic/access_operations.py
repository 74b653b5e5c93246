"""Effective access checks and permission-aware listings.

Access is decided from the resource's own materialized permission row;
ancestors are never consulted at read time.
"""

import enum
import logging
from typing import Any

from django.core.exceptions import PermissionDenied, ValidationError
from django.db.models import Exists, OuterRef, Q, QuerySet

from server.apps.drive.models import (
    FavouriteFile,
    FavouriteFolder,
    File,
    Folder,
    Permission,
    ResourceType,
)

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


class Action(enum.StrEnum):
    """Action a user attempts on a resource."""

    READ = 'read'
    DOWNLOAD = 'download'
    CREATE = 'create'
    EDIT = 'edit'
    DELETE = 'delete'


# Actions that a permission row can grant; the rest need ownership
_GRANTABLE_FLAGS = {
    Action.READ: 'can_read',
    Action.DOWNLOAD: 'can_download',
}


def _parse_choice(choices: Any, value: str) -> Any:
    try:
        return choices(value)
    except ValueError:
        raise ValidationError(
            f'Unknown {choices.__name__}: {value}',
            code='invalid_choice',
        ) from None


def _resource_owner_id(resource_type: str, resource_id: int) -> int | None:
    """Get a resource's creator ID, trashed resources included.

    Raises:
        Folder.DoesNotExist: If the folder does not exist.
        File.DoesNotExist: If the file does not exist.
    """
    model = Folder if resource_type == ResourceType.FOLDER else File
    return model.all_objects.values_list('created_by_id', flat=True).get(
        id=resource_id,
    )


def has_access(
    user: _User,
    resource_type: str,
    resource_id: int | None,
    action: str,
) -> bool:
    """Decide whether a user may perform an action on a resource.

    Superusers may do anything. Creators may do anything to their own
    resources. Other users may only read or download, and only where a
    permission row grants it. Creating at the root (no parent) is open
    to every user.

    Args:
        user: Acting user.
        resource_type: 'folder' or 'file'.
        resource_id: Resource ID; None only for creation at root.
        action: One of the Action values.

    Returns:
        True if the action is allowed.

    Raises:
        Folder.DoesNotExist: If the folder does not exist.
        File.DoesNotExist: If the file does not exist.
        ValidationError: If the action or resource type is unknown.
    """
    action = _parse_choice(Action, action)
    resource_type = _parse_choice(ResourceType, resource_type)
    if user.is_superuser:
        return True
    if resource_id is None:
        return action == Action.CREATE

    if _resource_owner_id(resource_type, resource_id) == user.pk:
        return True

    flag = _GRANTABLE_FLAGS.get(action)
    if flag is None:
        return False
    return Permission.objects.filter(
        user=user,
        resource_type=resource_type,
        resource_id=resource_id,
        **{flag: True},
    ).exists()


def check_access(
    user: _User,
    resource_type: str,
    resource_id: int | None,
    action: str,
) -> None:
    """Raise unless the user may perform the action.

    Raises:
        PermissionDenied: If access is not allowed.
        ValidationError: If the action or resource type is unknown.
        Folder.DoesNotExist: If the folder does not exist.
        File.DoesNotExist: If the file does not exist.
    """
    if not has_access(user, resource_type, resource_id, action):
        logger.warning(
            'Access denied: user %s, %s on %s %s',
            user.pk,
            action,
            resource_type,
            resource_id,
        )
        raise PermissionDenied(f'Not allowed to {action} this {resource_type}')


def _readable_ids(user: _User, resource_type: str) -> QuerySet:
    return Permission.objects.filter(
        user=user,
        resource_type=resource_type,
        can_read=True,
    ).values('resource_id')


def _with_favourited(queryset: QuerySet[Folder], user: _User) -> QuerySet[Folder]:
    return queryset.annotate(
        favourited=Exists(
            FavouriteFolder.objects.filter(user=user, folder=OuterRef('pk')),
        ),
    )


def list_root_folders(user: _User) -> QuerySet[Folder]:
    """List the folders shown at a user's top level.

    These are the user's own root folders plus every folder shared with
    them (can_read) whose parent they can neither own nor read. A
    shared subfolder of an unshared folder is thus promoted to the top
    level. Superusers see every live root folder, as with root files.
    Each folder carries a ``favourited`` annotation.

    Args:
        user: Viewing user.

    Returns:
        QuerySet of live folders, newest first.
    """
    if user.is_superuser:
        queryset = Folder.objects.filter(parent__isnull=True)
        return _with_favourited(queryset, user).order_by('-created_at', '-id')

    readable_ids = _readable_ids(user, ResourceType.FOLDER)
    accessible = Q(created_by=user) | Q(id__in=readable_ids)

    owned_roots = Q(created_by=user, parent__isnull=True)
    promoted = Q(id__in=readable_ids) & (
        Q(parent__isnull=True)
        | ~Q(parent__in=Folder.objects.filter(accessible).values('id'))
    )
    queryset = Folder.objects.filter(owned_roots | promoted)
    return _with_favourited(queryset, user).order_by('-created_at', '-id')


def list_root_files(user: _User) -> QuerySet[File]:
    """List the files shown at a user's top level.

    Superusers see every live root file; other users see their own root
    files plus root files shared with them.

    Args:
        user: Viewing user.

    Returns:
        QuerySet of live root files, newest first.
    """
    queryset = File.objects.filter(folder__isnull=True)
    if not user.is_superuser:
        queryset = queryset.filter(
            Q(created_by=user) | Q(id__in=_readable_ids(user, ResourceType.FILE)),
        )
    return queryset.order_by('-created_at', '-id')


def list_child_folders(user: _User, folder_id: int) -> QuerySet[Folder]:
    """List the live subfolders of a folder the user may see.

    Args:
        user: Viewing user.
        folder_id: Parent folder.

    Returns:
        QuerySet of subfolders with a ``favourited`` annotation.
    """
    queryset = Folder.objects.filter(parent_id=folder_id)
    if not user.is_superuser:
        queryset = queryset.filter(
            Q(created_by=user)
            | Q(id__in=_readable_ids(user, ResourceType.FOLDER)),
        )
    return _with_favourited(queryset, user).order_by('-created_at', '-id')


def list_folder_files(user: _User, folder_id: int) -> QuerySet[File]:
    """List the live files of a folder the user may see.

    Args:
        user: Viewing user.
        folder_id: Folder.

    Returns:
        QuerySet of files with a ``favourited`` annotation.
    """
    queryset = File.objects.filter(folder_id=folder_id)
    if not user.is_superuser:
        queryset = queryset.filter(
            Q(created_by=user) | Q(id__in=_readable_ids(user, ResourceType.FILE)),
        )
    return queryset.annotate(
        favourited=Exists(
            FavouriteFile.objects.filter(user=user, file=OuterRef('pk')),
        ),
    ).order_by('-created_at', '-id')
