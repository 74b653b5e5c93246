"""Business logic for permission grants and their inheritance.

Grants are materialized: a folder-level grant is copied onto every
descendant folder and file at write time, so read-side checks only ever
look at the resource's own row. Any operation that changes ancestry
(create-under, move, copy) re-applies the new parent's grants through
``inherit_parent_permissions``.
"""

import logging
from collections.abc import Iterable
from typing import Any

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from server.apps.drive.logic.tree_walk import walk_pre_order
from server.apps.drive.models import File, Folder, Permission, ResourceType

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def _resource_model(resource_type: str) -> type[Folder] | type[File]:
    """Get the model class for a resource type.

    Raises:
        ValidationError: If the resource type is unknown.
    """
    try:
        parsed = ResourceType(resource_type)
    except ValueError:
        raise ValidationError(
            f'Unknown resource type: {resource_type}',
            code='invalid_choice',
        ) from None
    return Folder if parsed == ResourceType.FOLDER else File


def check_grant_authority(
    actor: _User,
    resource_type: str,
    resource_id: int,
) -> None:
    """Ensure the actor may manage permissions on a resource.

    Superusers may manage any resource; everybody else only the ones
    they created.

    Args:
        actor: User issuing the grant or revoke.
        resource_type: 'folder' or 'file'.
        resource_id: Resource ID.

    Raises:
        PermissionDenied: If the actor is neither superuser nor creator.
    """
    if actor.is_superuser:
        return
    model = _resource_model(resource_type)
    if not model.all_objects.filter(id=resource_id, created_by=actor).exists():
        logger.warning(
            'User %s may not manage permissions on %s %d',
            actor.pk,
            resource_type,
            resource_id,
        )
        raise PermissionDenied(
            'Not authorized to set permissions for this resource',
        )


def _upsert_inherited(
    user_id: int,
    resource_id: int,
    resource_type: str,
    can_read: bool,
    can_download: bool,
) -> bool:
    """Apply a propagated grant to one descendant.

    Existing rows always follow the grant, even down to no access. A
    new row is only created when the grant gives some access.

    Returns:
        True if a row was updated or created.
    """
    updated = Permission.objects.filter(
        user_id=user_id,
        resource_id=resource_id,
        resource_type=resource_type,
    ).update(
        can_read=can_read,
        can_download=can_download,
        updated_at=timezone.now(),
    )
    if updated:
        return True
    if not (can_read or can_download):
        return False
    Permission.objects.create(
        user_id=user_id,
        resource_id=resource_id,
        resource_type=resource_type,
        can_read=can_read,
        can_download=can_download,
    )
    return True


def _file_ids_in(folder_id: int) -> list[int]:
    return list(
        File.all_objects.filter(folder_id=folder_id)
        .order_by('id')
        .values_list('id', flat=True),
    )


def propagate_grant(
    folder_id: int,
    user_id: int,
    can_read: bool,
    can_download: bool,
    include_root: bool = False,
) -> int:
    """Copy a folder grant onto every descendant folder and file.

    Visits folders in pre-order; each folder's own row is written before
    its files and before any of its subfolders.

    Args:
        folder_id: Subtree root.
        user_id: Grantee.
        can_read: Read flag to apply.
        can_download: Download flag to apply.
        include_root: Also apply the grant to the root folder itself.

    Returns:
        Number of rows written.
    """
    written = 0
    for current_id in walk_pre_order(folder_id):
        if current_id != folder_id or include_root:
            written += _upsert_inherited(
                user_id,
                current_id,
                ResourceType.FOLDER,
                can_read,
                can_download,
            )
        for file_id in _file_ids_in(current_id):
            written += _upsert_inherited(
                user_id,
                file_id,
                ResourceType.FILE,
                can_read,
                can_download,
            )
    return written


def assign_permission(  # noqa: WPS211
    user_id: int,
    resource_id: int,
    resource_type: str,
    can_read: bool,
    can_download: bool,
    actor: _User,
) -> Permission:
    """Grant (or update) read/download rights and propagate them.

    The explicit row is always stored, even when both flags are False,
    so an owner can record a revoke. Folder grants are then applied to
    the whole subtree.

    Args:
        user_id: Grantee.
        resource_id: Folder or file ID.
        resource_type: 'folder' or 'file'.
        can_read: Read flag.
        can_download: Download flag.
        actor: User issuing the grant.

    Returns:
        The explicit Permission row.

    Raises:
        Folder.DoesNotExist: If the folder does not exist.
        File.DoesNotExist: If the file does not exist.
        PermissionDenied: If the actor may not manage the resource.
        ValidationError: If the resource type is unknown.
    """
    model = _resource_model(resource_type)
    model.all_objects.get(id=resource_id)
    check_grant_authority(actor, resource_type, resource_id)

    with transaction.atomic():
        permission, created = Permission.objects.update_or_create(
            user_id=user_id,
            resource_id=resource_id,
            resource_type=resource_type,
            defaults={
                'can_read': can_read,
                'can_download': can_download,
            },
        )

        propagated = 0
        if resource_type == ResourceType.FOLDER:
            propagated = propagate_grant(
                resource_id,
                user_id,
                can_read,
                can_download,
            )

    logger.info(
        'Permission %s: user %d on %s %d (read=%s, download=%s, '
        'propagated to %d descendants)',
        'created' if created else 'updated',
        user_id,
        resource_type,
        resource_id,
        can_read,
        can_download,
        propagated,
    )
    return permission


def remove_permission(permission_id: int, actor: _User) -> None:
    """Revoke a grant and every row it propagated.

    For folder grants, the grantee's rows on every descendant folder
    and file are deleted before the grant itself.

    Args:
        permission_id: ID of the explicit Permission row.
        actor: User issuing the revoke.

    Raises:
        Permission.DoesNotExist: If the permission does not exist.
        PermissionDenied: If the actor may not manage the resource.
    """
    permission = Permission.objects.get(id=permission_id)
    check_grant_authority(
        actor,
        permission.resource_type,
        permission.resource_id,
    )

    removed = 0
    with transaction.atomic():
        if permission.resource_type == ResourceType.FOLDER:
            removed = _remove_inherited(
                permission.resource_id,
                permission.user_id,
            )
        permission.delete()

    logger.info(
        'Permission %d removed (%s %d, user %d, %d inherited rows)',
        permission_id,
        permission.resource_type,
        permission.resource_id,
        permission.user_id,
        removed,
    )


def _remove_inherited(folder_id: int, user_id: int) -> int:
    removed = 0
    for current_id in walk_pre_order(folder_id):
        if current_id != folder_id:
            removed += Permission.objects.filter(
                user_id=user_id,
                resource_id=current_id,
                resource_type=ResourceType.FOLDER,
            ).delete()[0]
        removed += Permission.objects.filter(
            user_id=user_id,
            resource_id__in=_file_ids_in(current_id),
            resource_type=ResourceType.FILE,
        ).delete()[0]
    return removed


def inherit_parent_permissions(
    resource_type: str,
    resource_id: int,
    parent_id: int | None,
) -> int:
    """Apply the grants held on a parent folder to a resource under it.

    Called whenever a resource gains a new ancestor chain (created in,
    moved into or copied into a folder). For folders the grants are
    applied to the whole subtree. Rows the resource already has for
    other users are left untouched.

    Args:
        resource_type: 'folder' or 'file'.
        resource_id: Resource that now sits under ``parent_id``.
        parent_id: New parent folder, None for root.

    Returns:
        Number of rows written.
    """
    if parent_id is None:
        return 0

    grants = Permission.objects.filter(
        resource_type=ResourceType.FOLDER,
        resource_id=parent_id,
    ).order_by('id')

    written = 0
    for grant in grants:
        if resource_type == ResourceType.FOLDER:
            written += propagate_grant(
                resource_id,
                grant.user_id,
                grant.can_read,
                grant.can_download,
                include_root=True,
            )
        else:
            written += _upsert_inherited(
                grant.user_id,
                resource_id,
                ResourceType.FILE,
                grant.can_read,
                grant.can_download,
            )

    if written:
        logger.info(
            'Inherited %d permission rows from folder %d onto %s %d',
            written,
            parent_id,
            resource_type,
            resource_id,
        )
    return written


def delete_resource_permissions(
    resource_type: str,
    resource_ids: Iterable[int],
) -> int:
    """Delete every permission row on the given resources.

    Used when resources are purged; permission rows carry no foreign
    key to cascade from.

    Returns:
        Number of rows deleted.
    """
    deleted, _ = Permission.objects.filter(
        resource_type=resource_type,
        resource_id__in=list(resource_ids),
    ).delete()
    return deleted


def get_resource_permissions(
    resource_type: str,
    resource_id: int,
) -> QuerySet[Permission]:
    """List every grant on a resource with its grantee.

    Args:
        resource_type: 'folder' or 'file'.
        resource_id: Resource ID.

    Returns:
        QuerySet of Permission rows with users preloaded.
    """
    return Permission.objects.filter(
        resource_type=resource_type,
        resource_id=resource_id,
    ).select_related('user').order_by('id')


def get_user_permissions(user: _User) -> QuerySet[Permission]:
    """List every grant held by a user.

    Args:
        user: Grantee.

    Returns:
        QuerySet of Permission rows.
    """
    return Permission.objects.filter(user=user).order_by('id')
