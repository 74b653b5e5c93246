"""Business logic for user favourites."""

import logging
from dataclasses import dataclass, field
from typing import Any

from django.db.models import QuerySet

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


@dataclass
class FavouriteFolderNode:
    """Favourited folder with the readable content nested below it."""

    folder: Folder
    nested_folders: list['FavouriteFolderNode'] = field(default_factory=list)
    nested_files: list[File] = field(default_factory=list)


def toggle_folder_favourite(user: _User, folder_id: int) -> bool:
    """Mark a folder as favourite, or unmark it if already marked.

    Args:
        user: Acting user.
        folder_id: Folder to toggle.

    Returns:
        True if the folder is now a favourite.

    Raises:
        Folder.DoesNotExist: If the folder does not exist.
    """
    folder = Folder.all_objects.get(id=folder_id)
    deleted, _ = FavouriteFolder.objects.filter(user=user, folder=folder).delete()
    if deleted:
        logger.info('Folder %d unfavourited by user %s', folder_id, user.pk)
        return False

    FavouriteFolder.objects.create(user=user, folder=folder)
    logger.info('Folder %d favourited by user %s', folder_id, user.pk)
    return True


def toggle_file_favourite(user: _User, file_id: int) -> bool:
    """Mark a file as favourite, or unmark it if already marked.

    Args:
        user: Acting user.
        file_id: File to toggle.

    Returns:
        True if the file is now a favourite.

    Raises:
        File.DoesNotExist: If the file does not exist.
    """
    file_instance = File.all_objects.get(id=file_id)
    deleted, _ = FavouriteFile.objects.filter(
        user=user,
        file=file_instance,
    ).delete()
    if deleted:
        logger.info('File %d unfavourited by user %s', file_id, user.pk)
        return False

    FavouriteFile.objects.create(user=user, file=file_instance)
    logger.info('File %d favourited by user %s', file_id, user.pk)
    return True


def _nest(
    folder: Folder,
    user: _User,
    readable_ids: set[int],
    seen: set[int],
) -> FavouriteFolderNode:
    node = FavouriteFolderNode(
        folder=folder,
        nested_files=list(
            File.objects.filter(folder=folder).order_by('-created_at', '-id'),
        ),
    )
    children = Folder.objects.filter(parent=folder).order_by('-created_at', '-id')
    for child in children:
        if child.id in seen:
            continue
        seen.add(child.id)
        if child.created_by_id == user.pk or child.id in readable_ids:
            node.nested_folders.append(_nest(child, user, readable_ids, seen))
    return node


def list_favourite_folders(user: _User) -> list[FavouriteFolderNode]:
    """List a user's live favourite folders with their content nested.

    Each subfolder is included when the user owns it or can read it;
    a folder appears only once even when both it and an ancestor are
    favourites.

    Args:
        user: Favouriting user.

    Returns:
        Nodes for favourited folders, most recently favourited first.
    """
    favourites = Folder.objects.filter(
        favourites__user=user,
    ).order_by('-favourites__created_at', '-favourites__id')
    readable_ids = set(
        Permission.objects.filter(
            user=user,
            resource_type=ResourceType.FOLDER,
            can_read=True,
        ).values_list('resource_id', flat=True),
    )

    seen: set[int] = set()
    nodes = []
    for folder in favourites:
        if folder.id in seen:
            continue
        seen.add(folder.id)
        nodes.append(_nest(folder, user, readable_ids, seen))
    return nodes


def list_favourite_files(user: _User) -> QuerySet[File]:
    """List a user's live favourite files.

    Args:
        user: Favouriting user.

    Returns:
        QuerySet of files, most recently favourited first.
    """
    return File.objects.filter(
        favourites__user=user,
    ).order_by('-favourites__created_at', '-favourites__id')
