"""Database models for drive app."""

from typing import Final, final

from typing_extensions import override

from django.conf import settings
from django.db import models

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_LOCATOR_MAX_LENGTH: Final = 1024
_BACKEND_MAX_LENGTH: Final = 16
_RESOURCE_TYPE_MAX_LENGTH: Final = 16


class ActiveManager(models.Manager):
    """Manager that hides soft-deleted (trashed) rows."""

    @override
    def get_queryset(self) -> models.QuerySet:
        """Exclude rows with is_deleted=True."""
        return super().get_queryset().filter(is_deleted=False)


class StorageBackend(models.TextChoices):
    """Blob store that holds the bytes of a file."""

    LOCAL = 'local', 'Local filesystem'
    OBJECT = 'object', 'Object storage'


class ResourceType(models.TextChoices):
    """Kind of resource a permission row points at."""

    FOLDER = 'folder', 'Folder'
    FILE = 'file', 'File'


@final
class Folder(models.Model):
    """Folder node in a per-user parent-pointer tree.

    A folder and all its descendants are soft-deleted or restored
    together. Rows are only removed by a permanent purge.
    """

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    parent = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        related_name='children',
        null=True,
        blank=True,
    )

    # Kept after the creator is deleted
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='folders',
        null=True,
        blank=True,
    )

    is_deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ActiveManager()
    all_objects = models.Manager()

    class Meta:
        """Model metadata."""

        db_table = 'folders'
        default_manager_name = 'all_objects'
        verbose_name = 'Folder'  # type: ignore[mutable-override]
        verbose_name_plural = 'Folders'  # type: ignore[mutable-override]
        ordering = ['-created_at']

        indexes = [
            # Sibling lookups (cascades, name resolution)
            models.Index(
                fields=['parent', 'created_by', 'name'],
                name='folders_parent_owner_name_idx',
            ),
            # Retention sweeps
            models.Index(
                fields=['is_deleted', 'deleted_at'],
                name='folders_trash_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.name} (ID: {self.pk})'


@final
class File(models.Model):
    """File metadata row; the bytes live in a blob store.

    ``locator`` is the key inside the backend named by ``storage_backend``.
    The backend is stored explicitly and never derived from the locator.
    """

    name = models.CharField(max_length=_NAME_MAX_LENGTH)
    original_name = models.CharField(max_length=_NAME_MAX_LENGTH)

    # NULL means the file sits at the owner's root
    folder = models.ForeignKey(
        Folder,
        on_delete=models.PROTECT,
        related_name='files',
        null=True,
        blank=True,
    )

    locator = models.CharField(max_length=_LOCATOR_MAX_LENGTH)

    storage_backend = models.CharField(
        max_length=_BACKEND_MAX_LENGTH,
        choices=StorageBackend.choices,
        default=StorageBackend.LOCAL,
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        default='application/octet-stream',
    )

    size = models.BigIntegerField(default=0, help_text='File size in bytes')

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='files',
        null=True,
        blank=True,
    )

    is_deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ActiveManager()
    all_objects = models.Manager()

    class Meta:
        """Model metadata."""

        db_table = 'files'
        default_manager_name = 'all_objects'
        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering = ['-created_at']

        indexes = [
            models.Index(
                fields=['folder', 'created_by', 'name'],
                name='files_folder_owner_name_idx',
            ),
            models.Index(
                fields=['is_deleted', 'deleted_at'],
                name='files_trash_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.name} (ID: {self.pk})'

    def get_extension(self) -> str:
        """Extract file extension.

        Example: 'report.PDF' -> 'pdf'

        Returns:
            Extension without dot (lowercase).
        """
        stem, dot, extension = self.name.rpartition('.')
        if not dot or not stem:
            return ''
        return extension.lower()


@final
class Permission(models.Model):
    """Materialized read/download grant of one user on one resource.

    Folder-level grants are copied onto every descendant when issued, so
    access checks never walk the ancestor chain.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='drive_permissions',
    )

    resource_id = models.PositiveBigIntegerField()

    resource_type = models.CharField(
        max_length=_RESOURCE_TYPE_MAX_LENGTH,
        choices=ResourceType.choices,
    )

    can_read = models.BooleanField(default=False)
    can_download = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        db_table = 'permissions'
        verbose_name = 'Permission'  # type: ignore[mutable-override]
        verbose_name_plural = 'Permissions'  # type: ignore[mutable-override]

        constraints = [
            # One row per grantee and resource
            models.UniqueConstraint(
                fields=['user', 'resource_id', 'resource_type'],
                name='permissions_user_resource_unique',
            ),
        ]

        indexes = [
            models.Index(
                fields=['resource_type', 'resource_id'],
                name='permissions_resource_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return (
            f'{self.user_id}:{self.resource_type}:{self.resource_id} '
            f'(read={self.can_read}, download={self.can_download})'
        )


@final
class FavouriteFolder(models.Model):
    """Folder marked as favourite by a user."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='favourite_folders',
    )

    folder = models.ForeignKey(
        Folder,
        on_delete=models.CASCADE,
        related_name='favourites',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        db_table = 'user_favourite_folders'
        verbose_name = 'Favourite folder'  # type: ignore[mutable-override]
        verbose_name_plural = 'Favourite folders'  # type: ignore[mutable-override]

        constraints = [
            models.UniqueConstraint(
                fields=['user', 'folder'],
                name='favourite_folders_user_folder_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.folder_id}'


@final
class FavouriteFile(models.Model):
    """File marked as favourite by a user."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='favourite_files',
    )

    file = models.ForeignKey(
        File,
        on_delete=models.CASCADE,
        related_name='favourites',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        db_table = 'user_favourite_files'
        verbose_name = 'Favourite file'  # type: ignore[mutable-override]
        verbose_name_plural = 'Favourite files'  # type: ignore[mutable-override]

        constraints = [
            models.UniqueConstraint(
                fields=['user', 'file'],
                name='favourite_files_user_file_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.file_id}'
