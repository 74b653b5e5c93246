"""Name, path and content-type helpers for drive resources."""

import mimetypes
import re
from typing import Final

from django.core.exceptions import ValidationError

_NAME_MAX_LENGTH: Final = 255
_RESERVED_NAMES: Final = frozenset(('.', '..'))
_PATH_SEPARATORS: Final = re.compile(r'[\\/]')
_ROOT_CONTAINER: Final = 'root'


def detect_mime_type(filename: str, declared: str | None = None) -> str:
    """Detect MIME type for an uploaded file.

    The type declared by the client wins; otherwise it is guessed
    from the filename extension.

    Args:
        filename: Filename with extension.
        declared: Content type sent with the upload, if any.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    if declared:
        return declared
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return 'application/octet-stream'
    return mime_type


def validate_resource_name(name: str | None) -> str:
    """Validate a folder or file name.

    Args:
        name: Proposed name.

    Returns:
        Name with surrounding whitespace stripped.

    Raises:
        ValidationError: If the name is empty, too long, reserved or
            contains a path separator.
    """
    if name is None or not name.strip():
        raise ValidationError('Name is required')

    stripped = name.strip()
    if len(stripped) > _NAME_MAX_LENGTH:
        raise ValidationError(
            f'Name must be at most {_NAME_MAX_LENGTH} characters',
        )
    if stripped in _RESERVED_NAMES:
        raise ValidationError(f'"{stripped}" is not a valid name')
    if _PATH_SEPARATORS.search(stripped):
        raise ValidationError('Name must not contain path separators')
    return stripped


def split_relative_path(relative_path: str | None) -> list[str]:
    """Split a client-side relative path into folder segments.

    Example: 'photos/2024//trip/' -> ['photos', '2024', 'trip']

    Args:
        relative_path: Path as sent by a drag-and-drop folder upload.
            Both '/' and '\\' separate segments.

    Returns:
        Non-empty segments; '.' segments are dropped.

    Raises:
        ValidationError: If a segment is '..' or otherwise invalid.
    """
    if not relative_path:
        return []
    segments = []
    for segment in _PATH_SEPARATORS.split(relative_path):
        if not segment.strip() or segment.strip() == '.':
            continue
        segments.append(validate_resource_name(segment))
    return segments


def split_name(name: str) -> tuple[str, str]:
    """Split a name into stem and extension.

    The extension starts at the last dot. A name whose only dot is the
    leading one (e.g., '.env') has no extension.

    Examples:
        'report.pdf' -> ('report', '.pdf')
        'archive.tar.gz' -> ('archive.tar', '.gz')
        'README' -> ('README', '')

    Args:
        name: File or folder name.

    Returns:
        Tuple of (stem, extension including the dot).
    """
    dot_index = name.rfind('.')
    if dot_index <= 0:
        return name, ''
    return name[:dot_index], name[dot_index:]


def build_locator(owner_id: int | None, folder_id: int | None, name: str) -> str:
    """Build the requested blob locator for a new file.

    Blobs of one folder share a container: {owner}/{folder}/{name}.
    Root files use 'root' as the folder part.

    Args:
        owner_id: Owner's user ID.
        folder_id: Target folder ID, None for root.
        name: Resolved file name.

    Returns:
        Locator to request from the blob store.
    """
    return f'{build_container(owner_id, folder_id)}/{name}'


def build_container(owner_id: int | None, folder_id: int | None) -> str:
    """Build the container prefix that holds a folder's blobs.

    Args:
        owner_id: Owner's user ID.
        folder_id: Folder ID, None for root.

    Returns:
        Container prefix (e.g., '12/34').
    """
    folder_part = _ROOT_CONTAINER if folder_id is None else str(folder_id)
    return f'{owner_id}/{folder_part}'


def extract_container(locator: str) -> str:
    """Extract the container prefix from a locator.

    Args:
        locator: Blob locator (e.g., '12/34/report.pdf').

    Returns:
        Container prefix (e.g., '12/34'); empty for top-level locators.
    """
    container, _, _ = locator.rpartition('/')
    return container
