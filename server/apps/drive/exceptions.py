"""Exceptions for drive app.

Not-found, forbidden and validation failures use Django's own
exception types (``ObjectDoesNotExist``, ``PermissionDenied``,
``ValidationError``); this module adds the drive-specific ones and the
mapping to user-visible statuses.
"""

from http import HTTPStatus
from typing import Final

from django.core.exceptions import (
    ObjectDoesNotExist,
    PermissionDenied,
    ValidationError,
)

_INTERNAL_ERROR_MESSAGE: Final = 'Internal server error'


class DriveError(Exception):
    """Base class for drive errors with a user-visible status."""

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR


class NameConflictError(DriveError):
    """Raised when a name is already taken in the target folder."""

    status_code = HTTPStatus.CONFLICT

    def __init__(self, name: str, folder_id: int | None) -> None:
        """Initialize NameConflictError.

        Args:
            name: Name that collides.
            folder_id: Target folder ID (None for root).
        """
        self.name = name
        self.folder_id = folder_id
        location = 'root' if folder_id is None else f'folder {folder_id}'
        super().__init__(f'"{name}" already exists in {location}')


class BlobNotFoundError(DriveError):
    """Raised when a locator does not resolve in the blob store."""

    status_code = HTTPStatus.NOT_FOUND

    def __init__(self, locator: str) -> None:
        """Initialize BlobNotFoundError.

        Args:
            locator: Missing blob locator.
        """
        self.locator = locator
        super().__init__(f'Blob not found: {locator}')


class StoreUnavailableError(DriveError):
    """Raised when the blob backend cannot be reached."""

    status_code = HTTPStatus.SERVICE_UNAVAILABLE


class WriteFailedError(DriveError):
    """Raised when the blob backend rejects a write."""

    status_code = HTTPStatus.BAD_GATEWAY


def error_status(exc: Exception) -> tuple[int, str]:
    """Map an exception to a user-visible status and short message.

    Unclassified exceptions map to a generic internal error so
    internal details never leak to clients.

    Args:
        exc: Exception raised by a drive operation.

    Returns:
        Tuple of (HTTP status code, message).
    """
    if isinstance(exc, DriveError):
        if exc.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
            return exc.status_code, exc.status_code.phrase
        return exc.status_code, str(exc)
    if isinstance(exc, ObjectDoesNotExist):
        return HTTPStatus.NOT_FOUND, 'Not found'
    if isinstance(exc, PermissionDenied):
        return HTTPStatus.FORBIDDEN, str(exc) or 'Forbidden'
    if isinstance(exc, ValidationError):
        return HTTPStatus.BAD_REQUEST, '; '.join(exc.messages)
    return HTTPStatus.INTERNAL_SERVER_ERROR, _INTERNAL_ERROR_MESSAGE
