"""Tests for drive error types and status mapping."""

import pytest
from django.core.exceptions import PermissionDenied, ValidationError

from server.apps.drive.exceptions import (
    BlobNotFoundError,
    NameConflictError,
    StoreUnavailableError,
    WriteFailedError,
    error_status,
)
from server.apps.drive.models import Folder


@pytest.mark.parametrize(('exc', 'status', 'message'), [
    (Folder.DoesNotExist('gone'), 404, 'Not found'),
    (BlobNotFoundError('1/root/a.txt'), 404, 'Blob not found: 1/root/a.txt'),
    (PermissionDenied('Not allowed to edit this folder'), 403, 'Not allowed to edit this folder'),
    (NameConflictError('a.txt', 7), 409, '"a.txt" already exists in folder 7'),
    (NameConflictError('a.txt', None), 409, '"a.txt" already exists in root'),
    (ValidationError('Name is required'), 400, 'Name is required'),
    (StoreUnavailableError('object blob store is unavailable'), 503, 'Service Unavailable'),
    (WriteFailedError('Failed to write blob: secret/key'), 502, 'Bad Gateway'),
    (RuntimeError('connection string with password'), 500, 'Internal server error'),
])
def test_error_status(exc, status, message):
    """Test exceptions map to statuses without leaking internals."""
    assert error_status(exc) == (status, message)
