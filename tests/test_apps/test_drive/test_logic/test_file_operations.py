"""Tests for file operations business logic."""

from unittest.mock import patch

import pytest
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import DatabaseError

from server.apps.drive.exceptions import NameConflictError, StoreUnavailableError
from server.apps.drive.infrastructure.storage import LocalBlobStorage
from server.apps.drive.logic.file_operations import (
    copy_file,
    move_file,
    open_file,
    rename_file,
    upload_files,
)
from server.apps.drive.logic.permission_operations import assign_permission
from server.apps.drive.models import (
    File,
    Folder,
    Permission,
    ResourceType,
    StorageBackend,
)


def _upload(name, content=b'content'):
    return SimpleUploadedFile(name, content)


@pytest.mark.django_db
class TestUploadFiles:
    """Tests for upload_files function."""

    def test_upload_to_root(self, user, sample_upload, local_store):
        """Test a single upload creates a row and a blob."""
        (created,) = upload_files(user, [sample_upload])

        assert created.name == 'report.pdf'
        assert created.original_name == 'report.pdf'
        assert created.folder is None
        assert created.mime_type == 'application/pdf'
        assert created.size == len(b'%PDF-1.4 test content')
        assert created.storage_backend == StorageBackend.LOCAL
        assert created.locator == f'{user.id}/root/report.pdf'
        assert local_store.exists(created.locator)

    def test_duplicate_names_in_batch(self, user):
        """Test same-named files in one batch are de-duplicated."""
        created = upload_files(user, [
            _upload('report.pdf'),
            _upload('report.pdf'),
            _upload('report.pdf'),
        ])

        assert [file.name for file in created] == [
            'report.pdf',
            'report (1).pdf',
            'report (2).pdf',
        ]
        assert len({file.locator for file in created}) == 3

    def test_relative_paths_build_folders(self, user, make_folder):
        """Test folder uploads recreate their structure once."""
        target = make_folder('Target')

        created = upload_files(
            user,
            [_upload('a.txt'), _upload('b.txt'), _upload('c.txt')],
            folder_id=target.id,
            relative_paths=['trip/a.txt', 'trip/day1/b.txt', None],
            folder_paths=['trip/empty'],
        )

        trip = Folder.objects.get(name='trip', parent=target)
        day1 = Folder.objects.get(name='day1', parent=trip)
        assert Folder.objects.filter(name='empty', parent=trip).exists()
        assert [file.folder_id for file in created] == [
            trip.id,
            day1.id,
            target.id,
        ]

    def test_inherits_folder_grants(self, user, other_user, make_folder):
        """Test uploaded files pick up the target folder's grants."""
        target = make_folder('Shared')
        assign_permission(
            other_user.id,
            target.id,
            ResourceType.FOLDER,
            can_read=True,
            can_download=True,
            actor=user,
        )

        (created,) = upload_files(
            user,
            [_upload('a.txt')],
            folder_id=target.id,
            relative_paths=['sub/a.txt'],
        )

        assert Permission.objects.filter(
            user=other_user,
            resource_id=created.id,
            resource_type=ResourceType.FILE,
            can_download=True,
        ).exists()
        assert Permission.objects.filter(
            user=other_user,
            resource_id=created.folder_id,
            resource_type=ResourceType.FOLDER,
        ).exists()

    def test_object_backend(self, user, settings, mock_s3):
        """Test uploads go to the object store when configured."""
        settings.DRIVE_UPLOAD_BACKEND = StorageBackend.OBJECT

        (created,) = upload_files(user, [_upload('a.txt', b'remote')])

        assert created.storage_backend == StorageBackend.OBJECT
        body = mock_s3.Object('drive', created.locator).get()['Body'].read()
        assert body == b'remote'

    def test_rollback_on_db_failure(self, user, blob_storages):
        """Test written blobs are removed when the DB transaction fails."""
        with patch.object(
            File.objects,
            'create',
            side_effect=DatabaseError('insert failed'),
        ):
            with pytest.raises(DatabaseError):
                upload_files(user, [_upload('a.txt'), _upload('b.txt')])

        assert not File.all_objects.exists()
        assert not any(path.is_file() for path in blob_storages.rglob('*'))

    def test_rollback_keeps_no_folders(self, user):
        """Test folders created for a failed batch are rolled back."""
        with patch.object(
            File.objects,
            'create',
            side_effect=DatabaseError('insert failed'),
        ):
            with pytest.raises(DatabaseError):
                upload_files(user, [_upload('a.txt')], relative_paths=['x/a.txt'])

        assert not Folder.all_objects.exists()

    def test_store_failure_rolls_back_earlier_blobs(self, user, blob_storages):
        """Test a failing write removes blobs written before it."""
        original_save = LocalBlobStorage._save
        calls = []

        def flaky_save(storage, name, content):
            calls.append(name)
            if len(calls) > 1:
                raise StoreUnavailableError('local blob store is unavailable')
            return original_save(storage, name, content)

        with patch.object(LocalBlobStorage, '_save', flaky_save):
            with pytest.raises(StoreUnavailableError):
                upload_files(user, [_upload('a.txt'), _upload('b.txt')])

        assert not any(path.is_file() for path in blob_storages.rglob('*'))

    def test_nothing_uploaded(self, user):
        """Test an empty batch is rejected."""
        with pytest.raises(ValidationError):
            upload_files(user, [])

    def test_invalid_path_writes_nothing(self, user, blob_storages):
        """Test paths are validated before any blob is written."""
        with pytest.raises(ValidationError):
            upload_files(user, [_upload('a.txt')], relative_paths=['../a.txt'])

        assert not blob_storages.exists() or not any(blob_storages.rglob('*'))

    def test_trashed_target(self, user, make_folder):
        """Test uploading into a trashed folder fails."""
        folder = make_folder('Gone')
        Folder.all_objects.filter(id=folder.id).update(is_deleted=True)

        with pytest.raises(Folder.DoesNotExist):
            upload_files(user, [_upload('a.txt')], folder_id=folder.id)


@pytest.mark.django_db
class TestSingleFileOperations:
    """Tests for open, rename, move and copy."""

    def test_open_file(self, make_file):
        """Test content is streamed from the recorded backend."""
        file_instance = make_file('a.txt', content=b'hello')

        opened, stream = open_file(file_instance.id)
        with stream:
            assert stream.read() == b'hello'
        assert opened == file_instance

    def test_rename_file(self, make_file):
        """Test renaming keeps the blob locator."""
        file_instance = make_file('a.txt')

        renamed = rename_file(file_instance.id, 'b.txt')

        assert renamed.name == 'b.txt'
        assert renamed.locator == file_instance.locator

    def test_rename_conflict(self, make_file):
        """Test renaming onto a live sibling conflicts."""
        make_file('taken.txt')
        file_instance = make_file('a.txt')

        with pytest.raises(NameConflictError):
            rename_file(file_instance.id, 'taken.txt')

    def test_move_file(self, make_folder, make_file):
        """Test moving resolves names in the destination."""
        target = make_folder('Target')
        make_file('a.txt', folder=target)
        file_instance = make_file('a.txt')

        moved = move_file(file_instance.id, target.id)

        assert moved.folder_id == target.id
        assert moved.name == 'a (1).txt'

    def test_move_file_inherits_grants(self, user, other_user, make_folder, make_file):
        """Test a moved file picks up the destination's grants."""
        target = make_folder('Shared')
        assign_permission(
            other_user.id,
            target.id,
            ResourceType.FOLDER,
            can_read=True,
            can_download=False,
            actor=user,
        )
        file_instance = make_file('a.txt')

        move_file(file_instance.id, target.id)

        assert Permission.objects.filter(
            user=other_user,
            resource_id=file_instance.id,
            resource_type=ResourceType.FILE,
        ).exists()

    def test_copy_file(self, other_user, make_file, local_store):
        """Test a copy gets its own blob and row."""
        source = make_file('a.txt', content=b'copy me')

        copied = copy_file(source.id, None, other_user)

        assert copied.id != source.id
        assert copied.created_by == other_user
        assert copied.locator != source.locator
        with local_store.get_stream(copied.locator) as stream:
            assert stream.read() == b'copy me'

    def test_copy_into_same_folder(self, user, make_file):
        """Test copying next to the source de-duplicates the name."""
        source = make_file('a.txt')

        assert copy_file(source.id, None, user).name == 'a (1).txt'
