"""
Tests for BackupService.

Backups, media records, storage accounting and deletion with shared
objects, against in-memory SQLite and the in-memory blob store.
"""

import uuid

import pytest

from backup_engine.application.services.backup_service import BackupService
from backup_engine.core.exceptions import BackupNotFoundError, BackupOwnershipError


@pytest.fixture
def service(test_async_db) -> BackupService:
    return BackupService(test_async_db)


async def _media(service: BackupService, user_id: str, backup_id: uuid.UUID, path: str, size: int) -> bool:
    return await service.record_media(
        {
            "user_id": user_id,
            "backup_id": backup_id,
            "file_path": path,
            "file_name": path.rsplit("/", 1)[-1],
            "file_size": size,
            "mime_type": "image/jpeg",
            "media_type": "tweets_media",
        }
    )


@pytest.fixture
async def shared_backups(service, blob_store, user_id):
    """Two backups sharing one media object; the first also has an archive."""
    archive = f"{user_id}/archives/first.zip"
    first = await service.create_backup(
        user_id, "full_archive", "archive", {"archive_file_path": archive, "uploaded_file_size": 1000}
    )
    second = await service.create_backup(user_id, "snapshot", "scrape", {})

    await _media(service, user_id, first.id, f"{user_id}/tweets_media/a.jpg", 50)
    await _media(service, user_id, first.id, f"{user_id}/tweets_media/shared.jpg", 100)
    await _media(service, user_id, second.id, f"{user_id}/tweets_media/shared.jpg", 100)

    for path in (archive, f"{user_id}/tweets_media/a.jpg", f"{user_id}/tweets_media/shared.jpg"):
        await blob_store.put(path, b"x", "application/octet-stream")
    return first, second


class TestBackups:
    async def test_get_missing_backup_raises(self, service):
        with pytest.raises(BackupNotFoundError):
            await service.get_backup(uuid.uuid4())

    async def test_update_backup_data_writes_archive_column(self, service, user_id):
        # Arrange
        backup = await service.create_backup(user_id, "full_archive", "archive", {"stats": {}})

        # Act
        await service.update_backup_data(backup.id, {"stats": {"tweets": 2}}, archive_file_path="u/archives/b.zip")

        # Assert
        stored = await service.get_backup(backup.id)
        assert stored.data == {"stats": {"tweets": 2}}
        assert await service.get_archive_file_path(backup.id) == "u/archives/b.zip"

    async def test_archive_path_prefers_data(self, service, user_id):
        backup = await service.create_backup(user_id, "full_archive", "archive", {})
        data = {"archive_file_path": "  u/archives/from-data.zip "}
        assert await service.get_archive_file_path(backup.id, data) == "u/archives/from-data.zip"

    async def test_patch_backup_data_overwrites_top_level_keys(self, service, user_id):
        # Arrange
        backup = await service.create_backup(user_id, "snapshot", "scrape", {"profile": {"a": 1}, "tweets": []})

        # Act
        data = await service.patch_backup_data(backup.id, {"profile": {"b": 2}})

        # Assert
        assert data == {"profile": {"b": 2}, "tweets": []}
        assert (await service.get_backup(backup.id)).data == data

    async def test_upsert_profile_does_not_overwrite_with_none(self, service, user_id):
        # Arrange
        first = await service.upsert_profile(user_id, "twitter", "alice", display_name="Alice", added_via="archive")

        # Act
        second = await service.upsert_profile(user_id, "twitter", "alice", display_name=None, platform_user_id="42")

        # Assert
        assert second.id == first.id
        assert second.display_name == "Alice"
        assert second.platform_user_id == "42"


class TestMediaRecords:
    async def test_record_media_is_idempotent(self, service, user_id):
        # Arrange
        backup = await service.create_backup(user_id, "snapshot", "scrape", {})

        # Act
        inserted = await _media(service, user_id, backup.id, f"{user_id}/scraped_media/p.jpg", 10)
        repeated = await _media(service, user_id, backup.id, f"{user_id}/scraped_media/p.jpg", 10)

        # Assert
        assert inserted is True
        assert repeated is False
        assert await service.media_exists(backup.id, f"{user_id}/scraped_media/p.jpg")
        assert len(await service.list_media(backup.id)) == 1


class TestStorage:
    async def test_recalculate_storage_counts_media_and_archive(self, service, user_id, shared_backups):
        # Arrange
        first, _ = shared_backups

        # Act
        breakdown = await service.recalculate_storage(first.id)

        # Assert
        assert breakdown.media_bytes == 150
        assert breakdown.media_files == 2
        assert breakdown.archive_bytes == 1000
        data = (await service.get_backup(first.id)).data
        assert data["stats"]["media_files"] == 2
        assert data["storage"]["total_bytes"] == breakdown.total_bytes
        assert data["file_size"] == breakdown.total_bytes

    async def test_recalculate_storage_for_missing_backup_returns_none(self, service):
        assert await service.recalculate_storage(uuid.uuid4()) is None

    async def test_user_summary_counts_shared_objects_once(self, service, user_id, shared_backups):
        # Act
        summary = await service.user_storage_summary(user_id)

        # Assert
        assert summary.backups_count == 2
        assert summary.unique_file_count == 3
        assert summary.media_bytes == 150
        assert summary.archive_bytes == 1000


class TestDeleteBackup:
    async def test_shared_objects_survive_deletion(self, service, blob_store, user_id, shared_backups):
        # Arrange
        first, second = shared_backups

        # Act
        result = await service.delete_backup(first.id, blob_store, expected_user_id=user_id)

        # Assert
        assert result.backup_deleted is True
        assert result.media_files_checked == 2
        assert result.candidate_paths_checked == 3
        assert result.storage_files_deleted == 2
        assert result.storage_files_delete_failed == 0
        assert set(blob_store.objects) == {f"{user_id}/tweets_media/shared.jpg"}
        assert len(await service.list_media(second.id)) == 1
        with pytest.raises(BackupNotFoundError):
            await service.get_backup(first.id)

    async def test_missing_blob_is_counted_as_failure(self, service, blob_store, user_id, shared_backups):
        # Arrange
        first, _ = shared_backups
        await blob_store.delete([f"{user_id}/tweets_media/a.jpg"])

        # Act
        result = await service.delete_backup(first.id, blob_store)

        # Assert
        assert result.storage_files_deleted == 1
        assert result.storage_files_delete_failed == 1

    async def test_ownership_mismatch_raises(self, service, blob_store, shared_backups):
        # Arrange
        first, _ = shared_backups

        # Act / Assert
        with pytest.raises(BackupOwnershipError):
            await service.delete_backup(first.id, blob_store, expected_user_id="intruder")
        assert (await service.get_backup(first.id)).id == first.id

    async def test_missing_backup_reports_not_deleted(self, service, blob_store):
        result = await service.delete_backup(uuid.uuid4(), blob_store)
        assert result.backup_deleted is False
