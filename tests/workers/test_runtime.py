"""
Tests for the worker runtime.

Each run gets its own session from the SQLite session factory; setup and
assertions use separate, closed sessions so only one transaction is open
on the shared connection at a time.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from backup_engine.application.services.job_service import JobService
from backup_engine.boundary.db.models.job_model import JobStatus, JobType
from backup_engine.boundary.scraping.provider import ScrapeProvider
from backup_engine.models.job import JobOutcome
from backup_engine.workers.runtime import (
    INVALID_TARGETS_MESSAGE,
    MISSING_INPUT_MESSAGE,
    MISSING_USERNAME_MESSAGE,
    run_archive_upload,
    run_snapshot_scrape,
)

STAGED_PATH = "staging/user-123/upload.zip"


async def _create_job(session_factory, user_id, job_type, payload):
    async with session_factory() as session:
        return await JobService(session).create_job(user_id, job_type, payload)


async def _load_job(session_factory, job_id):
    async with session_factory() as session:
        return await JobService(session).get_job(job_id)


@pytest.fixture
def provider():
    return MagicMock(spec=ScrapeProvider)


@pytest.fixture
def fetcher():
    return AsyncMock()


class TestRunArchiveUpload:
    async def test_completes_staged_archive(self, session_factory, blob_store, build_zip, sample_export_files, user_id):
        # Arrange
        with open(build_zip(sample_export_files), "rb") as handle:
            await blob_store.put(STAGED_PATH, handle.read(), "application/zip")
        job_id = await _create_job(
            session_factory, user_id, JobType.ARCHIVE_UPLOAD, {"input_storage_path": STAGED_PATH, "username": "alice"}
        )

        # Act
        result = await run_archive_upload(job_id, session_factory=session_factory, blob_store=blob_store)

        # Assert
        assert result.outcome == JobOutcome.COMPLETED
        job = await _load_job(session_factory, job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.result_backup_id == result.backup_id

    async def test_retry_completes_after_terminal_write_failure(
        self, session_factory, blob_store, build_zip, sample_export_files, user_id, monkeypatch
    ):
        # Arrange
        with open(build_zip(sample_export_files), "rb") as handle:
            await blob_store.put(STAGED_PATH, handle.read(), "application/zip")
        job_id = await _create_job(
            session_factory, user_id, JobType.ARCHIVE_UPLOAD, {"input_storage_path": STAGED_PATH, "username": "alice"}
        )
        original_complete = JobService.complete_with_result
        failures = [OperationalError("UPDATE backup_jobs", {}, Exception("connection lost"))]

        async def flaky_complete(self, *args, **kwargs):
            if failures:
                raise failures.pop()
            return await original_complete(self, *args, **kwargs)

        monkeypatch.setattr(JobService, "complete_with_result", flaky_complete)

        # Act
        with pytest.raises(OperationalError):
            await run_archive_upload(job_id, session_factory=session_factory, blob_store=blob_store)
        result = await run_archive_upload(job_id, session_factory=session_factory, blob_store=blob_store)

        # Assert
        assert result.outcome == JobOutcome.COMPLETED
        job = await _load_job(session_factory, job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.result_backup_id == result.backup_id
        assert job.payload["completed_backup_id"] == str(result.backup_id)
        assert f"{user_id}/archives/{result.backup_id}.zip" in blob_store.objects

    async def test_missing_input_fails_job(self, session_factory, blob_store, user_id):
        # Arrange
        job_id = await _create_job(session_factory, user_id, JobType.ARCHIVE_UPLOAD, {"username": "alice"})

        # Act
        result = await run_archive_upload(job_id, session_factory=session_factory, blob_store=blob_store)

        # Assert
        assert result.outcome == JobOutcome.FAILED
        job = await _load_job(session_factory, job_id)
        assert job.status == JobStatus.FAILED
        assert job.message == MISSING_INPUT_MESSAGE
        assert job.payload["lifecycle_state"] == "failed"

    async def test_terminal_job_is_skipped(self, session_factory, blob_store, user_id):
        # Arrange
        job_id = await _create_job(session_factory, user_id, JobType.ARCHIVE_UPLOAD, {"input_storage_path": STAGED_PATH})
        async with session_factory() as session:
            await JobService(session).fail_with(job_id, "earlier failure")

        # Act
        result = await run_archive_upload(job_id, session_factory=session_factory, blob_store=blob_store)

        # Assert
        assert result is None
        assert blob_store.put_calls == []
        job = await _load_job(session_factory, job_id)
        assert job.error_message == "earlier failure"


class TestRunSnapshotScrape:
    @pytest.mark.parametrize("username", [None, "", "  @ "])
    async def test_missing_username_fails_job(self, session_factory, blob_store, provider, fetcher, user_id, username):
        # Arrange
        job_id = await _create_job(session_factory, user_id, JobType.SNAPSHOT_SCRAPE, {"username": username})

        # Act
        result = await run_snapshot_scrape(
            job_id, session_factory=session_factory, blob_store=blob_store, provider=provider, fetcher=fetcher
        )

        # Assert
        assert result.outcome == JobOutcome.FAILED
        assert result.error_message == MISSING_USERNAME_MESSAGE
        provider.run_scrape.assert_not_called()
        fetcher.aclose.assert_not_awaited()

    async def test_terminal_job_is_skipped(self, session_factory, blob_store, provider, fetcher, user_id):
        # Arrange
        job_id = await _create_job(session_factory, user_id, JobType.SNAPSHOT_SCRAPE, {"username": "alice"})
        async with session_factory() as session:
            await JobService(session).mark_cancelled(job_id)

        # Act
        result = await run_snapshot_scrape(
            job_id, session_factory=session_factory, blob_store=blob_store, provider=provider, fetcher=fetcher
        )

        # Assert
        assert result is None
        provider.run_scrape.assert_not_called()

    @pytest.mark.parametrize("targets", ["everything", ["tweets"], {"tweets": "sometimes"}])
    async def test_invalid_targets_fail_job(self, session_factory, blob_store, provider, fetcher, user_id, targets):
        # Arrange
        job_id = await _create_job(
            session_factory, user_id, JobType.SNAPSHOT_SCRAPE, {"username": "alice", "targets": targets}
        )

        # Act
        result = await run_snapshot_scrape(
            job_id, session_factory=session_factory, blob_store=blob_store, provider=provider, fetcher=fetcher
        )

        # Assert
        assert result.outcome == JobOutcome.FAILED
        assert result.error_message == INVALID_TARGETS_MESSAGE
        provider.run_scrape.assert_not_called()
        job = await _load_job(session_factory, job_id)
        assert job.status == JobStatus.FAILED
        assert job.payload["lifecycle_state"] == "failed"
