"""
Tests for the job polling and cancellation endpoints.

JobService is replaced by an AsyncMock through FastAPI dependency overrides.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from backup_engine.api.deps import get_job_service
from backup_engine.api.main import create_app
from backup_engine.core.exceptions import JobNotFoundError

HEADERS = {"X-User-Id": "user-123"}


def _snapshot(job_id, status="processing", cancelled=False, **overrides) -> dict:
    now = datetime.now(timezone.utc)
    snapshot = {
        "id": job_id,
        "user_id": "user-123",
        "job_type": "snapshot_scrape",
        "status": status,
        "progress": 20,
        "message": "In progress (scraping)",
        "lifecycle_state": "cancelled" if cancelled else status,
        "cancelled": cancelled,
        "payload": {"live_metrics": {"phase": "scraping", "tweets_fetched": 40}},
        "result_backup_id": None,
        "error_message": None,
        "started_at": now,
        "completed_at": None,
        "created_at": now,
        "updated_at": now,
    }
    snapshot.update(overrides)
    return snapshot


@pytest.fixture
def mock_job_service():
    return AsyncMock()


@pytest.fixture
def client(mock_job_service):
    app = create_app()
    app.dependency_overrides[get_job_service] = lambda: mock_job_service
    return TestClient(app)


class TestGetJobStatus:
    def test_get_job_status(self, client, mock_job_service):
        # Arrange
        job_id = uuid4()
        mock_job_service.get_job_status.return_value = _snapshot(job_id)

        # Act
        response = client.get(f"/api/v1/jobs/{job_id}", headers=HEADERS)

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "processing"
        assert data["progress"] == 20
        assert data["payload"]["live_metrics"]["tweets_fetched"] == 40
        mock_job_service.get_job_status.assert_awaited_once_with(job_id, user_id="user-123")

    def test_get_job_not_found(self, client, mock_job_service):
        # Arrange
        job_id = uuid4()
        mock_job_service.get_job_status.side_effect = JobNotFoundError(job_id)

        # Act
        response = client.get(f"/api/v1/jobs/{job_id}", headers=HEADERS)

        # Assert
        assert response.status_code == 404
        assert "not found" in response.json()["detail"].lower()

    def test_missing_user_header_is_unauthorized(self, client, mock_job_service):
        response = client.get(f"/api/v1/jobs/{uuid4()}")
        assert response.status_code == 401
        mock_job_service.get_job_status.assert_not_awaited()

    def test_invalid_job_id(self, client):
        assert client.get("/api/v1/jobs/not-a-uuid", headers=HEADERS).status_code == 422


class TestListJobs:
    def test_list_jobs(self, client, mock_job_service):
        # Arrange
        mock_job_service.list_jobs.return_value = [_snapshot(uuid4(), status="completed")]

        # Act
        response = client.get("/api/v1/jobs?limit=5", headers=HEADERS)

        # Assert
        assert response.status_code == 200
        assert [job["status"] for job in response.json()] == ["completed"]
        mock_job_service.list_jobs.assert_awaited_once_with("user-123", limit=5)

    def test_limit_out_of_range(self, client):
        assert client.get("/api/v1/jobs?limit=51", headers=HEADERS).status_code == 422


class TestCancelJob:
    def test_cancel_active_job(self, client, mock_job_service):
        # Arrange
        job_id = uuid4()
        mock_job_service.get_job_status.return_value = _snapshot(job_id)
        mock_job_service.request_cancellation.return_value = _snapshot(
            job_id, lifecycle_state="cancelling", message="Cancellation requested. Cleaning up..."
        )

        # Act
        response = client.post(f"/api/v1/jobs/{job_id}/cancel", headers=HEADERS, json={"reason": "too slow"})

        # Assert
        assert response.status_code == 200
        assert response.json()["lifecycle_state"] == "cancelling"
        mock_job_service.request_cancellation.assert_awaited_once_with(job_id, reason="too slow")

    def test_cancel_without_body_uses_default_reason(self, client, mock_job_service):
        # Arrange
        job_id = uuid4()
        mock_job_service.get_job_status.return_value = _snapshot(job_id, status="queued")
        mock_job_service.request_cancellation.return_value = _snapshot(job_id)

        # Act
        response = client.post(f"/api/v1/jobs/{job_id}/cancel", headers=HEADERS)

        # Assert
        assert response.status_code == 200
        mock_job_service.request_cancellation.assert_awaited_once_with(
            job_id, reason="User requested cancellation."
        )

    @pytest.mark.parametrize(
        "status, cancelled, detail",
        [
            ("completed", False, "Job already completed"),
            ("failed", False, "Job already failed"),
            ("failed", True, "Job already cancelled"),
        ],
    )
    def test_cancel_terminal_job_conflicts(self, client, mock_job_service, status, cancelled, detail):
        # Arrange
        job_id = uuid4()
        mock_job_service.get_job_status.return_value = _snapshot(job_id, status=status, cancelled=cancelled)

        # Act
        response = client.post(f"/api/v1/jobs/{job_id}/cancel", headers=HEADERS)

        # Assert
        assert response.status_code == 409
        assert response.json()["detail"] == detail
        mock_job_service.request_cancellation.assert_not_awaited()

    def test_cancel_other_owners_job(self, client, mock_job_service):
        # Arrange
        job_id = uuid4()
        mock_job_service.get_job_status.side_effect = JobNotFoundError(job_id)

        # Act
        response = client.post(f"/api/v1/jobs/{job_id}/cancel", headers={"X-User-Id": "intruder"})

        # Assert
        assert response.status_code == 404
        mock_job_service.get_job_status.assert_awaited_once_with(job_id, user_id="intruder")
