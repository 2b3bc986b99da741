"""
Unit tests for the HTTP job control surface.
"""

from unittest.mock import Mock

import pytest

from domain.exceptions import AlreadyInProgressError, CredentialError, JobStateError
from domain.models import DestinationCredentials, JobStatus, MigrationJob
from presentation.api import create_app

BODY = {"accountName": "new", "apiKey": "k", "apiSecret": "s"}


@pytest.fixture
def controller():
    controller = Mock()
    controller.start.return_value = MigrationJob(job_id="job-1", status=JobStatus.IN_PROGRESS)
    controller.resume.return_value = MigrationJob(job_id="job-1", status=JobStatus.IN_PROGRESS)
    controller.status.return_value = MigrationJob(
        job_id="job-1", status=JobStatus.IN_PROGRESS, total=10, copied=4, skipped=1
    )
    return controller


@pytest.fixture
def client(controller):
    app = create_app(controller)
    app.testing = True
    return app.test_client()


class TestStartAndValidate:
    """Test credential-taking endpoints."""

    def test_validate(self, client, controller):
        controller.validate.return_value = True

        response = client.post("/admin/migration/validate", json=BODY)

        assert response.status_code == 200
        assert response.get_json() == {"valid": True}
        controller.validate.assert_called_once_with(DestinationCredentials("new", "k", "s"))

    def test_start_accepted(self, client, controller):
        response = client.post("/admin/migration/start", json=BODY)

        assert response.get_json() == {"accepted": True, "jobId": "job-1"}
        controller.start.assert_called_once_with(
            DestinationCredentials("new", "k", "s"), background=True
        )

    def test_start_while_running(self, client, controller):
        controller.start.side_effect = AlreadyInProgressError("Migration job-0 is already in progress")

        response = client.post("/admin/migration/start", json=BODY)

        assert response.status_code == 409
        assert response.get_json()["accepted"] is False

    def test_start_bad_credentials(self, client, controller):
        controller.start.side_effect = CredentialError("Destination credentials incomplete")

        response = client.post("/admin/migration/start", json={})

        assert response.status_code == 400
        assert "incomplete" in response.get_json()["reason"]


class TestJobControl:
    """Test cancel, continue and read endpoints."""

    def test_cancel(self, client, controller):
        controller.cancel.return_value = True

        assert client.post("/admin/migration/cancel").get_json() == {"accepted": True}

    def test_cancel_idle(self, client, controller):
        controller.cancel.return_value = False

        body = client.post("/admin/migration/cancel").get_json()

        assert body["accepted"] is False
        assert body["reason"]

    def test_continue(self, client, controller):
        response = client.post("/admin/migration/continue")

        assert response.get_json() == {"accepted": True, "jobId": "job-1"}
        controller.resume.assert_called_once_with(background=True)

    def test_continue_nothing_to_resume(self, client, controller):
        controller.resume.side_effect = JobStateError("No failed or cancelled migration to continue")

        response = client.post("/admin/migration/continue")

        assert response.status_code == 409

    def test_progress(self, client):
        body = client.get("/admin/migration/progress").get_json()

        assert body["jobId"] == "job-1"
        assert body["status"] == "in_progress"
        assert body["percentage"] == 50
        assert body["recentErrors"] == []

    def test_progress_idle(self, client, controller):
        controller.status.return_value = MigrationJob.idle()

        body = client.get("/admin/migration/progress").get_json()

        assert body["jobId"] is None
        assert body["status"] == "idle"

    def test_config(self, client, controller):
        controller.config_view.return_value = {
            "activeAccountMasked": None,
            "retiredAccounts": [],
            "pendingCount": 3,
        }

        assert client.get("/admin/migration/config").get_json()["pendingCount"] == 3

    def test_history(self, client, controller):
        controller.history.return_value = [MigrationJob(job_id="job-0", status=JobStatus.COMPLETED)]

        body = client.get("/admin/migration/history?limit=5").get_json()

        controller.history.assert_called_once_with(5)
        assert body["jobs"][0]["jobId"] == "job-0"

    def test_health(self, client):
        assert client.get("/health").get_json() == {"status": "healthy"}
