"""
Unit tests for JsonJobStore.
"""

import json
from unittest.mock import Mock

import pytest

from domain.models import ErrorEntry, JobStatus, MigrationJob, utcnow
from infrastructure.state.job_store import JsonJobStore


@pytest.fixture
def store(tmp_path):
    return JsonJobStore(tmp_path / "jobs.json", history_limit=3)


def make_job(job_id, status=JobStatus.COMPLETED, **kwargs):
    return MigrationJob(
        job_id=job_id,
        status=status,
        destination_account="new",
        source_accounts=["old"],
        started_at=utcnow(),
        **kwargs
    )


class TestJsonJobStore:
    """Test JsonJobStore."""

    def test_empty_store(self, store):
        assert store.load_latest() is None
        assert store.history() == []

    def test_save_and_load_latest(self, store):
        job = make_job("job-1", status=JobStatus.IN_PROGRESS, total=10, copied=3)
        job.record_error(ErrorEntry("https://x/y.jpg", "HTTP 404", public_id="y"))

        store.save(job)
        loaded = store.load_latest()

        assert loaded.job_id == "job-1"
        assert loaded.status == JobStatus.IN_PROGRESS
        assert loaded.copied == 3
        assert loaded.recent_errors[0].message == "HTTP 404"

    def test_in_progress_not_in_history(self, store):
        store.save(make_job("job-1", status=JobStatus.IN_PROGRESS))

        assert store.history() == []

    def test_history_newest_first_and_limited(self, store):
        for i in range(5):
            store.save(make_job(f"job-{i}"))

        ids = [job.job_id for job in store.history(limit=10)]

        assert ids == ["job-4", "job-3", "job-2"]

    def test_resumed_job_replaces_history_entry(self, store):
        """Test finishing the same job twice keeps one history entry."""
        store.save(make_job("job-1", status=JobStatus.CANCELLED))
        store.save(make_job("job-1", status=JobStatus.COMPLETED, resumed=True))

        history = store.history()

        assert len(history) == 1
        assert history[0].status == JobStatus.COMPLETED
        assert history[0].resumed is True

    def test_document_layout(self, store):
        store.save(make_job("job-1"))

        data = json.loads(store.path.read_text())

        assert set(data) == {"latest", "history"}
        assert data["latest"]["jobId"] == "job-1"
        assert data["latest"]["status"] == "completed"

    def test_unreadable_file(self, store):
        store.path.write_text("{broken")
        store._logger = Mock()

        assert store.load_latest() is None
        store._logger.error.assert_called_once()

    def test_malformed_history_entry_skipped(self, store):
        good = make_job("job-1").to_dict()
        store.path.write_text(json.dumps({"latest": None, "history": [{"status": "x"}, good]}))
        store._logger = Mock()

        history = store.history()

        assert [job.job_id for job in history] == ["job-1"]
        store._logger.warning.assert_called_once()
