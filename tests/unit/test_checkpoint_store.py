"""
Unit tests for the file checkpoint store.
"""

import json
from unittest.mock import Mock, patch

import pytest

from domain.exceptions import CheckpointError
from domain.models import CheckpointRecord
from infrastructure.storage.checkpoint_store import FileCheckpointStore


@pytest.fixture
def store(tmp_path):
    return FileCheckpointStore(tmp_path / "state" / "checkpoint.json")


class TestLoadAndSave:
    """Test persistence and account scoping."""

    def test_load_missing_returns_none(self, store):
        assert store.load("new") is None

    def test_save_then_load(self, store):
        store.save(CheckpointRecord(destination_account="new", completed_ids={"a", "b"}))

        record = store.load("new")

        assert record is not None
        assert record.completed_ids == {"a", "b"}

    def test_wire_format(self, store):
        """Test the on-disk JSON layout."""
        store.save(CheckpointRecord(destination_account="new", completed_ids={"z", "a"}))

        data = json.loads(store.checkpoint_path.read_text())

        assert data["destination_account"] == "new"
        assert data["completed_ids"] == ["a", "z"]
        assert "last_updated" in data

    def test_stale_record_ignored(self, store):
        """Test a record for another account is treated as absent."""
        store.save(CheckpointRecord(destination_account="first", completed_ids={"a"}))
        store._logger = Mock()

        assert store.load("second") is None

        message = store._logger.warning.call_args[0][0]
        assert "first" in message
        assert "second" in message

    def test_corrupt_file_returns_none(self, store):
        store.checkpoint_path.parent.mkdir(parents=True)
        store.checkpoint_path.write_text("{not json")

        assert store.load("new") is None

    def test_failed_write_keeps_previous_file(self, store):
        """Test the old checkpoint survives a crash during replace."""
        store.save(CheckpointRecord(destination_account="new", completed_ids={"a"}))

        with patch('shared.atomic.os.replace', side_effect=OSError("disk full")):
            with pytest.raises(CheckpointError):
                store.save(CheckpointRecord(destination_account="new", completed_ids={"a", "b"}))

        assert store.load("new").completed_ids == {"a"}
        leftovers = [p for p in store.checkpoint_path.parent.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []


class TestWorkingSet:
    """Test the in-memory working set and flush rules."""

    def test_mark_without_working_set_raises(self, store):
        with pytest.raises(CheckpointError):
            store.mark_completed("a")

    def test_empty_working_set_never_written(self, store):
        store.working_set("new")

        assert store.flush() is False
        assert not store.exists()

    def test_flush_after_mark(self, store):
        store.working_set("new")
        store.mark_completed("a")

        assert store.flush() is True
        assert store.load("new").completed_ids == {"a"}

    def test_flush_skips_when_clean(self, store):
        store.working_set("new")
        store.mark_completed("a")
        store.flush()

        assert store.flush() is False

    def test_seeded_from_loaded_record(self, store):
        store.save(CheckpointRecord(destination_account="new", completed_ids={"a"}))

        store.working_set("new", store.load("new"))

        assert store.is_completed("a") is True
        assert store.completed_count == 1

    def test_loaded_record_for_other_account_not_used(self, store):
        other = CheckpointRecord(destination_account="other", completed_ids={"a"})

        store.working_set("new", other)

        assert store.is_completed("a") is False

    def test_clear(self, store):
        store.working_set("new")
        store.mark_completed("a")
        store.flush()

        store.clear()

        assert not store.exists()
        assert store.load("new") is None
