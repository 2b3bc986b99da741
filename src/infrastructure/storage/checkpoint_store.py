"""Checkpoint persistence for resumable migrations."""

import json
import threading
from pathlib import Path
from typing import Optional, Dict, Any

from domain.exceptions import CheckpointError
from domain.models import CheckpointRecord, utcnow
from shared.atomic import atomic_write_text
from shared.logging import get_logger
from shared.types import PathLike

logger = get_logger(__name__)


class BaseCheckpointStore:
    """
    Working-set bookkeeping shared by every checkpoint backend.

    Subclasses implement ``_read`` / ``_write`` / ``_delete`` against their
    medium; the account scoping and flush rules live here.
    """

    def __init__(self):
        self._logger = get_logger(self.__class__.__module__)
        self._lock = threading.Lock()
        self._working: Optional[CheckpointRecord] = None
        self._dirty = False

    # Medium access

    def _read(self) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def _write(self, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _delete(self) -> None:
        raise NotImplementedError

    def describe(self) -> str:
        return self.__class__.__name__

    # Public API

    def load(self, destination_account: str) -> Optional[CheckpointRecord]:
        """
        Load the checkpoint written for a destination account.

        Args:
            destination_account: Account the caller is about to migrate to

        Returns:
            CheckpointRecord, or None when absent, unreadable, or written for
            another account
        """
        try:
            data = self._read()
        except CheckpointError as e:
            self._logger.error(f"Failed to read checkpoint from {self.describe()}: {e}")
            return None

        if data is None:
            self._logger.info(f"No checkpoint found at {self.describe()}")
            return None

        try:
            record = CheckpointRecord.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            self._logger.error(f"Ignoring malformed checkpoint at {self.describe()}: {e}")
            return None

        if record.destination_account != destination_account:
            self._logger.warning(
                f"Ignoring stale checkpoint: written for '{record.destination_account}', "
                f"current destination is '{destination_account}'. Starting fresh."
            )
            return None

        self._logger.info(
            f"Loaded checkpoint for '{destination_account}': "
            f"{len(record.completed_ids)} completed ids (updated {record.last_updated.isoformat()})"
        )
        return record

    def save(self, record: CheckpointRecord) -> None:
        """
        Atomically overwrite the persisted checkpoint.

        Raises:
            CheckpointError: If the medium rejects the write
        """
        record.last_updated = utcnow()
        self._write(record.to_dict())
        self._logger.debug(
            f"Saved checkpoint for '{record.destination_account}' "
            f"({len(record.completed_ids)} ids) to {self.describe()}"
        )

    def working_set(
        self,
        destination_account: str,
        loaded: Optional[CheckpointRecord] = None
    ) -> CheckpointRecord:
        """Start tracking ids for a destination, seeded from a loaded record."""
        with self._lock:
            if loaded is not None and loaded.destination_account == destination_account:
                self._working = CheckpointRecord(
                    destination_account=destination_account,
                    completed_ids=set(loaded.completed_ids),
                    last_updated=loaded.last_updated,
                )
            else:
                self._working = CheckpointRecord(destination_account=destination_account)
            self._dirty = False
            return self._working

    def mark_completed(self, public_id: str) -> None:
        """Add an id to the in-memory working set; does not flush."""
        with self._lock:
            if self._working is None:
                raise CheckpointError("No working checkpoint; call working_set() first")
            if public_id not in self._working.completed_ids:
                self._working.completed_ids.add(public_id)
                self._dirty = True

    def is_completed(self, public_id: str) -> bool:
        with self._lock:
            return self._working is not None and public_id in self._working.completed_ids

    @property
    def completed_count(self) -> int:
        with self._lock:
            return len(self._working.completed_ids) if self._working else 0

    def flush(self) -> bool:
        """
        Persist the working set.

        Empty working sets are never written, so a checkpoint only comes into
        existence after the first successful transfer.

        Returns:
            True if something was written
        """
        with self._lock:
            if self._working is None or not self._working.completed_ids:
                return False
            if not self._dirty:
                return False
            snapshot = CheckpointRecord(
                destination_account=self._working.destination_account,
                completed_ids=set(self._working.completed_ids),
            )
            self._dirty = False

        try:
            self.save(snapshot)
        except CheckpointError:
            with self._lock:
                self._dirty = True
            raise
        return True

    def clear(self) -> None:
        """Remove the persisted checkpoint and forget the working set."""
        self._delete()
        with self._lock:
            self._working = None
            self._dirty = False
        self._logger.info(f"Removed checkpoint at {self.describe()}")


class FileCheckpointStore(BaseCheckpointStore):
    """Checkpoint kept as a flat JSON file, replaced atomically on save."""

    def __init__(self, checkpoint_path: Optional[PathLike] = None):
        """
        Args:
            checkpoint_path: Path to checkpoint file (default: ./.migration/checkpoint.json)
        """
        super().__init__()
        self.checkpoint_path = Path(checkpoint_path or ".migration/checkpoint.json")

    def describe(self) -> str:
        return str(self.checkpoint_path)

    def _read(self) -> Optional[Dict[str, Any]]:
        if not self.checkpoint_path.exists():
            return None
        try:
            with open(self.checkpoint_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CheckpointError(f"Cannot read {self.checkpoint_path}: {e}") from e

    def _write(self, payload: Dict[str, Any]) -> None:
        try:
            atomic_write_text(self.checkpoint_path, json.dumps(payload, indent=2))
        except OSError as e:
            raise CheckpointError(f"Cannot write {self.checkpoint_path}: {e}") from e

    def _delete(self) -> None:
        if self.checkpoint_path.exists():
            try:
                self.checkpoint_path.unlink()
            except OSError as e:
                raise CheckpointError(f"Cannot remove {self.checkpoint_path}: {e}") from e

    def exists(self) -> bool:
        """Check if a checkpoint file is present."""
        return self.checkpoint_path.exists()
