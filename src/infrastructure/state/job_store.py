"""Persistence of migration jobs between runs."""

import json
import threading
from pathlib import Path
from typing import Optional, List, Dict, Any

from domain.models import JobStatus, MigrationJob
from shared.atomic import atomic_write_text
from shared.logging import get_logger
from shared.types import PathLike

logger = get_logger(__name__)

FINISHED_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class JsonJobStore:
    """
    Latest job plus history of finished jobs in one JSON document.

    Document layout::

        {"latest": {...job...} | null, "history": [{...job...}, ...]}

    History is newest first. A resumed job keeps its id, so finishing it
    again replaces its earlier history entry instead of adding a new one.
    """

    def __init__(self, path: Optional[PathLike] = None, history_limit: int = 50):
        self.path = Path(path or ".migration/jobs.json")
        self.history_limit = history_limit
        self._lock = threading.Lock()
        self._logger = get_logger(__name__)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"latest": None, "history": []}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self._logger.error(f"Ignoring unreadable job store {self.path}: {e}")
            return {"latest": None, "history": []}
        if not isinstance(data, dict):
            return {"latest": None, "history": []}
        data.setdefault("latest", None)
        data.setdefault("history", [])
        return data

    def save(self, job: MigrationJob) -> None:
        """Persist the job as latest, and in history once it has finished."""
        payload = job.to_dict()
        with self._lock:
            data = self._read()
            data["latest"] = payload
            if job.status in FINISHED_STATUSES:
                history = [h for h in data["history"] if h.get("jobId") != job.job_id]
                history.insert(0, payload)
                data["history"] = history[:self.history_limit]
            atomic_write_text(self.path, json.dumps(data, indent=2))
        self._logger.debug(f"Saved job {job.job_id} ({job.status.value}) to {self.path}")

    def load_latest(self) -> Optional[MigrationJob]:
        with self._lock:
            latest = self._read().get("latest")
        if not latest:
            return None
        try:
            return MigrationJob.from_dict(latest)
        except (KeyError, TypeError, ValueError) as e:
            self._logger.error(f"Ignoring malformed job record in {self.path}: {e}")
            return None

    def history(self, limit: int = 10) -> List[MigrationJob]:
        """Finished jobs, newest first."""
        with self._lock:
            entries = self._read().get("history", [])
        jobs = []
        for entry in entries[:limit]:
            try:
                jobs.append(MigrationJob.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                self._logger.warning(f"Skipping malformed history entry: {e}")
        return jobs
