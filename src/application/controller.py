"""Migration job controller."""

import threading
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from domain.asset_url import decompose
from domain.exceptions import (
    AlreadyInProgressError,
    CheckpointError,
    ConfigurationError,
    CredentialError,
    DecomposeError,
    DomainException,
    JobStateError,
)
from domain.models import (
    DEFAULT_ERROR_CAPACITY,
    AssetRef,
    DestinationCredentials,
    ErrorEntry,
    JobStatus,
    MigrationJob,
    ResolveMode,
    TransferStatus,
    utcnow,
)
from domain.protocols import (
    IAssetLocator,
    ICheckpointStore,
    IJobStore,
    ILogger,
    IProviderClient,
)
from application.pipeline import TransferPipeline
from application.resolver import ExistenceResolver
from shared.logging import LoggerAdapter, get_logger
from shared.metrics import TransferMetrics

Item = Union[AssetRef, str]


@dataclass
class PlannedAction:
    """What a run would do with one candidate."""

    source_url: str
    action: str  # 'transfer', 'skip', 'invalid'
    public_id: Optional[str] = None
    reason: Optional[str] = None


class MigrationController:
    """
    Owns the migration job and runs the processing loop.

    One job at a time. The loop is sequential; ``status()`` and ``cancel()``
    are safe to call from other threads while it runs.
    """

    def __init__(
        self,
        provider: IProviderClient,
        checkpoint: ICheckpointStore,
        job_store: IJobStore,
        locator: Optional[IAssetLocator] = None,
        registry=None,
        source_accounts: Sequence[str] = (),
        metrics: Optional[TransferMetrics] = None,
        logger: Optional[ILogger] = None,
        flush_every: int = 10,
        progress_every: int = 50,
        error_capacity: int = DEFAULT_ERROR_CAPACITY,
        recover_interrupted: bool = False
    ):
        """
        Args:
            provider: Provider client (download, upload, exists, ping)
            checkpoint: Checkpoint store
            job_store: Job persistence
            locator: Source of candidate URLs; required unless items are passed to start()
            registry: Optional AccountRegistry for source accounts, pending
                destination and finalization
            source_accounts: Source accounts when no registry is given
            metrics: Shared metrics collector
            logger: Logger
            flush_every: Checkpoint flush interval in copied items
            progress_every: Progress log interval in processed items
            error_capacity: Number of recent errors kept on the job
            recover_interrupted: Mark a persisted in-progress job as failed.
                Only for processes that own the job; a read-only view must
                leave a job running elsewhere untouched.
        """
        self._provider = provider
        self._checkpoint = checkpoint
        self._job_store = job_store
        self._locator = locator
        self._registry = registry
        self._default_sources = list(source_accounts)
        self.metrics = metrics or TransferMetrics()
        self._logger = logger or LoggerAdapter(get_logger(__name__))
        self.flush_every = flush_every
        self.progress_every = progress_every
        self.error_capacity = error_capacity

        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._credentials: Optional[DestinationCredentials] = None
        self._items: List[Item] = []
        self._job = MigrationJob.idle()

        self._load_latest(recover_interrupted)

    # Setup

    def _load_latest(self, recover_interrupted: bool) -> None:
        """
        Pick up the last persisted job.

        With ``recover_interrupted`` a job left in progress by a dead process
        becomes failed so it can be continued.
        """
        latest = self._job_store.load_latest()
        if latest is None:
            return
        if recover_interrupted and latest.status == JobStatus.IN_PROGRESS:
            latest.status = JobStatus.FAILED
            latest.cancel_reason = "interrupted"
            latest.completed_at = utcnow()
            self._job_store.save(latest)
            self._logger.warning(
                f"Job {latest.job_id} was interrupted at {latest.processed}/{latest.total}; "
                f"marked failed, use continue to resume"
            )
        self._job = MigrationJob.from_dict(latest.to_dict(), error_capacity=self.error_capacity)

    def _source_accounts(self) -> List[str]:
        if self._registry is not None:
            return self._registry.source_accounts()
        return list(self._default_sources)

    def _discover(self) -> List[Item]:
        if self._locator is None:
            raise ConfigurationError("No asset locator configured")
        return list(self._locator.list_candidate_asset_refs())

    # Operations

    def validate(self, credentials: DestinationCredentials) -> bool:
        """One authenticated call against the destination; never changes state."""
        if not credentials.validate():
            return False
        try:
            return bool(self._provider.ping(credentials))
        except Exception as e:
            self._logger.error(f"Credential validation error for '{credentials.account_name}': {e}")
            return False

    def start(
        self,
        credentials: DestinationCredentials,
        items: Optional[Sequence[Item]] = None,
        background: bool = False
    ) -> MigrationJob:
        """
        Start a new job towards the destination.

        Raises:
            AlreadyInProgressError: If a job is running
            CredentialError: If credentials are incomplete or rejected
        """
        self._ensure_idle()
        if not credentials.validate():
            raise CredentialError("Destination credentials are incomplete")
        if not self.validate(credentials):
            raise CredentialError(
                f"Destination account '{credentials.account_name}' rejected the credentials"
            )

        work = list(items) if items is not None else self._discover()
        destination = credentials.account_name

        job = MigrationJob(
            job_id=uuid.uuid4().hex,
            status=JobStatus.IN_PROGRESS,
            destination_account=destination,
            source_accounts=self._source_accounts(),
            total=len(work),
            recent_errors=deque(maxlen=self.error_capacity),
            started_at=utcnow(),
        )
        with self._lock:
            if self._job.status == JobStatus.IN_PROGRESS:
                raise AlreadyInProgressError(f"Job {self._job.job_id} is already in progress")
            self._job = job
            self._cancel.clear()
        self._credentials = credentials
        self._items = work

        try:
            loaded = self._checkpoint.load(destination)
            self._checkpoint.working_set(destination, loaded)
            mode = ResolveMode.CHECKPOINT_FAST if loaded else ResolveMode.LIVE_CHECK

            if self._registry is not None:
                self._registry.set_pending(credentials)
            self._job_store.save(job.snapshot())
        except Exception as e:
            self._abort_setup(e)
            raise

        self._logger.info(
            f"Started job {job.job_id}: {job.total} items -> '{destination}' "
            f"({mode.value}, sources: {', '.join(job.source_accounts) or 'any'})"
        )
        return self._launch(work, credentials, mode, background)

    def resume(self, background: bool = False) -> MigrationJob:
        """
        Continue a failed or cancelled job under the same id and destination.

        Items already in the checkpoint are dropped before the pass and
        reported as ``already_completed``; counters restart for the remainder.

        Raises:
            JobStateError: If the last job is not failed or cancelled
            CredentialError: If the destination credentials are no longer available
            ConfigurationError: If the remaining items cannot be recomputed
        """
        with self._lock:
            if not self._job.status.resumable:
                raise JobStateError(
                    f"Only failed or cancelled jobs can be continued (status: {self._job.status.value})"
                )
            destination = self._job.destination_account

        credentials = self._credentials
        if credentials is None and self._registry is not None:
            credentials = self._registry.pending()
        if credentials is None or credentials.account_name != destination:
            raise CredentialError(f"No stored credentials for destination '{destination}'")

        if self._locator is None and not self._items:
            raise ConfigurationError("No asset locator configured; cannot recompute remaining items")
        work = self._discover() if self._locator is not None else list(self._items)

        with self._lock:
            if not self._job.status.resumable:
                raise JobStateError(f"Job state changed to {self._job.status.value}")
            self._job.status = JobStatus.IN_PROGRESS
            self._job.completed_at = None
            self._job.cancel_reason = None
            self._cancel.clear()

        try:
            loaded = self._checkpoint.load(destination)
            self._checkpoint.working_set(destination, loaded)
            mode = ResolveMode.CHECKPOINT_FAST if loaded else ResolveMode.LIVE_CHECK

            remaining: List[Item] = []
            already = 0
            for item in work:
                public_id = self._public_id_of(item)
                if public_id is not None and self._checkpoint.is_completed(public_id):
                    already += 1
                    continue
                remaining.append(item)

            with self._lock:
                job = self._job
                job.reset_counters(len(remaining))
                job.already_completed = already
                job.recent_errors.clear()
                job.resumed = True
                snapshot = job.snapshot()
            self._credentials = credentials
            self._items = work
            self._job_store.save(snapshot)
        except Exception as e:
            self._abort_setup(e)
            raise

        self._logger.info(
            f"Continuing job {job.job_id}: {len(remaining)} remaining, "
            f"{already} already completed -> '{destination}'"
        )
        return self._launch(remaining, credentials, mode, background)

    def cancel(self) -> bool:
        """Ask the running job to stop after the item in flight."""
        with self._lock:
            if self._job.status != JobStatus.IN_PROGRESS:
                return False
            self._job.cancel_reason = "cancelled by operator"
            self._cancel.set()
        self._logger.info(f"Cancellation requested for job {self._job.job_id}")
        return True

    def status(self) -> MigrationJob:
        with self._lock:
            return self._job.snapshot()

    def history(self, limit: int = 10) -> List[MigrationJob]:
        return self._job_store.history(limit)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for a background job to finish.

        Returns:
            True if no job thread is running anymore
        """
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def plan(self, items: Optional[Sequence[Item]] = None, destination: Optional[str] = None) -> List[PlannedAction]:
        """
        Dry run: discovery and decomposition only, no provider calls.

        When a destination is given its checkpoint is consulted so already
        migrated ids show up as skips.
        """
        work = list(items) if items is not None else self._discover()
        completed = set()
        if destination:
            loaded = self._checkpoint.load(destination)
            if loaded is not None:
                completed = loaded.completed_ids

        actions = []
        for item in work:
            url = item.source_url if isinstance(item, AssetRef) else str(item)
            try:
                ref = item if isinstance(item, AssetRef) else decompose(item)
            except DecomposeError as e:
                actions.append(PlannedAction(source_url=url, action="invalid", reason=str(e)))
                continue
            if ref.public_id in completed:
                actions.append(PlannedAction(url, "skip", ref.public_id, "in checkpoint"))
            else:
                actions.append(PlannedAction(url, "transfer", ref.public_id))
        return actions

    def pending_count(self) -> int:
        """Candidates not yet in the checkpoint of the current destination."""
        if self._locator is None:
            return 0

        destination = self.status().destination_account
        if not destination and self._registry is not None:
            pending = self._registry.pending() or self._registry.active_account()
            destination = pending.account_name if pending else None

        try:
            items = self._discover()
        except ConfigurationError as e:
            self._logger.warning(f"Cannot count pending assets: {e}")
            return 0

        completed = set()
        if destination:
            loaded = self._checkpoint.load(destination)
            if loaded is not None:
                completed = loaded.completed_ids

        return sum(1 for item in items if self._public_id_of(item) not in completed)

    def config_view(self) -> Dict[str, Any]:
        """Active account (masked), retired accounts and pending count."""
        if self._registry is not None:
            active = self._registry.active_masked()
            retired = [r.to_dict() for r in reversed(self._registry.retired_accounts())]
        else:
            active = None
            retired = [{"accountName": name, "retiredAt": None, "migratedToAccount": None}
                       for name in self._default_sources]
        return {
            "activeAccountMasked": active,
            "retiredAccounts": retired,
            "pendingCount": self.pending_count(),
        }

    # Processing loop

    def _ensure_idle(self) -> None:
        with self._lock:
            if self._job.status == JobStatus.IN_PROGRESS:
                raise AlreadyInProgressError(f"Job {self._job.job_id} is already in progress")

    @staticmethod
    def _public_id_of(item: Item) -> Optional[str]:
        if isinstance(item, AssetRef):
            return item.public_id
        try:
            return decompose(item).public_id
        except DecomposeError:
            return None

    def _launch(
        self,
        items: List[Item],
        credentials: DestinationCredentials,
        mode: ResolveMode,
        background: bool
    ) -> MigrationJob:
        if not background:
            self._run(items, credentials, mode)
            return self.status()

        self._thread = threading.Thread(
            target=self._run,
            args=(items, credentials, mode),
            name="migration-job",
            daemon=True,
        )
        self._thread.start()
        return self.status()

    def _run(self, items: List[Item], credentials: DestinationCredentials, mode: ResolveMode) -> None:
        resolver = ExistenceResolver(
            self._provider, self._checkpoint, credentials, self.metrics, self._logger
        )
        with self._lock:
            sources = list(self._job.source_accounts)
        pipeline = TransferPipeline(self._provider, sources, self.metrics, self._logger)

        final_status = JobStatus.COMPLETED
        reason = None
        copied_since_flush = 0
        try:
            for index, item in enumerate(items, 1):
                if self._cancel.is_set():
                    final_status = JobStatus.CANCELLED
                    break

                if self._process_item(item, resolver, pipeline, credentials, mode):
                    copied_since_flush += 1
                    if copied_since_flush >= self.flush_every:
                        self._flush()
                        copied_since_flush = 0

                if index % self.progress_every == 0:
                    self._log_progress()
            else:
                if self._cancel.is_set():
                    final_status = JobStatus.CANCELLED
        except Exception as e:
            self._logger.exception(f"Migration job aborted: {e}")
            final_status = JobStatus.FAILED
            reason = f"error: {e}"
        finally:
            self._finish(final_status, credentials, reason)

    def _process_item(
        self,
        item: Item,
        resolver: ExistenceResolver,
        pipeline: TransferPipeline,
        credentials: DestinationCredentials,
        mode: ResolveMode
    ) -> bool:
        """Handle one item; True if it was copied."""
        if isinstance(item, AssetRef):
            ref = item
        else:
            try:
                ref = decompose(item)
            except DecomposeError as e:
                self._record_failure(str(item), None, str(e))
                return False

        if resolver.should_skip(ref, mode):
            with self._lock:
                self._job.skipped += 1
            return False

        outcome = pipeline.transfer(ref, credentials)

        if outcome.status == TransferStatus.COPIED:
            self._checkpoint.mark_completed(ref.public_id)
            with self._lock:
                self._job.copied += 1
            self.metrics.increment('copied')
            return True

        if outcome.status == TransferStatus.EXISTS:
            self._checkpoint.mark_completed(ref.public_id)
            with self._lock:
                self._job.skipped += 1
            self.metrics.increment('skipped_existing')
            return False

        self._record_failure(ref.source_url, ref.public_id, outcome.reason or "unknown error")
        return False

    def _record_failure(self, source_url: str, public_id: Optional[str], message: str) -> None:
        self._logger.error(f"Failed {public_id or source_url}: {message}")
        self.metrics.increment('failed')
        with self._lock:
            self._job.failed += 1
            self._job.record_error(
                ErrorEntry(source_url=source_url, public_id=public_id, message=message)
            )

    def _flush(self) -> None:
        try:
            self._checkpoint.flush()
        except CheckpointError as e:
            self._logger.error(f"Checkpoint flush failed, will retry: {e}")

    def _log_progress(self) -> None:
        """Log counters and persist them so other processes see live progress."""
        job = self.status()
        self._logger.info(
            f"Progress: {job.processed}/{job.total} ({job.percentage}%) "
            f"copied={job.copied} skipped={job.skipped} failed={job.failed}"
        )
        try:
            self._job_store.save(job)
        except OSError as e:
            self._logger.error(f"Could not persist progress of job {job.job_id}: {e}")

    def _abort_setup(self, error: Exception) -> None:
        """Release a job claimed by start/resume whose setup raised before launch."""
        with self._lock:
            self._job.status = JobStatus.FAILED
            self._job.cancel_reason = f"error: {error}"
            self._job.completed_at = utcnow()
        self._logger.error(f"Job {self._job.job_id} could not be launched: {error}")

    def _finish(
        self,
        status: JobStatus,
        credentials: DestinationCredentials,
        reason: Optional[str]
    ) -> None:
        self._flush()

        with self._lock:
            job = self._job
            job.status = status
            job.completed_at = utcnow()
            if reason:
                job.cancel_reason = reason
            snapshot = job.snapshot()

        if status == JobStatus.COMPLETED and self._registry is not None:
            try:
                self._registry.finalize(credentials)
            except (DomainException, OSError) as e:
                self._logger.error(f"Could not update account registry: {e}")

        try:
            self._job_store.save(snapshot)
        except OSError as e:
            self._logger.error(f"Could not persist job {snapshot.job_id}: {e}")

        self._logger.info(
            f"Job {snapshot.job_id} {status.value}: copied={snapshot.copied} "
            f"skipped={snapshot.skipped} failed={snapshot.failed} of {snapshot.total}"
        )
