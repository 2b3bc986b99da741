"""Protocol definitions for dependency inversion."""

from typing import Protocol, List, Optional, Union

from .models import (
    AssetRef,
    CheckpointRecord,
    DestinationCredentials,
    DownloadedAsset,
    MigrationJob,
    ResourceType,
    UploadStatus,
)


class IAssetLocator(Protocol):
    """Interface for finding asset URLs that still point at retired accounts."""

    def list_candidate_asset_refs(self) -> List[Union[AssetRef, str]]:
        """Return de-duplicated AssetRefs or decomposable URLs."""
        ...


class IProviderClient(Protocol):
    """Interface for the storage provider."""

    def download(self, url: str, fallback_format: Optional[str] = None) -> DownloadedAsset:
        """Fetch the bytes behind a delivery URL."""
        ...

    def upload(
        self,
        asset_ref: AssetRef,
        data: bytes,
        content_type: str,
        credentials: DestinationCredentials
    ) -> UploadStatus:
        """Store bytes under the asset's public id without overwriting."""
        ...

    def exists(
        self,
        public_id: str,
        resource_type: ResourceType,
        credentials: DestinationCredentials
    ) -> bool:
        """Check whether the destination already has the asset."""
        ...

    def ping(self, credentials: DestinationCredentials) -> bool:
        """Make one cheap authenticated call."""
        ...


class ICheckpointStore(Protocol):
    """Interface for durable resumption state."""

    def load(self, destination_account: str) -> Optional[CheckpointRecord]:
        """Load the record for an account, None if absent or stale."""
        ...

    def save(self, record: CheckpointRecord) -> None:
        """Atomically overwrite the persisted record."""
        ...

    def working_set(
        self,
        destination_account: str,
        loaded: Optional[CheckpointRecord] = None
    ) -> CheckpointRecord:
        """Begin an in-memory working record for an account."""
        ...

    def mark_completed(self, public_id: str) -> None:
        """Add an id to the working record."""
        ...

    def is_completed(self, public_id: str) -> bool:
        """Check the working record."""
        ...

    def flush(self) -> bool:
        """Persist the working record if it holds anything."""
        ...

    def clear(self) -> None:
        """Remove the persisted record."""
        ...


class IJobStore(Protocol):
    """Interface for persisting job state between runs."""

    def save(self, job: MigrationJob) -> None:
        ...

    def load_latest(self) -> Optional[MigrationJob]:
        ...

    def history(self, limit: int = 10) -> List[MigrationJob]:
        ...


class ILogger(Protocol):
    """Interface for logging."""

    def debug(self, message: str, **kwargs) -> None:
        ...

    def info(self, message: str, **kwargs) -> None:
        ...

    def warning(self, message: str, **kwargs) -> None:
        ...

    def error(self, message: str, **kwargs) -> None:
        ...

    def exception(self, message: str, **kwargs) -> None:
        ...
