"""Domain models for asset migration."""

import copy
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List, Set, Deque

DEFAULT_ERROR_CAPACITY = 20


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class ResourceType(str, Enum):
    """Kind of asset as encoded in the storage URL."""

    IMAGE = "image"
    VIDEO = "video"
    RAW = "raw"


class JobStatus(str, Enum):
    """Lifecycle of a migration job."""

    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def resumable(self) -> bool:
        return self in (JobStatus.FAILED, JobStatus.CANCELLED)


class ResolveMode(str, Enum):
    """Where the existence resolver gets its answer from."""

    CHECKPOINT_FAST = "checkpoint_fast"
    LIVE_CHECK = "live_check"


class UploadStatus(str, Enum):
    """Result of a provider upload that did not raise."""

    OK = "ok"
    EXISTS = "exists"


class TransferStatus(str, Enum):
    """Result of one pipeline run."""

    COPIED = "copied"
    EXISTS = "exists"
    FAILED = "failed"


@dataclass(frozen=True)
class AssetRef:
    """One migratable object, identified the same way at source and destination."""

    source_url: str
    public_id: str
    resource_type: ResourceType
    filename: str
    folder: Optional[str] = None
    format: Optional[str] = None
    version: Optional[str] = None

    def __post_init__(self):
        if not self.public_id:
            raise ValueError("public_id cannot be empty")
        if not self.filename:
            raise ValueError("filename cannot be empty")

    @property
    def bare_name(self) -> str:
        """Filename without its extension."""
        return self.public_id.rsplit("/", 1)[-1]


@dataclass
class DestinationCredentials:
    """Credentials of the account assets are copied to."""

    account_name: str
    api_key: str
    api_secret: str

    @classmethod
    def from_env(cls) -> 'DestinationCredentials':
        """Load from environment variables."""
        import os
        return cls(
            account_name=os.getenv('CLOUDINARY_CLOUD_NAME', ''),
            api_key=os.getenv('CLOUDINARY_API_KEY', ''),
            api_secret=os.getenv('CLOUDINARY_API_SECRET', ''),
        )

    def validate(self) -> bool:
        """Check if all fields are set."""
        return bool(self.account_name and self.api_key and self.api_secret)

    def masked(self) -> Dict[str, str]:
        """Representation safe to show to an operator."""
        return {
            "accountName": self.account_name,
            "apiKey": self.api_key,
            "apiSecretMasked": mask_secret(self.api_secret),
        }

    def __repr__(self) -> str:
        return (
            f"DestinationCredentials(account_name={self.account_name!r}, "
            f"api_key={self.api_key!r}, api_secret={mask_secret(self.api_secret)!r})"
        )


def mask_secret(secret: str) -> str:
    """Keep only the last four characters of a secret."""
    return "****" + (secret or "")[-4:]


@dataclass
class CheckpointRecord:
    """Ids already migrated to one destination account."""

    destination_account: str
    completed_ids: Set[str] = field(default_factory=set)
    last_updated: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "destination_account": self.destination_account,
            "completed_ids": sorted(self.completed_ids),
            "last_updated": _iso(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CheckpointRecord':
        return cls(
            destination_account=data["destination_account"],
            completed_ids=set(data.get("completed_ids") or []),
            last_updated=_parse_iso(data.get("last_updated")) or utcnow(),
        )


@dataclass
class DownloadedAsset:
    """Bytes fetched from the source account."""

    data: bytes
    content_type: str
    final_url: str

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass
class TransferOutcome:
    """Result of moving one asset."""

    status: TransferStatus
    asset_ref: AssetRef
    reason: Optional[str] = None
    bytes_transferred: int = 0
    content_type: Optional[str] = None

    @classmethod
    def failed(cls, asset_ref: AssetRef, reason: str) -> 'TransferOutcome':
        return cls(status=TransferStatus.FAILED, asset_ref=asset_ref, reason=reason)

    @property
    def success(self) -> bool:
        return self.status != TransferStatus.FAILED


@dataclass
class ErrorEntry:
    """A per-item failure kept for operator inspection."""

    source_url: str
    message: str
    public_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceUrl": self.source_url,
            "publicId": self.public_id,
            "message": self.message,
            "timestamp": _iso(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ErrorEntry':
        return cls(
            source_url=data["sourceUrl"],
            message=data["message"],
            public_id=data.get("publicId"),
            timestamp=_parse_iso(data.get("timestamp")) or utcnow(),
        )


@dataclass
class RetiredAccount:
    """A storage account no longer written to."""

    account_name: str
    retired_at: datetime
    migrated_to_account: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accountName": self.account_name,
            "retiredAt": _iso(self.retired_at),
            "migratedToAccount": self.migrated_to_account,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RetiredAccount':
        return cls(
            account_name=data["accountName"],
            retired_at=_parse_iso(data.get("retiredAt")) or utcnow(),
            migrated_to_account=data.get("migratedToAccount"),
        )


@dataclass
class MigrationJob:
    """Live status of a migration run."""

    job_id: str
    status: JobStatus = JobStatus.IDLE
    destination_account: Optional[str] = None
    source_accounts: List[str] = field(default_factory=list)
    total: int = 0
    copied: int = 0
    failed: int = 0
    skipped: int = 0
    already_completed: int = 0
    recent_errors: Deque[ErrorEntry] = field(
        default_factory=lambda: deque(maxlen=DEFAULT_ERROR_CAPACITY)
    )
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    resumed: bool = False

    @classmethod
    def idle(cls) -> 'MigrationJob':
        return cls(job_id="")

    @property
    def processed(self) -> int:
        return self.copied + self.failed + self.skipped

    @property
    def percentage(self) -> int:
        if self.total <= 0:
            return 0
        return round(self.processed / self.total * 100)

    def record_error(self, entry: ErrorEntry) -> None:
        """Append an error, dropping the oldest one when over capacity."""
        self.recent_errors.append(entry)

    def reset_counters(self, total: int) -> None:
        self.total = total
        self.copied = 0
        self.failed = 0
        self.skipped = 0

    def snapshot(self) -> 'MigrationJob':
        """Detached copy for readers outside the processing loop."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "status": self.status.value,
            "destinationAccount": self.destination_account,
            "sourceAccounts": list(self.source_accounts),
            "total": self.total,
            "copied": self.copied,
            "failed": self.failed,
            "skipped": self.skipped,
            "alreadyCompleted": self.already_completed,
            "percentage": self.percentage,
            "recentErrors": [e.to_dict() for e in self.recent_errors],
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "cancelReason": self.cancel_reason,
            "resumed": self.resumed,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        error_capacity: int = DEFAULT_ERROR_CAPACITY
    ) -> 'MigrationJob':
        errors = deque(
            (ErrorEntry.from_dict(e) for e in data.get("recentErrors") or []),
            maxlen=error_capacity,
        )
        return cls(
            job_id=data["jobId"],
            status=JobStatus(data.get("status", JobStatus.IDLE.value)),
            destination_account=data.get("destinationAccount"),
            source_accounts=list(data.get("sourceAccounts") or []),
            total=data.get("total", 0),
            copied=data.get("copied", 0),
            failed=data.get("failed", 0),
            skipped=data.get("skipped", 0),
            already_completed=data.get("alreadyCompleted", 0),
            recent_errors=errors,
            started_at=_parse_iso(data.get("startedAt")),
            completed_at=_parse_iso(data.get("completedAt")),
            cancel_reason=data.get("cancelReason"),
            resumed=data.get("resumed", False),
        )
