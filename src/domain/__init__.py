"""Domain layer package."""

from .models import (
    AssetRef,
    CheckpointRecord,
    DestinationCredentials,
    DownloadedAsset,
    ErrorEntry,
    JobStatus,
    MigrationJob,
    ResolveMode,
    ResourceType,
    RetiredAccount,
    TransferOutcome,
    TransferStatus,
    UploadStatus,
)
from .exceptions import (
    DomainException,
    DecomposeError,
    DownloadError,
    UploadError,
    ExistenceCheckError,
    RateLimitedError,
    CredentialError,
    JobStateError,
    AlreadyInProgressError,
    CheckpointError,
    ConfigurationError,
)
from .asset_url import decompose, rewrite_account, references_account
from .protocols import (
    IAssetLocator,
    IProviderClient,
    ICheckpointStore,
    IJobStore,
    ILogger,
)

__all__ = [
    # Models
    "AssetRef",
    "CheckpointRecord",
    "DestinationCredentials",
    "DownloadedAsset",
    "ErrorEntry",
    "JobStatus",
    "MigrationJob",
    "ResolveMode",
    "ResourceType",
    "RetiredAccount",
    "TransferOutcome",
    "TransferStatus",
    "UploadStatus",
    # Exceptions
    "DomainException",
    "DecomposeError",
    "DownloadError",
    "UploadError",
    "ExistenceCheckError",
    "RateLimitedError",
    "CredentialError",
    "JobStateError",
    "AlreadyInProgressError",
    "CheckpointError",
    "ConfigurationError",
    # URL handling
    "decompose",
    "rewrite_account",
    "references_account",
    # Protocols
    "IAssetLocator",
    "IProviderClient",
    "ICheckpointStore",
    "IJobStore",
    "ILogger",
]
