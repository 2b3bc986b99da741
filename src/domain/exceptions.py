"""Domain exceptions for the asset migration engine."""

from typing import Optional


class DomainException(Exception):
    """Base exception for all domain errors."""
    pass


class DecomposeError(DomainException):
    """Raised when a storage URL cannot be turned into an AssetRef.

    Permanent: the item is counted as failed and never retried.
    """
    pass


class DownloadError(DomainException):
    """Raised when source bytes cannot be fetched."""
    pass


class UploadError(DomainException):
    """Raised when the destination rejects an upload."""
    pass


class ExistenceCheckError(DomainException):
    """Raised when the destination cannot answer an existence query."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(ExistenceCheckError):
    """Raised when the destination rate-limits an existence query."""
    pass


class CredentialError(DomainException):
    """Raised when destination credentials are missing or rejected."""
    pass


class JobStateError(DomainException):
    """Raised when an operation conflicts with the current job state."""
    pass


class AlreadyInProgressError(JobStateError):
    """Raised when a job is started while another one is running."""
    pass


class CheckpointError(DomainException):
    """Raised when a checkpoint cannot be persisted."""
    pass


class ConfigurationError(DomainException):
    """Raised when configuration is invalid."""
    pass
