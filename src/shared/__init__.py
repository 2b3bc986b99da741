"""Shared utilities package."""

from shared.logging import setup_logger, configure_root, get_logger, LoggerAdapter
from shared.retry import retry_with_backoff, compute_backoff
from shared.metrics import TransferMetrics
from shared.secrets import SecretBox
from shared.types import PathLike

__all__ = [
    "setup_logger",
    "configure_root",
    "get_logger",
    "LoggerAdapter",
    "retry_with_backoff",
    "compute_backoff",
    "TransferMetrics",
    "SecretBox",
    "PathLike",
]
