"""Checkpoint storage backends."""

from infrastructure.storage.checkpoint_store import BaseCheckpointStore, FileCheckpointStore
from infrastructure.storage.s3_checkpoint_store import S3CheckpointStore

__all__ = ['BaseCheckpointStore', 'FileCheckpointStore', 'S3CheckpointStore']
