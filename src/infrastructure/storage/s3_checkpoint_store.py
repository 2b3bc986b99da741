"""
S3-compatible checkpoint store.

Keeps the checkpoint in a Backblaze B2 (or any S3-compatible) bucket so a
migration can resume on a different machine. A single PutObject replaces the
object atomically.
"""

import json
from typing import Optional, Dict, Any

from botocore.client import Config
from botocore.exceptions import ClientError, BotoCoreError
import boto3

from domain.exceptions import CheckpointError
from infrastructure.storage.checkpoint_store import BaseCheckpointStore

DEFAULT_ENDPOINT = "https://s3.us-west-004.backblazeb2.com"


class S3CheckpointStore(BaseCheckpointStore):
    """Checkpoint stored as one JSON object in a bucket."""

    def __init__(
        self,
        bucket: str,
        access_key: str,
        secret_key: str,
        endpoint: Optional[str] = None,
        key: str = "asset-migration/checkpoint.json",
        region: Optional[str] = None
    ):
        """
        Initialize S3 checkpoint store.

        Args:
            bucket: Bucket name
            access_key: S3 access key
            secret_key: S3 secret key
            endpoint: S3 endpoint URL
            key: Object key of the checkpoint
            region: Optional region name
        """
        super().__init__()
        if not (bucket and access_key and secret_key):
            raise ValueError("S3 checkpoint store needs bucket, access key and secret key")

        self.bucket = bucket
        self.key = key
        self.endpoint = endpoint or DEFAULT_ENDPOINT

        kwargs = {
            'endpoint_url': self.endpoint,
            'aws_access_key_id': access_key,
            'aws_secret_access_key': secret_key,
            'config': Config(signature_version='s3v4', retries={'max_attempts': 5}),
        }
        if region:
            kwargs['region_name'] = region

        self._client = boto3.client('s3', **kwargs)

    def describe(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    def _read(self) -> Optional[Dict[str, Any]]:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=self.key)
            body = response['Body'].read()
        except ClientError as e:
            if e.response['Error']['Code'] in ('404', 'NoSuchKey', 'NotFound'):
                return None
            raise CheckpointError(f"Cannot read {self.describe()}: {e}") from e
        except BotoCoreError as e:
            raise CheckpointError(f"Cannot read {self.describe()}: {e}") from e

        try:
            return json.loads(body.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CheckpointError(f"Corrupt checkpoint at {self.describe()}: {e}") from e

    def _write(self, payload: Dict[str, Any]) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=self.key,
                Body=json.dumps(payload, indent=2).encode('utf-8'),
                ContentType='application/json',
            )
        except (ClientError, BotoCoreError) as e:
            raise CheckpointError(f"Cannot write {self.describe()}: {e}") from e

    def _delete(self) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=self.key)
        except (ClientError, BotoCoreError) as e:
            raise CheckpointError(f"Cannot remove {self.describe()}: {e}") from e
