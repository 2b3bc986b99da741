"""Download-then-upload of a single asset."""

from typing import List, Optional, Sequence

from domain.asset_url import rewrite_account
from domain.exceptions import DownloadError, UploadError
from domain.models import (
    AssetRef,
    DestinationCredentials,
    TransferOutcome,
    TransferStatus,
    UploadStatus,
)
from domain.protocols import IProviderClient, ILogger
from shared.logging import LoggerAdapter, get_logger
from shared.metrics import TransferMetrics


class TransferPipeline:
    """
    Moves one asset from a source account to the destination.

    Has no checkpoint or counter side effects; the caller records the
    outcome.
    """

    def __init__(
        self,
        provider: IProviderClient,
        source_accounts: Sequence[str] = (),
        metrics: Optional[TransferMetrics] = None,
        logger: Optional[ILogger] = None
    ):
        """
        Args:
            provider: Provider client used for both download and upload
            source_accounts: Accounts assets may live in, oldest first. When
                set, downloads go to the last one, which holds copies of
                everything migrated into it earlier.
            metrics: Shared metrics collector
            logger: Logger
        """
        self._provider = provider
        self._source_accounts: List[str] = list(source_accounts)
        self._metrics = metrics or TransferMetrics()
        self._logger = logger or LoggerAdapter(get_logger(__name__))

    def download_url(self, asset_ref: AssetRef) -> str:
        """URL the bytes are fetched from; the stored URL itself is never changed."""
        if len(self._source_accounts) < 2:
            return asset_ref.source_url
        return rewrite_account(
            asset_ref.source_url, self._source_accounts[:-1], self._source_accounts[-1]
        )

    def transfer(self, asset_ref: AssetRef, credentials: DestinationCredentials) -> TransferOutcome:
        url = self.download_url(asset_ref)
        if url != asset_ref.source_url:
            self._logger.debug(f"Downloading {asset_ref.public_id} from {url}")

        self._metrics.start_timer('download')
        try:
            downloaded = self._provider.download(url, fallback_format=asset_ref.format)
        except DownloadError as e:
            self._logger.error(f"Download failed for {asset_ref.public_id}: {e}")
            return TransferOutcome.failed(asset_ref, f"download: {e}")
        finally:
            self._metrics.stop_timer('download')

        self._metrics.start_timer('upload')
        try:
            status = self._provider.upload(
                asset_ref, downloaded.data, downloaded.content_type, credentials
            )
        except UploadError as e:
            self._logger.error(f"Upload failed for {asset_ref.public_id}: {e}")
            return TransferOutcome.failed(asset_ref, f"upload: {e}")
        finally:
            self._metrics.stop_timer('upload')

        if status == UploadStatus.EXISTS:
            return TransferOutcome(
                status=TransferStatus.EXISTS,
                asset_ref=asset_ref,
                content_type=downloaded.content_type,
            )

        self._metrics.increment('bytes_transferred', downloaded.size_bytes)
        return TransferOutcome(
            status=TransferStatus.COPIED,
            asset_ref=asset_ref,
            bytes_transferred=downloaded.size_bytes,
            content_type=downloaded.content_type,
        )
