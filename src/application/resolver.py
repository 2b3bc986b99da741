"""Decides whether an asset still needs to be transferred."""

from typing import Optional

from domain.exceptions import ExistenceCheckError, RateLimitedError
from domain.models import AssetRef, DestinationCredentials, ResolveMode
from domain.protocols import ICheckpointStore, IProviderClient, ILogger
from shared.logging import LoggerAdapter, get_logger
from shared.metrics import TransferMetrics


class ExistenceResolver:
    """
    Skip decision for one asset.

    CHECKPOINT_FAST answers from the checkpoint working set only. LIVE_CHECK
    asks the destination; a found asset is added to the checkpoint so later
    runs can stay in fast mode. A failed check never causes a skip: the
    upload is attempted and the provider's no-overwrite rule keeps it safe.
    """

    def __init__(
        self,
        provider: IProviderClient,
        checkpoint: ICheckpointStore,
        credentials: DestinationCredentials,
        metrics: Optional[TransferMetrics] = None,
        logger: Optional[ILogger] = None
    ):
        self._provider = provider
        self._checkpoint = checkpoint
        self._credentials = credentials
        self._metrics = metrics or TransferMetrics()
        self._logger = logger or LoggerAdapter(get_logger(__name__))

    def should_skip(self, asset_ref: AssetRef, mode: ResolveMode) -> bool:
        if mode == ResolveMode.CHECKPOINT_FAST:
            return self._checkpoint.is_completed(asset_ref.public_id)

        self._metrics.start_timer('existence_check')
        try:
            found = self._provider.exists(
                asset_ref.public_id, asset_ref.resource_type, self._credentials
            )
        except RateLimitedError as e:
            self._metrics.increment('resolver.rate_limited')
            self._logger.warning(
                f"Rate limited checking {asset_ref.public_id}, uploading anyway: {e}"
            )
            return False
        except ExistenceCheckError as e:
            self._metrics.increment('resolver.check_errors')
            self._logger.warning(
                f"Existence check failed for {asset_ref.public_id} "
                f"(status {e.status_code}), uploading anyway"
            )
            return False
        finally:
            self._metrics.stop_timer('existence_check')

        if found:
            self._checkpoint.mark_completed(asset_ref.public_id)
            self._metrics.increment('resolver.found')
            self._logger.debug(f"Already at destination: {asset_ref.public_id}")
            return True

        return False
