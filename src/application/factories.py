"""Factory wiring the migration engine from configuration."""

from typing import Optional

from application.controller import MigrationController
from domain.protocols import ICheckpointStore
from infrastructure.config import MigrationConfig
from infrastructure.io.downloader import HttpDownloader
from infrastructure.locator import FileAssetLocator
from infrastructure.provider import CloudinaryClient
from infrastructure.state import AccountRegistry, JsonJobStore
from infrastructure.storage import FileCheckpointStore, S3CheckpointStore
from shared.logging import get_logger
from shared.metrics import TransferMetrics
from shared.secrets import SecretBox

logger = get_logger(__name__)


class MigrationFactory:
    """
    Builds the controller and its collaborators from a MigrationConfig.

    Every part can be built on its own, so the CLI can e.g. reset the
    checkpoint without touching the provider.
    """

    def __init__(self, config: MigrationConfig):
        self.config = config
        self._logger = get_logger(__name__)
        self._registry: Optional[AccountRegistry] = None

    def create_checkpoint_store(self) -> ICheckpointStore:
        if self.config.checkpoint_backend == 's3':
            self._logger.info(f"Using S3 checkpoint store (bucket {self.config.b2_bucket})")
            return S3CheckpointStore(
                bucket=self.config.b2_bucket,
                access_key=self.config.b2_key,
                secret_key=self.config.b2_secret,
                endpoint=self.config.b2_endpoint,
                key=self.config.checkpoint_key,
            )
        self._logger.debug(f"Using file checkpoint store at {self.config.checkpoint_path}")
        return FileCheckpointStore(self.config.checkpoint_path)

    def create_registry(self) -> AccountRegistry:
        """Account registry, seeded from configuration on first use."""
        if self._registry is None:
            registry = AccountRegistry(
                self.config.accounts_path, SecretBox(self.config.encryption_key)
            )
            registry.seed(self.config.retired_accounts)
            self._registry = registry
        return self._registry

    def create_provider(self) -> CloudinaryClient:
        downloader = HttpDownloader(
            timeout=(self.config.request_timeout, self.config.download_timeout)
        )
        return CloudinaryClient(
            downloader=downloader,
            api_base=self.config.api_base,
            request_timeout=self.config.request_timeout,
            upload_timeout=(self.config.request_timeout, self.config.download_timeout),
        )

    def create_locator(self, registry: AccountRegistry) -> Optional[FileAssetLocator]:
        if self.config.asset_list_path is None:
            self._logger.warning("No asset list configured (ASSET_LIST_PATH)")
            return None
        return FileAssetLocator(self.config.asset_list_path, registry.source_accounts)

    def create_controller(
        self,
        metrics: Optional[TransferMetrics] = None,
        recover_interrupted: bool = False
    ) -> MigrationController:
        """
        Args:
            metrics: Shared metrics collector
            recover_interrupted: Set for commands that own the job (run,
                continue, serve); read-only commands leave it unset
        """
        registry = self.create_registry()
        return MigrationController(
            provider=self.create_provider(),
            checkpoint=self.create_checkpoint_store(),
            job_store=JsonJobStore(self.config.jobs_path),
            locator=self.create_locator(registry),
            registry=registry,
            metrics=metrics,
            flush_every=self.config.flush_every,
            progress_every=self.config.progress_every,
            error_capacity=self.config.error_capacity,
            recover_interrupted=recover_interrupted,
        )
