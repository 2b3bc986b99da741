"""Configuration loading and validation."""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field, fields

from domain.exceptions import ConfigurationError
from domain.models import DestinationCredentials
from shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_API_BASE = "https://api.cloudinary.com"


def _split_accounts(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part).strip() for part in value if str(part).strip()]


@dataclass
class MigrationConfig:
    """Configuration for an asset migration."""

    # Destination account (usually from env)
    cloud_name: Optional[str] = None
    api_key: Optional[str] = None
    api_secret: Optional[str] = None

    # Accounts assets are copied away from, oldest first
    retired_accounts: List[str] = field(default_factory=list)

    # Local state
    state_dir: Path = Path(".migration")
    asset_list_path: Optional[Path] = None
    encryption_key: Optional[str] = None

    # Checkpoint backend
    checkpoint_backend: str = "file"  # 'file', 's3'
    b2_bucket: Optional[str] = None
    b2_endpoint: Optional[str] = None
    b2_key: Optional[str] = None
    b2_secret: Optional[str] = None
    checkpoint_key_prefix: str = "asset-migration"

    # Processing
    flush_every: int = 10
    progress_every: int = 50
    error_capacity: int = 20

    # Network
    api_base: str = DEFAULT_API_BASE
    request_timeout: float = 30.0
    download_timeout: float = 120.0

    # Misc
    log_file: Optional[Path] = None

    def __post_init__(self):
        """Normalize and validate configuration after initialization."""
        self.retired_accounts = _split_accounts(self.retired_accounts)
        self.state_dir = Path(self.state_dir)
        if self.asset_list_path is not None:
            self.asset_list_path = Path(self.asset_list_path)
        if self.log_file is not None:
            self.log_file = Path(self.log_file)
        self.checkpoint_backend = str(self.checkpoint_backend).lower()
        self._validate()

    def _validate(self):
        """Validate configuration values."""
        if self.checkpoint_backend not in ("file", "s3"):
            raise ConfigurationError(f"Invalid checkpoint backend: {self.checkpoint_backend}")

        if self.checkpoint_backend == "s3" and not (self.b2_bucket and self.b2_key and self.b2_secret):
            raise ConfigurationError(
                "S3 checkpoint backend requires B2_BUCKET, B2_KEY and B2_SECRET"
            )

        if self.flush_every <= 0:
            raise ConfigurationError(f"flush_every must be positive, got: {self.flush_every}")

        if self.progress_every <= 0:
            raise ConfigurationError(f"progress_every must be positive, got: {self.progress_every}")

        if self.error_capacity <= 0:
            raise ConfigurationError(f"error_capacity must be positive, got: {self.error_capacity}")

        if self.request_timeout <= 0 or self.download_timeout <= 0:
            raise ConfigurationError("Timeouts must be positive")

    @property
    def checkpoint_path(self) -> Path:
        return self.state_dir / "checkpoint.json"

    @property
    def checkpoint_key(self) -> str:
        return f"{self.checkpoint_key_prefix.rstrip('/')}/checkpoint.json"

    @property
    def jobs_path(self) -> Path:
        return self.state_dir / "jobs.json"

    @property
    def accounts_path(self) -> Path:
        return self.state_dir / "accounts.yaml"

    def destination_credentials(self) -> Optional[DestinationCredentials]:
        """Destination from configuration, None unless all three fields are set."""
        credentials = DestinationCredentials(
            account_name=self.cloud_name or "",
            api_key=self.api_key or "",
            api_secret=self.api_secret or "",
        )
        return credentials if credentials.validate() else None


class ConfigLoader:
    """Loads and validates configuration from YAML files and environment variables."""

    DEFAULT_PATH = Path("migration.yaml")

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize config loader.

        Args:
            config_path: Optional path to YAML config file
        """
        self._explicit = config_path is not None
        self.config_path = Path(config_path) if config_path else self.DEFAULT_PATH
        self._logger = get_logger(__name__)

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> MigrationConfig:
        """
        Load configuration from file and environment.

        Environment variables take precedence over the config file, CLI
        overrides over both.

        Returns:
            MigrationConfig instance

        Raises:
            ConfigurationError: If configuration is invalid
        """
        config_dict: Dict[str, Any] = {}

        if self.config_path.exists():
            self._logger.info(f"Loading config from {self.config_path}")
            try:
                with open(self.config_path, 'r') as f:
                    yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e
            if not isinstance(yaml_config, dict):
                raise ConfigurationError(f"Config file {self.config_path} must contain a mapping")
            config_dict.update(yaml_config)
        elif self._explicit:
            self._logger.warning(f"Config file not found: {self.config_path}")

        config_dict.update(self._load_from_env())

        if overrides:
            for k, v in overrides.items():
                if v is None:
                    continue
                config_dict[k] = v

        valid_fields = {f.name for f in fields(MigrationConfig)}
        unknown = sorted(set(config_dict) - valid_fields)
        if unknown:
            self._logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

        filtered_config = {k: v for k, v in config_dict.items() if k in valid_fields}

        try:
            return MigrationConfig(**filtered_config)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    def _number(self, name: str, cast) -> Optional[Any]:
        value = os.getenv(name)
        if not value:
            return None
        try:
            return cast(value)
        except ValueError:
            self._logger.warning(f"Invalid {name} value: {value}")
            return None

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_config: Dict[str, Any] = {}

        # Destination
        if cloud_name := os.getenv("CLOUDINARY_CLOUD_NAME"):
            env_config["cloud_name"] = cloud_name

        if api_key := os.getenv("CLOUDINARY_API_KEY"):
            env_config["api_key"] = api_key

        if api_secret := os.getenv("CLOUDINARY_API_SECRET"):
            env_config["api_secret"] = api_secret

        if retired := os.getenv("RETIRED_ACCOUNTS"):
            env_config["retired_accounts"] = _split_accounts(retired)

        # State
        if state_dir := os.getenv("MIGRATION_STATE_DIR"):
            env_config["state_dir"] = Path(state_dir)

        if asset_list := os.getenv("ASSET_LIST_PATH"):
            env_config["asset_list_path"] = Path(asset_list)

        if encryption_key := os.getenv("MIGRATION_ENCRYPTION_KEY"):
            env_config["encryption_key"] = encryption_key

        # Checkpoint backend
        if backend := os.getenv("CHECKPOINT_BACKEND"):
            env_config["checkpoint_backend"] = backend.lower()

        if bucket := os.getenv("B2_BUCKET"):
            env_config["b2_bucket"] = bucket

        if endpoint := os.getenv("B2_ENDPOINT"):
            env_config["b2_endpoint"] = endpoint

        if b2_key := os.getenv("B2_KEY"):
            env_config["b2_key"] = b2_key

        if b2_secret := os.getenv("B2_SECRET"):
            env_config["b2_secret"] = b2_secret

        if prefix := os.getenv("CHECKPOINT_KEY_PREFIX"):
            env_config["checkpoint_key_prefix"] = prefix

        # Processing / network
        if (flush_every := self._number("FLUSH_EVERY", int)) is not None:
            env_config["flush_every"] = flush_every

        if (download_timeout := self._number("DOWNLOAD_TIMEOUT", float)) is not None:
            env_config["download_timeout"] = download_timeout

        if (request_timeout := self._number("REQUEST_TIMEOUT", float)) is not None:
            env_config["request_timeout"] = request_timeout

        if api_base := os.getenv("CLOUDINARY_API_BASE"):
            env_config["api_base"] = api_base

        if log_file := os.getenv("LOG_FILE"):
            env_config["log_file"] = Path(log_file)

        return env_config
