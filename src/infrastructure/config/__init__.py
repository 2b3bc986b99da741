"""Configuration package."""

from infrastructure.config.loader import ConfigLoader, MigrationConfig

__all__ = ["ConfigLoader", "MigrationConfig"]
