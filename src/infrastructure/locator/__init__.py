"""Asset locators."""

from infrastructure.locator.file_locator import FileAssetLocator

__all__ = ["FileAssetLocator"]
