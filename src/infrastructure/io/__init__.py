"""IO utilities package."""

from infrastructure.io.downloader import HttpDownloader, guess_content_type

__all__ = ["HttpDownloader", "guess_content_type"]
