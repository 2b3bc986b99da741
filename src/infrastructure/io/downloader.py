"""HTTP downloader for source assets."""

import requests
from typing import Optional, Tuple
from urllib.parse import urljoin, urlparse

from domain.exceptions import DownloadError
from domain.models import DownloadedAsset
from shared.logging import get_logger
from shared.retry import retry_with_backoff

logger = get_logger(__name__)

REDIRECT_CODES = (301, 302, 307, 308)
MAX_REDIRECTS = 10
DEFAULT_CONTENT_TYPE = 'application/octet-stream'

EXTENSION_TO_MIME = {
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'gif': 'image/gif',
    'webp': 'image/webp',
    'svg': 'image/svg+xml',
    'heic': 'image/heic',
    'heif': 'image/heif',
    'bmp': 'image/bmp',
    'tif': 'image/tiff',
    'tiff': 'image/tiff',
    'mp4': 'video/mp4',
    'mov': 'video/quicktime',
    'avi': 'video/x-msvideo',
    'mpeg': 'video/mpeg',
    'webm': 'video/webm',
    'pdf': 'application/pdf',
    'zip': 'application/zip',
}

_TRANSIENT = (requests.ConnectionError, requests.Timeout)


def guess_content_type(header_value: Optional[str], fallback_format: Optional[str]) -> str:
    """Header first, then the extension table, then octet-stream."""
    if header_value:
        return header_value
    if fallback_format:
        mime = EXTENSION_TO_MIME.get(fallback_format.lower())
        if mime:
            return mime
    return DEFAULT_CONTENT_TYPE


class HttpDownloader:
    """
    Downloads asset bytes over HTTP/HTTPS.

    Redirects are followed by hand so every hop is checked against the
    redirect status list and the hop limit.
    """

    def __init__(
        self,
        timeout: Tuple[float, float] = (30, 120),
        chunk_size: int = 64 * 1024,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize HTTP downloader.

        Args:
            timeout: (connect, read) timeout in seconds
            chunk_size: Download chunk size in bytes
            session: Optional requests session (shared connection pool)
        """
        self.timeout = timeout
        self.chunk_size = chunk_size
        self._session = session or requests.Session()
        self._logger = get_logger(__name__)

    def supports(self, url: str) -> bool:
        """Check if URL is supported (http/https)."""
        return urlparse(url).scheme in ('http', 'https')

    def download(self, url: str, fallback_format: Optional[str] = None) -> DownloadedAsset:
        """
        Download a URL into memory.

        Args:
            url: URL to download from
            fallback_format: Extension used to guess the content type when the
                response carries none

        Returns:
            DownloadedAsset with bytes, content type and the final URL

        Raises:
            DownloadError: On non-2xx, redirect loops, or network failure after retries
        """
        if not self.supports(url):
            raise DownloadError(f"Unsupported URL scheme: {url}")

        current = url
        for _ in range(MAX_REDIRECTS + 1):
            try:
                response = self._fetch(current)
            except requests.RequestException as e:
                raise DownloadError(f"Failed to download {current}: {e}") from e

            with response:
                if response.status_code in REDIRECT_CODES:
                    location = response.headers.get('Location')
                    if not location:
                        raise DownloadError(
                            f"Redirect {response.status_code} without Location header: {current}"
                        )
                    next_url = urljoin(current, location)
                    self._logger.debug(f"Redirect {response.status_code}: {current} -> {next_url}")
                    current = next_url
                    continue

                if not 200 <= response.status_code < 300:
                    raise DownloadError(f"Failed to download {current}: HTTP {response.status_code}")

                try:
                    data = b''.join(
                        chunk for chunk in response.iter_content(chunk_size=self.chunk_size) if chunk
                    )
                except requests.RequestException as e:
                    raise DownloadError(f"Connection dropped while reading {current}: {e}") from e

                content_type = guess_content_type(
                    response.headers.get('Content-Type'), fallback_format
                )
                self._logger.debug(f"Downloaded {len(data)} bytes ({content_type}) from {current}")
                return DownloadedAsset(data=data, content_type=content_type, final_url=current)

        raise DownloadError(f"Too many redirects (>{MAX_REDIRECTS}) starting at {url}")

    @retry_with_backoff(max_attempts=3, backoff_seconds=2, exceptions=_TRANSIENT)
    def _fetch(self, url: str) -> requests.Response:
        return self._session.get(
            url,
            stream=True,
            allow_redirects=False,
            timeout=self.timeout,
        )
