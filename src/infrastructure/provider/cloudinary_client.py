"""
Cloudinary provider client.

Talks to the Cloudinary REST API with plain ``requests``: basic auth for the
Admin API (usage, resource lookup) and signed multipart POSTs for uploads.
Source bytes are fetched through HttpDownloader.
"""

import hashlib
import time
from typing import Dict, Optional, Tuple
from urllib.parse import quote

import requests

from domain.exceptions import ExistenceCheckError, RateLimitedError, UploadError
from domain.models import (
    AssetRef,
    DestinationCredentials,
    DownloadedAsset,
    ResourceType,
    UploadStatus,
)
from infrastructure.io.downloader import HttpDownloader
from shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_API_BASE = "https://api.cloudinary.com"
RATE_LIMIT_CODES = (420, 429)
_UNSIGNED_PARAMS = {"file", "api_key", "resource_type", "cloud_name"}


def sign_params(params: Dict[str, str], api_secret: str) -> str:
    """
    Cloudinary request signature.

    SHA-1 over the sorted ``key=value`` pairs joined with ``&``, followed by
    the API secret. Empty values and unsigned keys are left out.
    """
    to_sign = "&".join(
        f"{key}={value}"
        for key, value in sorted(params.items())
        if key not in _UNSIGNED_PARAMS and value not in (None, "")
    )
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error or payload)


class CloudinaryClient:
    """Implements IProviderClient for Cloudinary accounts."""

    def __init__(
        self,
        downloader: Optional[HttpDownloader] = None,
        api_base: str = DEFAULT_API_BASE,
        request_timeout: float = 30,
        upload_timeout: Tuple[float, float] = (30, 120),
        session: Optional[requests.Session] = None
    ):
        """
        Initialize Cloudinary client.

        Args:
            downloader: Downloader for source URLs
            api_base: API root, overridable for tests and proxies
            request_timeout: Timeout for Admin API calls in seconds
            upload_timeout: (connect, read) timeout for uploads
            session: Optional requests session
        """
        self.api_base = api_base.rstrip("/")
        self.request_timeout = request_timeout
        self.upload_timeout = upload_timeout
        self._session = session or requests.Session()
        self._downloader = downloader or HttpDownloader(session=self._session)
        self._logger = get_logger(__name__)

    def _url(self, credentials: DestinationCredentials, *parts: str) -> str:
        return "/".join([self.api_base, "v1_1", credentials.account_name, *parts])

    def download(self, url: str, fallback_format: Optional[str] = None) -> DownloadedAsset:
        """Fetch source bytes."""
        return self._downloader.download(url, fallback_format=fallback_format)

    def ping(self, credentials: DestinationCredentials) -> bool:
        """
        Validate credentials with one cheap authenticated call.

        Returns:
            True if the account accepted the key/secret pair
        """
        if not credentials.validate():
            return False

        try:
            response = self._session.get(
                self._url(credentials, "usage"),
                auth=(credentials.api_key, credentials.api_secret),
                timeout=self.request_timeout,
            )
        except requests.RequestException as e:
            self._logger.error(f"Credential check for '{credentials.account_name}' failed: {e}")
            return False

        if response.status_code == 200:
            return True

        self._logger.error(
            f"Credential check for '{credentials.account_name}' rejected: "
            f"HTTP {response.status_code} {_error_message(response)}"
        )
        return False

    def exists(
        self,
        public_id: str,
        resource_type: ResourceType,
        credentials: DestinationCredentials
    ) -> bool:
        """
        Check if an asset exists at the destination.

        Raises:
            RateLimitedError: If the Admin API hourly limit is hit
            ExistenceCheckError: For any other non-404 failure
        """
        url = self._url(
            credentials,
            "resources",
            ResourceType(resource_type).value,
            "upload",
            quote(public_id, safe="/"),
        )
        try:
            response = self._session.get(
                url,
                auth=(credentials.api_key, credentials.api_secret),
                timeout=self.request_timeout,
            )
        except requests.RequestException as e:
            raise ExistenceCheckError(f"Existence check failed for {public_id}: {e}") from e

        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        if response.status_code in RATE_LIMIT_CODES:
            raise RateLimitedError(
                f"Rate limited checking {public_id}: {_error_message(response)}",
                status_code=response.status_code,
            )
        raise ExistenceCheckError(
            f"Existence check for {public_id} returned HTTP {response.status_code}: "
            f"{_error_message(response)}",
            status_code=response.status_code,
        )

    def upload_params(self, asset_ref: AssetRef) -> Dict[str, str]:
        """Upload parameters that keep the asset's folder/name/format and never overwrite."""
        params = {
            "public_id": asset_ref.bare_name,
            "overwrite": "false",
            "unique_filename": "false",
            "use_filename": "false",
            "invalidate": "false",
            "type": "upload",
            "timestamp": str(int(time.time())),
        }
        if asset_ref.folder:
            params["folder"] = asset_ref.folder
        if asset_ref.format:
            params["format"] = asset_ref.format
        return params

    def upload(
        self,
        asset_ref: AssetRef,
        data: bytes,
        content_type: str,
        credentials: DestinationCredentials
    ) -> UploadStatus:
        """
        Upload bytes under the asset's public id.

        Returns:
            UploadStatus.OK for a new asset, UploadStatus.EXISTS when the id
            was already taken

        Raises:
            UploadError: If the upload is rejected for any other reason
        """
        params = self.upload_params(asset_ref)
        params["signature"] = sign_params(params, credentials.api_secret)
        params["api_key"] = credentials.api_key

        url = self._url(credentials, ResourceType(asset_ref.resource_type).value, "upload")
        try:
            response = self._session.post(
                url,
                data=params,
                files={"file": (asset_ref.filename, data, content_type)},
                timeout=self.upload_timeout,
            )
        except requests.RequestException as e:
            raise UploadError(f"Upload of {asset_ref.public_id} failed: {e}") from e

        if response.status_code == 200:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            if isinstance(payload, dict) and payload.get("existing"):
                self._logger.info(f"Destination already has {asset_ref.public_id}")
                return UploadStatus.EXISTS
            return UploadStatus.OK

        message = _error_message(response)
        if "already exists" in message.lower():
            self._logger.info(f"Destination already has {asset_ref.public_id}")
            return UploadStatus.EXISTS

        raise UploadError(
            f"Upload of {asset_ref.public_id} rejected: HTTP {response.status_code} {message}"
        )
