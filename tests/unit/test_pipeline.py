"""
Unit tests for TransferPipeline.
"""

from unittest.mock import Mock

import pytest

from application.pipeline import TransferPipeline
from domain.asset_url import decompose
from domain.exceptions import DownloadError, UploadError
from domain.models import DestinationCredentials, DownloadedAsset, TransferStatus, UploadStatus
from shared.metrics import TransferMetrics

URL = "https://res.cloudinary.com/oldest/image/upload/v1/products/photo.jpg"


@pytest.fixture
def provider():
    provider = Mock()
    provider.download.return_value = DownloadedAsset(
        data=b"12345", content_type="image/jpeg", final_url=URL
    )
    provider.upload.return_value = UploadStatus.OK
    return provider


@pytest.fixture
def credentials():
    return DestinationCredentials("new", "k", "s")


@pytest.fixture
def ref():
    return decompose(URL)


class TestTransferPipeline:
    """Test TransferPipeline."""

    def test_copied(self, provider, credentials, ref):
        metrics = TransferMetrics()
        pipeline = TransferPipeline(provider, metrics=metrics, logger=Mock())

        outcome = pipeline.transfer(ref, credentials)

        assert outcome.status == TransferStatus.COPIED
        assert outcome.bytes_transferred == 5
        assert outcome.content_type == "image/jpeg"
        provider.download.assert_called_once_with(URL, fallback_format="jpg")
        provider.upload.assert_called_once_with(ref, b"12345", "image/jpeg", credentials)
        assert metrics.get_counter('bytes_transferred') == 5

    def test_exists(self, provider, credentials, ref):
        provider.upload.return_value = UploadStatus.EXISTS

        outcome = TransferPipeline(provider, logger=Mock()).transfer(ref, credentials)

        assert outcome.status == TransferStatus.EXISTS
        assert outcome.success is True

    def test_download_error_is_failed_outcome(self, provider, credentials, ref):
        provider.download.side_effect = DownloadError("HTTP 404")

        outcome = TransferPipeline(provider, logger=Mock()).transfer(ref, credentials)

        assert outcome.status == TransferStatus.FAILED
        assert "404" in outcome.reason
        provider.upload.assert_not_called()

    def test_upload_error_is_failed_outcome(self, provider, credentials, ref):
        provider.upload.side_effect = UploadError("rejected")

        outcome = TransferPipeline(provider, logger=Mock()).transfer(ref, credentials)

        assert outcome.status == TransferStatus.FAILED
        assert outcome.reason.startswith("upload:")

    def test_downloads_from_latest_source_account(self, provider, credentials, ref):
        """Test older account URLs are fetched from the most recent source."""
        pipeline = TransferPipeline(provider, source_accounts=["oldest", "older", "latest"], logger=Mock())

        outcome = pipeline.transfer(ref, credentials)

        provider.download.assert_called_once_with(
            "https://res.cloudinary.com/latest/image/upload/v1/products/photo.jpg",
            fallback_format="jpg",
        )
        assert outcome.asset_ref.source_url == URL

    def test_single_source_untouched(self, provider, ref):
        pipeline = TransferPipeline(provider, source_accounts=["oldest"], logger=Mock())

        assert pipeline.download_url(ref) == URL
