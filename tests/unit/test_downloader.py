"""
Unit tests for HttpDownloader.
"""

from unittest.mock import MagicMock, Mock

import pytest
import requests

from domain.exceptions import DownloadError
from infrastructure.io.downloader import HttpDownloader, guess_content_type, MAX_REDIRECTS


def make_response(status=200, body=b"", headers=None):
    response = MagicMock()
    response.status_code = status
    response.headers = headers or {}
    response.iter_content.return_value = [body] if body else []
    return response


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


class TestGuessContentType:
    """Test content type fallback chain."""

    def test_header_wins(self):
        assert guess_content_type("image/webp", "jpg") == "image/webp"

    def test_extension_table(self):
        assert guess_content_type(None, "JPG") == "image/jpeg"
        assert guess_content_type("", "mp4") == "video/mp4"

    def test_octet_stream(self):
        assert guess_content_type(None, "xyz") == "application/octet-stream"
        assert guess_content_type(None, None) == "application/octet-stream"


class TestHttpDownloader:
    """Test HttpDownloader."""

    def test_supports(self):
        downloader = HttpDownloader()

        assert downloader.supports("https://example.com/a.jpg")
        assert downloader.supports("http://example.com/a.jpg")
        assert not downloader.supports("ftp://example.com/a.jpg")

    def test_download_success(self, session):
        session.get.return_value = make_response(
            body=b"bytes", headers={'Content-Type': 'image/png'}
        )

        asset = HttpDownloader(session=session).download("https://cdn.example.com/a.png")

        assert asset.data == b"bytes"
        assert asset.content_type == "image/png"
        assert asset.final_url == "https://cdn.example.com/a.png"
        kwargs = session.get.call_args[1]
        assert kwargs['allow_redirects'] is False
        assert kwargs['stream'] is True

    def test_content_type_from_format(self, session):
        session.get.return_value = make_response(body=b"x")

        asset = HttpDownloader(session=session).download("https://a/b", fallback_format="gif")

        assert asset.content_type == "image/gif"

    def test_follows_relative_redirect(self, session):
        """Test relative Location headers are resolved against the current URL."""
        session.get.side_effect = [
            make_response(302, headers={'Location': '/moved/a.jpg'}),
            make_response(301, headers={'Location': 'https://other.example.com/a.jpg'}),
            make_response(body=b"ok"),
        ]

        asset = HttpDownloader(session=session).download("https://cdn.example.com/orig/a.jpg")

        urls = [c[0][0] for c in session.get.call_args_list]
        assert urls == [
            "https://cdn.example.com/orig/a.jpg",
            "https://cdn.example.com/moved/a.jpg",
            "https://other.example.com/a.jpg",
        ]
        assert asset.final_url == "https://other.example.com/a.jpg"

    def test_redirect_without_location(self, session):
        session.get.return_value = make_response(307)

        with pytest.raises(DownloadError, match="Location"):
            HttpDownloader(session=session).download("https://a/b.jpg")

    def test_too_many_redirects(self, session):
        session.get.return_value = make_response(308, headers={'Location': '/loop'})

        with pytest.raises(DownloadError, match="Too many redirects"):
            HttpDownloader(session=session).download("https://a/loop")

        assert session.get.call_count == MAX_REDIRECTS + 1

    def test_non_2xx_is_failure(self, session):
        session.get.return_value = make_response(404)

        with pytest.raises(DownloadError, match="404"):
            HttpDownloader(session=session).download("https://a/missing.jpg")

        assert session.get.call_count == 1

    def test_transient_errors_retried(self, session):
        """Test connection errors are retried before giving up."""
        session.get.side_effect = [
            requests.ConnectionError("reset"),
            requests.Timeout("slow"),
            make_response(body=b"finally"),
        ]

        asset = HttpDownloader(session=session).download("https://a/b.jpg")

        assert asset.data == b"finally"
        assert session.get.call_count == 3

    def test_retries_exhausted(self, session):
        session.get.side_effect = requests.ConnectionError("down")

        with pytest.raises(DownloadError):
            HttpDownloader(session=session).download("https://a/b.jpg")

        assert session.get.call_count == 3

    def test_unsupported_scheme(self, session):
        with pytest.raises(DownloadError):
            HttpDownloader(session=session).download("file:///etc/passwd")
        session.get.assert_not_called()
