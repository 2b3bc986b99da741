"""
Unit tests for shared secret encryption and retry helpers.
"""

from unittest.mock import Mock, patch

import pytest

from domain.exceptions import ConfigurationError
from shared.retry import compute_backoff, retry_with_backoff
from shared.secrets import SecretBox


class TestSecretBox:
    """Test SecretBox."""

    def test_round_trip_with_fernet_key(self):
        box = SecretBox(SecretBox.generate_key())

        token = box.encrypt("api-secret")

        assert token != "api-secret"
        assert box.decrypt(token) == "api-secret"

    def test_passphrase_key(self):
        """Test arbitrary passphrases are accepted and stable."""
        token = SecretBox("correct horse battery staple").encrypt("s")

        assert SecretBox("correct horse battery staple").decrypt(token) == "s"

    def test_wrong_key(self):
        token = SecretBox("one").encrypt("s")

        with pytest.raises(ConfigurationError):
            SecretBox("two").decrypt(token)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            SecretBox("k").encrypt("")

    def test_dev_key_warns(self):
        with patch('shared.secrets.logger') as mock_logger:
            SecretBox()

        mock_logger.warning.assert_called_once()


class TestRetry:
    """Test retry_with_backoff."""

    def test_retries_listed_exceptions(self):
        func = Mock(side_effect=[ConnectionError("a"), ConnectionError("b"), "ok"])
        func.__name__ = "func"
        wrapped = retry_with_backoff(max_attempts=3, exceptions=(ConnectionError,))(func)

        assert wrapped() == "ok"
        assert func.call_count == 3

    def test_gives_up_after_max_attempts(self):
        func = Mock(side_effect=ConnectionError("down"))
        func.__name__ = "func"
        wrapped = retry_with_backoff(max_attempts=2, exceptions=(ConnectionError,))(func)

        with pytest.raises(ConnectionError):
            wrapped()
        assert func.call_count == 2

    def test_other_exceptions_not_retried(self):
        func = Mock(side_effect=ValueError("bad"))
        func.__name__ = "func"
        wrapped = retry_with_backoff(max_attempts=3, exceptions=(ConnectionError,))(func)

        with pytest.raises(ValueError):
            wrapped()
        assert func.call_count == 1

    def test_backoff_exponential_and_capped(self):
        assert compute_backoff(1, 2, jitter=False) == 2
        assert compute_backoff(3, 2, jitter=False) == 8
        assert compute_backoff(10, 2, jitter=False, max_backoff=30) == 30
        assert compute_backoff(2, 2, exponential=False, jitter=False) == 4
