"""
Unit tests for ExistenceResolver.
"""

from unittest.mock import Mock

import pytest

from application.resolver import ExistenceResolver
from domain.asset_url import decompose
from domain.exceptions import ExistenceCheckError, RateLimitedError
from domain.models import DestinationCredentials, ResolveMode
from infrastructure.storage.checkpoint_store import FileCheckpointStore
from shared.metrics import TransferMetrics


@pytest.fixture
def checkpoint(tmp_path):
    store = FileCheckpointStore(tmp_path / "checkpoint.json")
    store.working_set("new")
    return store


@pytest.fixture
def provider():
    return Mock()


@pytest.fixture
def metrics():
    return TransferMetrics()


@pytest.fixture
def resolver(provider, checkpoint, metrics):
    return ExistenceResolver(
        provider, checkpoint, DestinationCredentials("new", "k", "s"), metrics, logger=Mock()
    )


@pytest.fixture
def ref():
    return decompose("https://res.cloudinary.com/old/image/upload/v1/products/photo.jpg")


class TestCheckpointFast:
    """Test CHECKPOINT_FAST mode."""

    def test_skip_when_in_checkpoint(self, resolver, checkpoint, provider, ref):
        checkpoint.mark_completed(ref.public_id)

        assert resolver.should_skip(ref, ResolveMode.CHECKPOINT_FAST) is True
        provider.exists.assert_not_called()

    def test_no_skip_and_no_network(self, resolver, provider, ref):
        assert resolver.should_skip(ref, ResolveMode.CHECKPOINT_FAST) is False
        provider.exists.assert_not_called()


class TestLiveCheck:
    """Test LIVE_CHECK mode."""

    def test_found_skips_and_marks(self, resolver, provider, checkpoint, ref):
        provider.exists.return_value = True

        assert resolver.should_skip(ref, ResolveMode.LIVE_CHECK) is True
        assert checkpoint.is_completed(ref.public_id)
        provider.exists.assert_called_once_with(
            "products/photo", ref.resource_type, DestinationCredentials("new", "k", "s")
        )

    def test_not_found(self, resolver, provider, checkpoint, ref):
        provider.exists.return_value = False

        assert resolver.should_skip(ref, ResolveMode.LIVE_CHECK) is False
        assert not checkpoint.is_completed(ref.public_id)

    def test_rate_limited_does_not_skip(self, resolver, provider, metrics, ref):
        """Test rate limiting degrades to attempting the upload."""
        provider.exists.side_effect = RateLimitedError("slow down", status_code=420)

        assert resolver.should_skip(ref, ResolveMode.LIVE_CHECK) is False
        assert metrics.get_counter('resolver.rate_limited') == 1
        resolver._logger.warning.assert_called_once()

    def test_check_error_does_not_skip(self, resolver, provider, metrics, ref):
        provider.exists.side_effect = ExistenceCheckError("boom", status_code=500)

        assert resolver.should_skip(ref, ResolveMode.LIVE_CHECK) is False
        assert metrics.get_counter('resolver.check_errors') == 1
        assert "500" in resolver._logger.warning.call_args[0][0]

    def test_existence_check_timed(self, resolver, provider, metrics, ref):
        provider.exists.return_value = False

        resolver.should_skip(ref, ResolveMode.LIVE_CHECK)

        assert metrics.get_summary()['phases']['existence_check']['count'] == 1
