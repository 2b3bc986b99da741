"""Test transfer metrics."""

from unittest.mock import patch

import pytest

from shared.metrics import TransferMetrics


def test_metrics_timer():
    """Test timer functionality."""
    metrics = TransferMetrics()

    with patch('shared.metrics.time.monotonic', side_effect=[10.0, 12.5]):
        metrics.start_timer('download')
        elapsed = metrics.stop_timer('download')

    assert elapsed == 2.5
    assert metrics.get_summary()['phases']['download']['count'] == 1


def test_stop_unknown_timer():
    metrics = TransferMetrics()

    with pytest.raises(KeyError):
        metrics.stop_timer('upload')


def test_metrics_counter():
    """Test counter functionality."""
    metrics = TransferMetrics()

    metrics.increment('resolver.rate_limited')
    metrics.increment('resolver.rate_limited')
    metrics.increment('bytes_transferred', amount=2048)

    assert metrics.get_counter('resolver.rate_limited') == 2
    assert metrics.get_counter('bytes_transferred') == 2048
    assert metrics.get_counter('missing') == 0


def test_metrics_summary():
    """Test summary generation."""
    metrics = TransferMetrics()

    for _ in range(3):
        metrics.start_timer('upload')
        metrics.stop_timer('upload')
    metrics.increment('copied', 3)

    summary = metrics.get_summary()

    assert summary['counters'] == {'copied': 3}
    assert summary['phases']['upload']['count'] == 3
    assert summary['phases']['upload']['max'] >= summary['phases']['upload']['avg']

    text = metrics.format_summary()
    assert "TRANSFER METRICS" in text
    assert "copied: 3" in text
    assert "upload: n=3" in text


def test_reset():
    metrics = TransferMetrics()
    metrics.increment('copied')

    metrics.reset()

    assert metrics.get_summary()['counters'] == {}
