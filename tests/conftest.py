import sys
import os

import pytest

# Ensure src/ is on sys.path so the layer packages are importable
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
SRC = os.path.join(ROOT, 'src')
if SRC not in sys.path:
    sys.path.insert(0, SRC)


@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch):
    """Retries never wait in tests."""
    monkeypatch.setattr('shared.retry.time.sleep', lambda seconds: None)
