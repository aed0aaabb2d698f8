"""
Pytest configuration for the pipeline_transform tests.

Puts the project root on the Python path so the tests can import the
package without installing it, and provides shared sources.
"""

import sys
from pathlib import Path

# Add the parent directory to the Python path
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

import pytest

from pipeline_transform import reset_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Every test starts from default settings, ignoring the caller's environment"""
    for name in ("LOG_LEVEL", "INSPECT_LEVEL", "BYTE_CHUNK_SIZE", "CLOSE_SOURCE"):
        monkeypatch.delenv(f"PIPELINE_TRANSFORM_{name}", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def infinite_stream():
    """Factory for an endless async counter 0, 1, 2, ..."""
    def make():
        async def counter():
            i = 0
            while True:
                yield i
                i += 1
        return counter()
    return make


@pytest.fixture
def tracked_source():
    """A sync generator over 1..5 that records how many items were pulled"""
    class Tracker:
        def __init__(self):
            self.pulled = 0
            self.closed = False

        def source(self, items=(1, 2, 3, 4, 5)):
            try:
                for item in items:
                    self.pulled += 1
                    yield item
            finally:
                self.closed = True

    return Tracker()
