"""
Shared fixtures for the id allocator tests.
"""

import logging
from collections import deque

import pytest

from idgen.core.config import get_settings

# 2024-01-01T00:00:00Z
BASE_MILLIS = 1704067200000


class FakeClock:
    """A controllable millisecond clock.

    Readings queued with ``queue`` are returned first, in order. Once the
    queue is empty the clock keeps returning ``now``.
    """

    def __init__(self, now: int = BASE_MILLIS):
        self.now = now
        self.reads = 0
        self._pending = deque()

    def queue(self, *readings: int) -> None:
        self._pending.extend(readings)

    def now_millis(self) -> int:
        self.reads += 1
        if self._pending:
            return self._pending.popleft()
        return self.now


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    # Keep host configuration out of the tests.
    for name in ("IDGEN_WORKER_ID", "IDGEN_DATACENTER_ID", "IDGEN_EPOCH", "IDGEN_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    idgen_logger = logging.getLogger("idgen")
    level = idgen_logger.level
    yield
    idgen_logger.setLevel(level)
    get_settings.cache_clear()


@pytest.fixture()
def clock():
    return FakeClock()
