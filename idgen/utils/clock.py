import time
from typing import Protocol


class Clock(Protocol):
    """A millisecond-resolution wall clock."""

    def now_millis(self) -> int: ...


class SystemClock:
    """Reads the system wall clock."""

    def now_millis(self) -> int:
        """Returns the current timestamp in milliseconds."""
        return int(time.time() * 1000)
