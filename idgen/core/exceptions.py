class IdAllocatorError(Exception):
    """Base class for all id allocator errors."""

    pass


class ConfigError(IdAllocatorError, ValueError):
    """Raised when the allocator or its node identity is misconfigured."""

    pass


class ClockRegressionError(IdAllocatorError):
    """Raised when the clock reports a time before the last issued timestamp.

    Args:
        last_timestamp (int): The last millisecond an id was issued for.
        current_timestamp (int): The millisecond the clock reported.
    """

    def __init__(self, last_timestamp: int, current_timestamp: int):
        self.last_timestamp = last_timestamp
        self.current_timestamp = current_timestamp
        self.drift_millis = last_timestamp - current_timestamp
        super().__init__(
            f"Clock moved backwards. Refusing to generate id for {self.drift_millis}ms"
        )

    def __reduce__(self):
        return self.__class__, (self.last_timestamp, self.current_timestamp)


class TimestampOverflowError(IdAllocatorError):
    """Raised when a timestamp does not fit the 41-bit window of the epoch."""

    pass
