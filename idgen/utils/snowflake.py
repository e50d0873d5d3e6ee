"""
Snowflake ID Allocator Module

A Python implementation of Twitter's Snowflake algorithm for generating unique,
time-ordered 64-bit identifiers. Each node is identified by a datacenter id and
a worker id, so up to 1024 nodes can issue ids without coordinating.

Algorithm Overview:
    The allocator generates 64-bit IDs with the following structure:

    |1 bit|        41 bits          |   5 bits   |  5 bits  |  12 bits  |
    |sign |   timestamp delta       | datacenter |  worker  | sequence  |
    | 0   | milliseconds since epoch|    0-31    |   0-31   |  0-4095   |

    - Sign bit: Always 0 (positive number)
    - Timestamp: 41 bits = ~69 years of milliseconds from the epoch
    - Datacenter ID: 5 bits = 32 datacenters
    - Worker ID: 5 bits = 32 workers per datacenter
    - Sequence: 12 bits = 4096 IDs per millisecond per node

Thread Safety:
    - ``IdAllocator.next_id`` runs entirely under a ``threading.Lock``
    - Decode helpers are pure functions and take no lock

Clock Considerations:
    - Same-millisecond calls are disambiguated by the sequence counter
    - When the sequence is exhausted the allocator polls the clock until the
      next millisecond
    - A clock reading earlier than the last issued timestamp is refused with
      ``ClockRegressionError``

The bit layout is shared with ids already stored by other services, so the
shifts and widths below must not change.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from idgen.core.config import DEFAULT_EPOCH
from idgen.core.exceptions import (
    ClockRegressionError,
    ConfigError,
    TimestampOverflowError,
)
from idgen.core.schema import SnowflakeParts
from idgen.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

WORKER_ID_BITS = 5
DATACENTER_ID_BITS = 5
SEQUENCE_BITS = 12
TIMESTAMP_BITS = 41

MAX_WORKER_ID = (1 << WORKER_ID_BITS) - 1
MAX_DATACENTER_ID = (1 << DATACENTER_ID_BITS) - 1
MAX_SEQUENCE = (1 << SEQUENCE_BITS) - 1
MAX_TIMESTAMP_DELTA = (1 << TIMESTAMP_BITS) - 1
MAX_ID = (1 << 63) - 1

WORKER_ID_SHIFT = SEQUENCE_BITS
DATACENTER_ID_SHIFT = SEQUENCE_BITS + WORKER_ID_BITS
TIMESTAMP_SHIFT = SEQUENCE_BITS + WORKER_ID_BITS + DATACENTER_ID_BITS


def validate_node_id(name: str, value: int, maximum: int) -> None:
    """Raises ``ConfigError`` unless ``value`` is an int in ``[0, maximum]``."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= maximum:
        raise ConfigError(f"{name} can't be greater than {maximum} or less than 0")


def _check_id(snowflake_id: int) -> None:
    if not 0 <= snowflake_id <= MAX_ID:
        raise ValueError(f"{snowflake_id} is not a valid 63-bit snowflake id")


def extract_worker_id(snowflake_id: int) -> int:
    """Returns the worker id encoded in ``snowflake_id``."""
    _check_id(snowflake_id)
    return (snowflake_id >> WORKER_ID_SHIFT) & MAX_WORKER_ID


def extract_datacenter_id(snowflake_id: int) -> int:
    """Returns the datacenter id encoded in ``snowflake_id``."""
    _check_id(snowflake_id)
    return (snowflake_id >> DATACENTER_ID_SHIFT) & MAX_DATACENTER_ID


def extract_sequence(snowflake_id: int) -> int:
    """Returns the in-millisecond sequence encoded in ``snowflake_id``."""
    _check_id(snowflake_id)
    return snowflake_id & MAX_SEQUENCE


def extract_timestamp(snowflake_id: int, epoch: int = DEFAULT_EPOCH) -> int:
    """Returns the millisecond timestamp at which ``snowflake_id`` was issued.

    Args:
        snowflake_id: An id produced by an allocator using ``epoch``.
        epoch: The epoch the allocator was configured with.

    Returns:
        Milliseconds since the Unix epoch.
    """
    _check_id(snowflake_id)
    return ((snowflake_id >> TIMESTAMP_SHIFT) & MAX_TIMESTAMP_DELTA) + epoch


def extract_datetime(snowflake_id: int, epoch: int = DEFAULT_EPOCH) -> datetime:
    """Returns the issue time of ``snowflake_id`` as an aware UTC datetime."""
    return datetime.fromtimestamp(
        extract_timestamp(snowflake_id, epoch) / 1000, tz=timezone.utc
    )


def decode_id(snowflake_id: int, epoch: int = DEFAULT_EPOCH) -> SnowflakeParts:
    """Splits ``snowflake_id`` back into the fields it was composed from."""
    return SnowflakeParts(
        timestamp=extract_timestamp(snowflake_id, epoch),
        datacenter_id=extract_datacenter_id(snowflake_id),
        worker_id=extract_worker_id(snowflake_id),
        sequence=extract_sequence(snowflake_id),
    )


def compose_id(
    timestamp: int,
    datacenter_id: int,
    worker_id: int,
    sequence: int,
    epoch: int = DEFAULT_EPOCH,
) -> int:
    """Packs the given fields into a snowflake id.

    Args:
        timestamp: Milliseconds since the Unix epoch.
        datacenter_id: Datacenter id (0-31).
        worker_id: Worker id (0-31).
        sequence: In-millisecond sequence (0-4095).
        epoch: The epoch the timestamp delta is measured from.

    Returns:
        The 64-bit id.

    Raises:
        ValueError: If any field does not fit its bit width.
    """
    delta = timestamp - epoch
    if not 0 <= delta <= MAX_TIMESTAMP_DELTA:
        raise ValueError(f"Timestamp {timestamp} is outside the range of epoch {epoch}")
    if not 0 <= datacenter_id <= MAX_DATACENTER_ID:
        raise ValueError(f"Datacenter ID must be between 0 and {MAX_DATACENTER_ID}")
    if not 0 <= worker_id <= MAX_WORKER_ID:
        raise ValueError(f"Worker ID must be between 0 and {MAX_WORKER_ID}")
    if not 0 <= sequence <= MAX_SEQUENCE:
        raise ValueError(f"Sequence must be between 0 and {MAX_SEQUENCE}")

    return (
        (delta << TIMESTAMP_SHIFT)
        | (datacenter_id << DATACENTER_ID_SHIFT)
        | (worker_id << WORKER_ID_SHIFT)
        | sequence
    )


def id_from_datetime(dt: datetime, epoch: int = DEFAULT_EPOCH) -> int:
    """Returns the smallest id any node could issue at ``dt``.

    Useful as a bound when filtering stored ids by creation time. Naive
    datetimes are treated as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return compose_id(int(dt.timestamp() * 1000), 0, 0, 0, epoch)


class IdAllocator:
    """A thread-safe Snowflake id allocator.

    Attributes:
        worker_id: The worker id of this node (0-31).
        datacenter_id: The datacenter id of this node (0-31).
        epoch: The custom epoch timestamp in milliseconds.
    """

    def __init__(
        self,
        worker_id: int,
        datacenter_id: int,
        epoch: int = DEFAULT_EPOCH,
        clock: Optional[Clock] = None,
    ):
        """Initializes a new allocator instance.

        Args:
            worker_id: Worker id of this node (0-31).
            datacenter_id: Datacenter id of this node (0-31).
            epoch: The custom epoch timestamp in milliseconds.
            clock: Millisecond clock, the system clock by default.

        Raises:
            ConfigError: If an id is outside 0-31 or the epoch is negative.
        """
        validate_node_id("worker_id", worker_id, MAX_WORKER_ID)
        validate_node_id("datacenter_id", datacenter_id, MAX_DATACENTER_ID)
        if isinstance(epoch, bool) or not isinstance(epoch, int) or epoch < 0:
            raise ConfigError(f"Epoch must be a non-negative integer, got {epoch!r}")

        self._worker_id = worker_id
        self._datacenter_id = datacenter_id
        self._epoch = epoch
        self._clock = clock if clock is not None else SystemClock()
        self._sequence = 0
        self._last_timestamp = -1
        self._lock = threading.Lock()

        logger.info(
            "Id allocator ready: datacenter_id=%d worker_id=%d epoch=%d",
            datacenter_id,
            worker_id,
            epoch,
        )

    @property
    def worker_id(self) -> int:
        return self._worker_id

    @property
    def datacenter_id(self) -> int:
        return self._datacenter_id

    @property
    def epoch(self) -> int:
        return self._epoch

    def _refuse(self, timestamp: int) -> ClockRegressionError:
        error = ClockRegressionError(self._last_timestamp, timestamp)
        logger.error("%s (last=%d, now=%d)", error, self._last_timestamp, timestamp)
        return error

    def _wait_for_next_millis(self, last_timestamp: int) -> int:
        """Polls the clock until it moves past ``last_timestamp``.

        Args:
            last_timestamp: The timestamp of the last generated ID.

        Returns:
            The next millisecond timestamp.

        Raises:
            ClockRegressionError: If the clock moves backward while waiting.
        """
        timestamp = self._clock.now_millis()
        while timestamp <= last_timestamp:
            if timestamp < last_timestamp:
                raise self._refuse(timestamp)
            timestamp = self._clock.now_millis()
        return timestamp

    def next_id(self) -> int:
        """Generates a new unique Snowflake ID.

        Returns:
            A 64-bit unique Snowflake ID.

        Raises:
            ClockRegressionError: If the system clock moves backward.
            TimestampOverflowError: If the clock is outside the epoch's range.
        """
        with self._lock:
            timestamp = self._clock.now_millis()

            if timestamp < self._last_timestamp:
                raise self._refuse(timestamp)

            if timestamp == self._last_timestamp:
                sequence = (self._sequence + 1) & MAX_SEQUENCE
                if sequence == 0:
                    logger.debug(
                        "Sequence exhausted at %d, waiting for next millisecond",
                        timestamp,
                    )
                    timestamp = self._wait_for_next_millis(self._last_timestamp)
            else:
                sequence = 0

            delta = timestamp - self._epoch
            if not 0 <= delta <= MAX_TIMESTAMP_DELTA:
                raise TimestampOverflowError(
                    f"Timestamp {timestamp} does not fit in {TIMESTAMP_BITS} bits"
                    f" from epoch {self._epoch}"
                )

            # Commit only once the id is fully derived.
            self._sequence = sequence
            self._last_timestamp = timestamp

            return (
                (delta << TIMESTAMP_SHIFT)
                | (self._datacenter_id << DATACENTER_ID_SHIFT)
                | (self._worker_id << WORKER_ID_SHIFT)
                | sequence
            )

    def next_id_string(self) -> str:
        """Generates a new id in its decimal string form."""
        return str(self.next_id())

    def next_ids(self, count: int) -> list[int]:
        """Generates ``count`` ids in issue order."""
        if count < 1:
            raise ValueError("count must be a positive integer")
        return [self.next_id() for _ in range(count)]

    def extract_timestamp(self, snowflake_id: int) -> int:
        return extract_timestamp(snowflake_id, self._epoch)

    def decode(self, snowflake_id: int) -> SnowflakeParts:
        return decode_id(snowflake_id, self._epoch)
