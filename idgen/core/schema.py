from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

# Highest value representable without touching the sign bit.
MAX_SNOWFLAKE_ID = (1 << 63) - 1


class SnowflakeParts(BaseModel):
    """The fields a snowflake id is composed from.

    Args:
        timestamp (int): Issue time in milliseconds since the Unix epoch.
        datacenter_id (int): Datacenter id of the issuing node.
        worker_id (int): Worker id of the issuing node.
        sequence (int): In-millisecond counter of the issuing node.
    """

    timestamp: int = Field(..., ge=0, description="Issue time in epoch milliseconds")
    datacenter_id: int = Field(..., ge=0, le=31)
    worker_id: int = Field(..., ge=0, le=31)
    sequence: int = Field(..., ge=0, le=4095)

    @property
    def issued_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SnowflakeRecord(BaseModel):
    """Base model for records whose primary key is allocator-assigned.

    Args:
        id (Optional[int]): Snowflake id, unset until ``assign_id`` is called.
        create_time (datetime): Creation time, defaults to now (UTC).
        update_time (datetime): Last update time, defaults to now (UTC).
    """

    id: Optional[int] = Field(
        None,
        ge=0,
        le=MAX_SNOWFLAKE_ID,
        description="Snowflake id, serialized as a string in JSON",
        examples=["1152921504606846976"],
    )
    create_time: datetime = Field(default_factory=_utcnow)
    update_time: datetime = Field(default_factory=_utcnow)

    @field_validator("id", mode="before")
    @classmethod
    def parse_id(cls, value):
        """Accept ids sent back by clients as decimal strings."""
        if isinstance(value, str):
            if not value.isdigit():
                raise ValueError("id must be a decimal string of digits")
            return int(value)
        return value

    @field_serializer("id", when_used="json")
    def serialize_id(self, value: Optional[int]) -> Optional[str]:
        # JavaScript numbers lose precision above 2**53.
        return None if value is None else str(value)

    def assign_id(self, allocator) -> int:
        """Fill ``id`` from ``allocator`` unless it is already set.

        Args:
            allocator (IdAllocator): The allocator to draw the id from.

        Returns:
            int: The record's id.
        """
        if self.id is None:
            self.id = allocator.next_id()
        return self.id
