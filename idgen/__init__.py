"""Time-ordered 64-bit unique id allocator."""

from idgen.core.config import DEFAULT_EPOCH, Settings, get_settings
from idgen.core.exceptions import (
    ClockRegressionError,
    ConfigError,
    IdAllocatorError,
    TimestampOverflowError,
)
from idgen.core.schema import SnowflakeParts, SnowflakeRecord
from idgen.main import create_id_allocator
from idgen.services.node_identity import (
    LocalAddressNodeIdentityResolver,
    NodeIdentity,
    NodeIdentityResolver,
    StaticNodeIdentityResolver,
    local_ipv4_address,
    resolve_node_identity,
)
from idgen.utils.clock import Clock, SystemClock
from idgen.utils.snowflake import (
    IdAllocator,
    compose_id,
    decode_id,
    extract_datacenter_id,
    extract_datetime,
    extract_sequence,
    extract_timestamp,
    extract_worker_id,
    id_from_datetime,
)

__all__ = [
    "DEFAULT_EPOCH",
    "Clock",
    "ClockRegressionError",
    "ConfigError",
    "IdAllocator",
    "IdAllocatorError",
    "LocalAddressNodeIdentityResolver",
    "NodeIdentity",
    "NodeIdentityResolver",
    "Settings",
    "SnowflakeParts",
    "SnowflakeRecord",
    "StaticNodeIdentityResolver",
    "SystemClock",
    "TimestampOverflowError",
    "compose_id",
    "create_id_allocator",
    "decode_id",
    "extract_datacenter_id",
    "extract_datetime",
    "extract_sequence",
    "extract_timestamp",
    "extract_worker_id",
    "get_settings",
    "id_from_datetime",
    "local_ipv4_address",
    "resolve_node_identity",
]
