"""
Id Allocator Composition Root

Builds a ready-to-use ``IdAllocator`` from settings. Callers create the
allocator once at startup and pass the instance to whatever needs ids:

    from idgen.main import create_id_allocator

    allocator = create_id_allocator()
    order_id = allocator.next_id()

Node identity:
    - ``IDGEN_WORKER_ID`` and ``IDGEN_DATACENTER_ID`` set: used as-is
    - Neither set: derived from the host's local IPv4 address (or from the
      ``resolver`` argument when given)
    - Only one set: rejected with ``ConfigError``

Nothing here is cached; every call returns a new allocator with its own
sequence state.
"""

from typing import Optional

from pydantic import ValidationError

from idgen.core.config import Settings, get_settings
from idgen.core.exceptions import ConfigError
from idgen.services.logger import setup_logger
from idgen.services.node_identity import NodeIdentityResolver, resolve_node_identity
from idgen.utils.clock import Clock
from idgen.utils.snowflake import IdAllocator


def create_id_allocator(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
    resolver: Optional[NodeIdentityResolver] = None,
) -> IdAllocator:
    """Create an allocator for this node.

    Args:
        settings (Optional[Settings]): Settings to build from. Defaults to the
            environment-backed settings.
        clock (Optional[Clock]): Millisecond clock. Defaults to the system clock.
        resolver (Optional[NodeIdentityResolver]): Fallback used when no node
            ids are configured.

    Returns:
        IdAllocator: A new allocator instance.

    Raises:
        ConfigError: If the environment settings cannot be loaded, or the
            configured node ids or epoch are invalid.
    """
    if settings is None:
        try:
            settings = get_settings()
        except ValidationError as e:
            raise ConfigError(f"Invalid IDGEN_* settings: {e}") from e

    logger = setup_logger(settings.LOG_LEVEL)

    identity = resolve_node_identity(
        settings.WORKER_ID, settings.DATACENTER_ID, fallback=resolver
    )
    logger.debug("Resolved node identity: %s", identity)

    return IdAllocator(
        worker_id=identity.worker_id,
        datacenter_id=identity.datacenter_id,
        epoch=settings.EPOCH,
        clock=clock,
    )
