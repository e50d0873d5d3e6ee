"""
Node Identity Resolution

Supplies the ``(worker_id, datacenter_id)`` pair an allocator is built with.
Explicitly configured ids are always preferred. When none are configured the
pair is derived from the host's local IPv4 address:

    worker_id     = ipv4_as_int & 31
    datacenter_id = 0 if worker_id > 30 else worker_id + 1

Hosts whose addresses share the low five bits end up with the same pair, so
the derived identity is only safe when a single node issues ids for a given
storage namespace.
"""

import ipaddress
import logging
import socket
from typing import Callable, NamedTuple, Optional, Protocol

from idgen.core.exceptions import ConfigError
from idgen.utils.snowflake import MAX_DATACENTER_ID, MAX_WORKER_ID, validate_node_id

logger = logging.getLogger(__name__)

LOOPBACK_ADDRESS = "127.0.0.1"

# Used only to pick the outbound interface; nothing is sent.
_ROUTE_PROBE_ADDRESS = ("10.255.255.255", 1)

_SITE_LOCAL_NETWORKS = (
    ipaddress.IPv4Network("10.0.0.0/8"),
    ipaddress.IPv4Network("172.16.0.0/12"),
    ipaddress.IPv4Network("192.168.0.0/16"),
)


class NodeIdentity(NamedTuple):
    worker_id: int
    datacenter_id: int


class NodeIdentityResolver(Protocol):
    def resolve(self) -> NodeIdentity: ...


class StaticNodeIdentityResolver:
    """Returns an explicitly assigned node identity."""

    def __init__(self, worker_id: int, datacenter_id: int):
        validate_node_id("worker_id", worker_id, MAX_WORKER_ID)
        validate_node_id("datacenter_id", datacenter_id, MAX_DATACENTER_ID)
        self._identity = NodeIdentity(worker_id, datacenter_id)

    def resolve(self) -> NodeIdentity:
        return self._identity


def _is_site_local(address: ipaddress.IPv4Address) -> bool:
    return any(address in network for network in _SITE_LOCAL_NETWORKS)


def _candidate_addresses() -> list[str]:
    """Collects IPv4 addresses this host is reachable on."""
    candidates = []

    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET)
        candidates.extend(sockaddr[0] for *_, sockaddr in infos)
    except OSError as e:
        logger.debug("Host name lookup failed: %s", e)

    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(_ROUTE_PROBE_ADDRESS)
            candidates.append(sock.getsockname()[0])
    except OSError as e:
        logger.debug("Outbound route lookup failed: %s", e)

    return candidates


def select_ipv4_address(candidates: list[str]) -> str:
    """Picks the address that best identifies this host.

    Loopback and unspecified addresses are skipped. The first public address
    wins, then the first site-local one, then the loopback address.

    Args:
        candidates (list[str]): IPv4 addresses in discovery order.

    Returns:
        str: The selected address.
    """
    site_local = None
    for candidate in candidates:
        try:
            address = ipaddress.IPv4Address(candidate)
        except ipaddress.AddressValueError:
            logger.debug("Skipping non-IPv4 address: %s", candidate)
            continue

        if address.is_loopback or address.is_unspecified:
            continue
        if not _is_site_local(address):
            return str(address)
        if site_local is None:
            site_local = str(address)

    return site_local if site_local is not None else LOOPBACK_ADDRESS


def local_ipv4_address() -> str:
    """Returns the local IPv4 address used to derive a node identity."""
    return select_ipv4_address(_candidate_addresses())


class LocalAddressNodeIdentityResolver:
    """Derives a node identity from the host's local IPv4 address.

    Args:
        address_provider (Callable[[], str]): Returns the dotted IPv4 address
            to derive from. Defaults to ``local_ipv4_address``.
    """

    def __init__(self, address_provider: Callable[[], str] = local_ipv4_address):
        self._address_provider = address_provider

    def resolve(self) -> NodeIdentity:
        address = self._address_provider()
        try:
            address_value = int(ipaddress.IPv4Address(address))
        except ipaddress.AddressValueError as e:
            raise ConfigError(f"Cannot derive node identity from {address!r}") from e

        worker_id = address_value & MAX_WORKER_ID
        datacenter_id = 0 if worker_id >= MAX_DATACENTER_ID else worker_id + 1

        logger.warning(
            "No node ids configured, derived worker_id=%d datacenter_id=%d from %s."
            " Configure explicit ids when several nodes share a namespace.",
            worker_id,
            datacenter_id,
            address,
        )
        return NodeIdentity(worker_id, datacenter_id)


def resolve_node_identity(
    worker_id: Optional[int],
    datacenter_id: Optional[int],
    fallback: Optional[NodeIdentityResolver] = None,
) -> NodeIdentity:
    """Resolves the node identity from explicit ids or a fallback resolver.

    Args:
        worker_id (Optional[int]): Explicit worker id, or None.
        datacenter_id (Optional[int]): Explicit datacenter id, or None.
        fallback (Optional[NodeIdentityResolver]): Used when neither id is set.
            Defaults to ``LocalAddressNodeIdentityResolver``.

    Returns:
        NodeIdentity: The resolved pair.

    Raises:
        ConfigError: If only one of the two ids is set, or an id is out of range.
    """
    if worker_id is not None and datacenter_id is not None:
        return StaticNodeIdentityResolver(worker_id, datacenter_id).resolve()

    if worker_id is not None or datacenter_id is not None:
        raise ConfigError(
            "worker_id and datacenter_id must be configured together"
            f" (got worker_id={worker_id}, datacenter_id={datacenter_id})"
        )

    resolver = fallback if fallback is not None else LocalAddressNodeIdentityResolver()
    return resolver.resolve()
