"""
Authoritative set of monitored hosts.
"""

import enum
import ipaddress
import logging
import re
import threading

from ..errors import InvalidHost

logger = logging.getLogger(__name__)

_LABEL_RE = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")


class Membership(str, enum.Enum):
    """Outcome of a registry mutation."""

    ADDED = "added"
    ALREADY_PRESENT = "already_present"
    REMOVED = "removed"
    NOT_FOUND = "not_found"


def normalize_host(raw) -> str:
    """
    Validate and canonicalise a host identifier.

    IP literals are returned in canonical form (``ipaddress``), hostnames are
    lower-cased with any trailing dot dropped.

    Args:
        raw: User supplied host string

    Returns:
        Canonical host identifier

    Raises:
        InvalidHost: Empty input, or neither an IP literal nor a DNS hostname
    """
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidHost("Host must be a non-empty string")

    host = raw.strip()
    try:
        return str(ipaddress.ip_address(host))
    except ValueError:
        pass

    name = host.lower().rstrip(".")
    try:
        return str(ipaddress.ip_address(name))
    except ValueError:
        pass

    if not name or len(name) > 253:
        raise InvalidHost(f"Invalid host '{host}'")

    labels = name.split(".")
    if not all(_LABEL_RE.match(label) for label in labels):
        raise InvalidHost(f"Invalid host '{host}': not an IP address or DNS hostname")

    # "256.1.1.1" or "10.1" are malformed addresses, not names
    if labels[-1].isdigit():
        raise InvalidHost(f"Invalid host '{host}': malformed IP address")

    return name


class HostRegistry:
    """Thread-safe set of hosts.

    The scheduler mutates membership while holding its own lock so that
    membership and polling loops change together.
    """

    def __init__(self):
        self._hosts = set()
        self._lock = threading.Lock()

    def add(self, host: str) -> Membership:
        host = normalize_host(host)
        with self._lock:
            if host in self._hosts:
                return Membership.ALREADY_PRESENT
            self._hosts.add(host)
        logger.info(f"Registered host {host}")
        return Membership.ADDED

    def remove(self, host: str) -> Membership:
        with self._lock:
            if host not in self._hosts:
                return Membership.NOT_FOUND
            self._hosts.discard(host)
        logger.info(f"Unregistered host {host}")
        return Membership.REMOVED

    def list(self) -> frozenset:
        """Point-in-time snapshot, safe to iterate during concurrent mutation."""
        with self._lock:
            return frozenset(self._hosts)

    def __contains__(self, host) -> bool:
        with self._lock:
            return host in self._hosts

    def __len__(self) -> int:
        with self._lock:
            return len(self._hosts)
