"""
Parsers for ping and traceroute text output.
"""

import ipaddress
import re
from typing import Any, Dict, Optional

_PING_TIME_RE = re.compile(r"time[=<]\s*([\d.]+)\s*ms")
_PING_LOSS_RE = re.compile(r"([\d.]+)% packet loss")
_TRACE_HEADER_RE = re.compile(r"^traceroute(?:6)? to (\S+) \(([^)]+)\)", re.MULTILINE)

# Phrases ping prints when the network (not the timeout) rejected the probe
UNREACHABLE_MARKERS = (
    "destination host unreachable",
    "destination net unreachable",
    "network is unreachable",
    "name or service not known",
    "temporary failure in name resolution",
    "unknown host",
    "cannot resolve",
)


def parse_ping_latency(output: str) -> Optional[float]:
    """
    Extract the round trip time of the first echo reply.

    Args:
        output: stdout of ``ping -c 1``

    Returns:
        Latency in ms, or None if no reply line is present
    """
    match = _PING_TIME_RE.search(output)
    if match:
        return float(match.group(1))
    return None


def parse_packet_loss(output: str) -> Optional[float]:
    """Extract the packet loss percentage from a ping summary line."""
    match = _PING_LOSS_RE.search(output)
    if match:
        return float(match.group(1))
    return None


def looks_unreachable(output: str) -> bool:
    """Whether ping output reports an explicit unreachable / resolution error."""
    lowered = output.lower()
    return any(marker in lowered for marker in UNREACHABLE_MARKERS)


def parse_traceroute_destination(output: str) -> Optional[str]:
    """Return the resolved destination address from the traceroute header."""
    match = _TRACE_HEADER_RE.search(output)
    if match:
        return match.group(2)
    return None


def _is_ip(token: str) -> bool:
    try:
        ipaddress.ip_address(token)
        return True
    except ValueError:
        return False


def parse_traceroute_hop(output: str, ttl: int) -> Dict[str, Any]:
    """
    Parse the line for a single TTL out of ``traceroute -n`` output.

    Handles lines such as::

         3  10.0.0.1  12.345 ms  11.201 ms  *
         3  * * *
         3  10.0.0.1  12.3 ms 10.0.0.2  11.9 ms !H

    When several addresses answer the same TTL (ECMP), the one with the
    most replies wins and only its round trip times are kept.

    Args:
        output: traceroute stdout
        ttl: Hop number to extract

    Returns:
        Dictionary with ``ttl``, ``ip`` (None if silent), ``rtts`` and
        ``destination`` (resolved address from the header, if present)
    """
    hop_data = {
        "ttl": ttl,
        "ip": None,
        "rtts": [],
        "destination": parse_traceroute_destination(output),
    }

    for line in output.splitlines():
        tokens = line.split()
        if not tokens or tokens[0] != str(ttl):
            continue

        rtts_by_ip: Dict[str, list] = {}
        order = []
        current_ip = None
        i = 1
        while i < len(tokens):
            token = tokens[i]
            if _is_ip(token):
                current_ip = token
                if current_ip not in rtts_by_ip:
                    rtts_by_ip[current_ip] = []
                    order.append(current_ip)
            elif i + 1 < len(tokens) and tokens[i + 1] == "ms" and current_ip:
                try:
                    rtts_by_ip[current_ip].append(float(token))
                except ValueError:
                    pass
                i += 1
            # "*" timeouts and "!H"-style annotations carry no sample
            i += 1

        if order:
            best = max(order, key=lambda ip: (len(rtts_by_ip[ip]), -order.index(ip)))
            hop_data["ip"] = best
            hop_data["rtts"] = rtts_by_ip[best]
        break

    return hop_data
