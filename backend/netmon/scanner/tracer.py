"""
Hop-by-hop route tracer with problem detection.
"""

from abc import ABC, abstractmethod
from functools import lru_cache
import logging
import math
import socket
import subprocess
import time
from typing import Any, Callable, Dict, List, Optional

from ..errors import TraceFailure
from ..models import Hop, Problem, TraceResult
from .parser import looks_unreachable, parse_traceroute_hop

logger = logging.getLogger(__name__)


class HopProber(ABC):
    """Send probes with a fixed TTL and report who answered."""

    @abstractmethod
    def probe_hop(self, host: str, ttl: int, samples: int, timeout: float) -> Dict[str, Any]:
        """
        Probe ``host`` with ``samples`` packets limited to ``ttl`` hops.

        Returns:
            Dictionary with ``ip`` (None if nothing answered), ``rtts`` (list
            of ms values) and ``reached`` (True if the destination answered)
        """
        raise NotImplementedError


class TracerouteHopProber(HopProber):
    """Single-TTL probing through the system ``traceroute`` binary."""

    def __init__(self, traceroute_bin: str = "traceroute"):
        self.traceroute_bin = traceroute_bin

    def _build_cmd(self, host: str, ttl: int, samples: int, timeout: float) -> list:
        return [
            self.traceroute_bin,
            "-n",  # No reverse DNS, names are resolved separately
            "-f",
            str(ttl),  # First TTL
            "-m",
            str(ttl),  # Max TTL
            "-q",
            str(samples),  # Probes per hop
            "-w",
            str(timeout),  # Per-probe wait
            host,
        ]

    def probe_hop(self, host: str, ttl: int, samples: int, timeout: float) -> Dict[str, Any]:
        cmd = self._build_cmd(host, ttl, samples, timeout)
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=samples * timeout + 2,
            )
        except FileNotFoundError:
            raise TraceFailure(
                "traceroute not found. Please install it: apt-get install traceroute (Linux)"
            )
        except subprocess.TimeoutExpired:
            logger.debug(f"traceroute to {host} at ttl {ttl} timed out")
            return {"ip": None, "rtts": [], "reached": False}

        output = (proc.stdout or "") + (proc.stderr or "")
        if proc.returncode != 0 and looks_unreachable(output):
            raise TraceFailure(f"Cannot trace {host}: {output.strip()[:200]}")

        hop_data = parse_traceroute_hop(output, ttl)
        ip = hop_data["ip"]
        reached = ip is not None and ip in (hop_data["destination"], host)
        return {"ip": ip, "rtts": hop_data["rtts"], "reached": reached}


@lru_cache(maxsize=1024)
def reverse_lookup(ip: str) -> Optional[str]:
    """Reverse DNS for a hop address, None when there is no PTR record."""
    try:
        return socket.gethostbyaddr(ip)[0]
    except OSError:
        return None


def detect_problems(
    hops: List[Hop],
    reached: bool,
    max_hops: int,
    spike_threshold_ms: float = 150.0,
    spike_factor: float = 3.0,
) -> List[Problem]:
    """
    Annotate a trace with detected problems.

    - Latency spike: a hop above ``spike_threshold_ms`` and above
      ``spike_factor`` times the average of the responding hops before it.
    - Silent hop: a TTL with no reply although a later TTL replied.
    - Incomplete route: the destination never answered within ``max_hops``.

    Args:
        hops: Responding hops in TTL order
        reached: Whether the destination answered
        max_hops: TTL limit the trace ran with
        spike_threshold_ms: Absolute latency floor for a spike
        spike_factor: Multiple of the preceding average for a spike

    Returns:
        Problems ordered by hop, with the incomplete route problem last
    """
    responding = {hop.index for hop in hops}
    last_index = hops[-1].index if hops else 0

    found = []
    preceding = []
    for hop in hops:
        if preceding:
            baseline = sum(preceding) / len(preceding)
            if hop.latency_avg > spike_threshold_ms and hop.latency_avg > spike_factor * baseline:
                found.append(
                    (
                        hop.index,
                        f"Latency spike at hop {hop.index} ({hop.ip}): "
                        f"{hop.latency_avg:.1f}ms vs {baseline:.1f}ms average before it",
                    )
                )
        preceding.append(hop.latency_avg)

    for index in range(1, last_index):
        if index not in responding:
            found.append((index, f"Silent hop {index}: no response (possibly filtered)"))

    found.sort(key=lambda item: item[0])
    problems = [Problem(description=description) for _, description in found]

    if not reached:
        problems.append(
            Problem(description=f"Incomplete route: destination not reached within {max_hops} hops")
        )
    return problems


class Tracer:
    """Run a TTL-increasing trace and build a TraceResult."""

    def __init__(
        self,
        hop_prober: Optional[HopProber] = None,
        samples_per_hop: int = 3,
        spike_threshold_ms: float = 150.0,
        spike_factor: float = 3.0,
        resolve_names: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.hop_prober = hop_prober or TracerouteHopProber()
        self.samples_per_hop = samples_per_hop
        self.spike_threshold_ms = spike_threshold_ms
        self.spike_factor = spike_factor
        self.resolve_names = resolve_names
        self.clock = clock

    def trace(
        self,
        host: str,
        max_hops: int = 30,
        per_hop_timeout: float = 1.0,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> TraceResult:
        """
        Trace the route to ``host``.

        Args:
            host: Destination host
            max_hops: Highest TTL to probe
            per_hop_timeout: Seconds to wait for each probe
            should_stop: Checked between hops; a True result aborts the trace

        Returns:
            TraceResult, possibly partial

        Raises:
            TraceFailure: First hop never answered, or the trace was cancelled
        """
        hops: List[Hop] = []
        reached = False

        for ttl in range(1, max_hops + 1):
            if should_stop is not None and should_stop():
                raise TraceFailure(f"Trace to {host} cancelled")

            reply = self.hop_prober.probe_hop(host, ttl, self.samples_per_hop, per_hop_timeout)
            ip = reply.get("ip")
            rtts = [rtt for rtt in reply.get("rtts") or [] if not math.isnan(rtt)]

            if ip and rtts:
                hostname = reverse_lookup(ip) if self.resolve_names else None
                hops.append(
                    Hop(
                        index=ttl,
                        ip=ip,
                        latency_avg=round(sum(rtts) / len(rtts), 2),
                        hostname=hostname,
                    )
                )
                if reply.get("reached"):
                    reached = True
                    break
            elif ttl == 1:
                raise TraceFailure(f"First hop did not respond while tracing {host}")

        problems = detect_problems(
            hops,
            reached,
            max_hops,
            spike_threshold_ms=self.spike_threshold_ms,
            spike_factor=self.spike_factor,
        )
        result = TraceResult(
            host=host,
            hop_count=hops[-1].index if hops else 0,
            total_latency=hops[-1].latency_avg if reached else None,
            hops=tuple(hops),
            problems=tuple(problems),
            reached=reached,
            completed_at=self.clock(),
        )
        logger.info(
            f"Trace to {host}: {result.hop_count} hops, reached={reached}, "
            f"{len(result.problems)} problem(s)"
        )
        return result
