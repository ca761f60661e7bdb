"""
Latency probers: one measurement to one host, bounded by a timeout.
"""

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
import logging
import math
import socket
import subprocess
import time

from ..errors import ProbeTimeout, ProbeUnreachable
from .parser import looks_unreachable, parse_packet_loss, parse_ping_latency

logger = logging.getLogger(__name__)


class Prober(ABC):
    """Single-attempt latency probe. Retry policy belongs to the scheduler."""

    @abstractmethod
    def probe(self, host: str, timeout: float) -> float:
        """
        Measure round trip latency to ``host``.

        Returns:
            Latency in milliseconds

        Raises:
            ProbeTimeout: No reply within ``timeout`` seconds
            ProbeUnreachable: The host could not be reached at all
        """
        raise NotImplementedError


class PingProber(Prober):
    """ICMP echo via the system ``ping`` binary (no raw socket privileges needed)."""

    def __init__(self, ping_bin: str = "ping"):
        self.ping_bin = ping_bin

    def _build_cmd(self, host: str, timeout: float) -> list:
        return [
            self.ping_bin,
            "-n",  # Numeric output only
            "-c",
            "1",  # Single echo request
            "-W",
            str(max(1, math.ceil(timeout))),  # Reply wait in whole seconds
            host,
        ]

    def probe(self, host: str, timeout: float) -> float:
        cmd = self._build_cmd(host, timeout)
        try:
            # Hard ceiling in case ping ignores -W (e.g. slow DNS resolution)
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout + 1,
            )
        except subprocess.TimeoutExpired:
            raise ProbeTimeout(f"ping to {host} exceeded {timeout}s")

        output = (proc.stdout or "") + (proc.stderr or "")
        latency = parse_ping_latency(output)
        if proc.returncode == 0 and latency is not None:
            return latency

        if looks_unreachable(output) or proc.returncode not in (0, 1):
            raise ProbeUnreachable(f"{host} unreachable: {output.strip()[:200]}")

        loss = parse_packet_loss(output)
        logger.debug(f"ping {host}: no reply (loss={loss})")
        raise ProbeTimeout(f"No reply from {host} within {timeout}s")


class TcpProber(Prober):
    """TCP connect time to a fixed port.

    Name resolution runs first, bounded by the same timeout, and is not part
    of the measured latency. A refused connection still proves a round trip
    to the host, so it counts as a successful sample.
    """

    # Shared by all probers; a lookup stuck past its timeout keeps only its own worker
    _resolver = ThreadPoolExecutor(max_workers=8, thread_name_prefix="tcp-resolve")

    def __init__(self, port: int = 443):
        self.port = port

    def resolve(self, host: str, timeout: float) -> tuple:
        """
        Resolve ``host`` to ``(family, type, proto, sockaddr)`` within ``timeout``.

        Raises:
            ProbeTimeout: The resolver did not answer in time
            ProbeUnreachable: The name does not resolve
        """
        future = self._resolver.submit(
            socket.getaddrinfo, host, self.port, 0, socket.SOCK_STREAM
        )
        try:
            infos = future.result(timeout=timeout)
        except FutureTimeout:
            raise ProbeTimeout(f"Resolving {host} exceeded {timeout}s")
        except OSError as e:
            raise ProbeUnreachable(f"Cannot resolve {host}: {e}")
        if not infos:
            raise ProbeUnreachable(f"Cannot resolve {host}: no addresses")
        family, socktype, proto, _, sockaddr = infos[0]
        return family, socktype, proto, sockaddr

    def probe(self, host: str, timeout: float) -> float:
        deadline = time.monotonic() + timeout
        family, socktype, proto, sockaddr = self.resolve(host, timeout)
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ProbeTimeout(f"Resolving {host} used the whole {timeout}s budget")

        sock = socket.socket(family, socktype, proto)
        try:
            sock.settimeout(remaining)
            start = time.perf_counter()
            try:
                sock.connect(sockaddr)
            except ConnectionRefusedError:
                pass
            except socket.timeout:
                raise ProbeTimeout(f"TCP connect to {host}:{self.port} exceeded {timeout}s")
            except OSError as e:
                raise ProbeUnreachable(f"{host}:{self.port} unreachable: {e}")
            return (time.perf_counter() - start) * 1000.0
        finally:
            sock.close()


def build_prober(settings) -> Prober:
    """Create the prober selected by ``settings.probe_method``."""
    if settings.probe_method == "tcp":
        return TcpProber(port=settings.tcp_probe_port)
    return PingProber()
