"""
Pytest configuration and fixtures for network monitor tests.

This module provides reusable fixtures including scripted probers, a
controllable clock, a fully wired monitor and an API test client. No test
touches the real network.
"""
import pytest
import sys
import os
import threading
from collections import deque

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

from netmon.config import Settings
from netmon.monitor import NetworkMonitor, get_monitor
from netmon.scanner import HopProber, Prober, Tracer


class FakeClock:
    """Manually advanced unix clock."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ScriptedProber(Prober):
    """
    Prober returning scripted outcomes per host.

    Each outcome is a latency in ms or an exception instance to raise. Once a
    host's script is exhausted ``default`` is returned.
    """

    def __init__(self, default=10.0):
        self.default = default
        self.scripts = {}
        self.calls = []
        self._lock = threading.Lock()

    def script(self, host, outcomes):
        with self._lock:
            self.scripts[host] = deque(outcomes)

    def probe(self, host, timeout):
        with self._lock:
            self.calls.append(host)
            queue = self.scripts.get(host)
            outcome = queue.popleft() if queue else self.default
        if isinstance(outcome, Exception):
            raise outcome
        return float(outcome)


class ScriptedHopProber(HopProber):
    """
    Hop prober answering from a fixed path.

    ``path`` maps TTL to ``(ip, [rtts])`` or None for a silent hop. The hop
    whose IP equals ``destination`` counts as reaching the target.
    """

    def __init__(self, path, destination=None):
        self.path = path
        self.destination = destination
        self.calls = []

    def probe_hop(self, host, ttl, samples, timeout):
        self.calls.append(ttl)
        entry = self.path.get(ttl)
        if entry is None:
            return {"ip": None, "rtts": [], "reached": False}
        ip, rtts = entry
        return {"ip": ip, "rtts": list(rtts), "reached": ip == (self.destination or host)}


def build_path(latencies, destination="8.8.8.8"):
    """Path whose last hop is ``destination``; None entries are silent hops."""
    path = {}
    for index, latency in enumerate(latencies, start=1):
        if latency is None:
            path[index] = None
            continue
        ip = destination if index == len(latencies) else f"10.0.{index}.1"
        path[index] = (ip, [latency])
    return path


@pytest.fixture
def clock():
    """Controllable clock shared by tracker, alert log and trace cache."""
    return FakeClock()


@pytest.fixture
def test_settings():
    """
    Settings tuned for fast tests.

    Returns:
        Settings: no default hosts, short timeouts and intervals
    """
    return Settings(
        default_hosts=[],
        poll_interval_seconds=0.05,
        probe_timeout_seconds=0.2,
        trace_per_hop_timeout=0.1,
        trace_samples_per_hop=1,
        trace_max_hops=8,
        resolve_hop_names=False,
        alert_capacity=50,
        max_hosts=4,
        trace_workers=2,
    )


@pytest.fixture
def prober():
    """Scripted prober; every unscripted probe answers in 10ms."""
    return ScriptedProber()


@pytest.fixture
def hop_prober():
    """Hop prober for a clean four hop path to 8.8.8.8."""
    return ScriptedHopProber(build_path([1.0, 5.0, 9.0, 12.0]))


@pytest.fixture
def monitor(test_settings, prober, hop_prober, clock):
    """
    Fully wired monitor with scripted network access.

    Yields:
        NetworkMonitor: not started; tests drive ticks with poll_host/run_trace
    """
    tracer = Tracer(hop_prober=hop_prober, samples_per_hop=1, resolve_names=False, clock=clock)
    monitor = NetworkMonitor(config=test_settings, prober=prober, tracer=tracer, clock=clock)
    yield monitor
    monitor.stop()


@pytest.fixture
def api_client(monitor):
    """
    Create a test client for API endpoint testing.

    Returns:
        TestClient: FastAPI test client bound to the ``monitor`` fixture
    """
    from fastapi.testclient import TestClient
    from netmon.main import app

    app.dependency_overrides[get_monitor] = lambda: monitor

    client = TestClient(app)
    try:
        yield client
    finally:
        # Clean up
        app.dependency_overrides.clear()
