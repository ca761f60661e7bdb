"""
Network probing: latency probers, route tracer and output parsers.
"""

from .prober import PingProber, Prober, TcpProber, build_prober
from .tracer import HopProber, Tracer, TracerouteHopProber, detect_problems

__all__ = [
    "Prober",
    "PingProber",
    "TcpProber",
    "build_prober",
    "HopProber",
    "TracerouteHopProber",
    "Tracer",
    "detect_problems",
]
