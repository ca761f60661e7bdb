"""
Scheduler module for per-host polling loops.
"""

from .scheduler import HostTask, MonitorScheduler

__all__ = ["HostTask", "MonitorScheduler"]
