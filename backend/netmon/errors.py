"""
Exception taxonomy for the monitoring engine.

Probe errors are routine and drive health classification. Trace failures are
surfaced as alerts. InvalidHost and HostNotFound are rejected at the HTTP
boundary with the ``status_code`` carried by the exception.
"""


class MonitorError(Exception):
    """Base class for all monitor errors."""

    status_code = 500


class ProbeError(MonitorError):
    """A single latency probe did not produce a sample."""


class ProbeTimeout(ProbeError):
    """No reply arrived within the probe timeout."""


class ProbeUnreachable(ProbeError):
    """The host could not be reached (no route, unknown name, refused by network)."""


class TraceFailure(MonitorError):
    """A route trace produced no usable result (first hop never answered)."""

    status_code = 502


class InvalidHost(MonitorError):
    """Host identifier is empty or not a plausible IP literal / DNS name."""

    status_code = 400


class HostNotFound(MonitorError):
    """Host is not monitored, or holds no data for the request."""

    status_code = 404


class HostLimitReached(MonitorError):
    """Every polling worker is already bound to a host."""

    status_code = 409
