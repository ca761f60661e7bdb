"""
Configuration settings for the network health monitor backend.
"""

from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "AutoNetSim Monitor API"
    debug: bool = False
    log_level: str = "INFO"

    # HTTP server (the dashboard polls http://127.0.0.1:5000)
    api_host: str = "127.0.0.1"
    api_port: int = 5000
    cors_origins: list[str] = ["*"]

    # Hosts registered at startup
    default_hosts: list[str] = ["8.8.8.8", "1.1.1.1"]

    # Latency sampling
    poll_interval_seconds: float = 10.0
    probe_timeout_seconds: float = 2.0
    probe_method: str = "icmp"  # icmp | tcp
    tcp_probe_port: int = 443

    # Health classification
    ema_alpha: float = 0.2
    anomaly_factor: float = 3.0
    anomaly_min_delta_ms: float = 0.0  # 0 disables the absolute delta rule
    failure_threshold: int = 3
    history_size: int = 60

    # Traceroute
    trace_cooldown_seconds: float = 60.0
    trace_max_hops: int = 30
    trace_per_hop_timeout: float = 1.0
    trace_samples_per_hop: int = 3
    trace_spike_threshold_ms: float = 150.0
    trace_spike_factor: float = 3.0
    trace_fresh_seconds: float = 600.0
    resolve_hop_names: bool = True

    # Alerts and workers
    alert_capacity: int = 500
    max_hosts: int = 50  # one polling worker per host; adds beyond this are rejected
    trace_workers: int = 4  # traceroute pool, separate from polling

    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8")

    @field_validator("ema_alpha")
    @classmethod
    def validate_alpha(cls, v):
        """EMA smoothing factor must lie in (0, 1]."""
        if not 0 < v <= 1:
            raise ValueError(f"ema_alpha must be in (0, 1], got {v}")
        return v

    @field_validator("probe_method")
    @classmethod
    def validate_probe_method(cls, v):
        """Only ICMP echo and TCP connect probes are supported."""
        v = v.lower()
        if v not in ("icmp", "tcp"):
            raise ValueError(f"probe_method must be 'icmp' or 'tcp', got '{v}'")
        return v

    @field_validator(
        "failure_threshold",
        "history_size",
        "trace_max_hops",
        "trace_samples_per_hop",
        "alert_capacity",
        "max_hosts",
        "trace_workers",
    )
    @classmethod
    def validate_positive_int(cls, v):
        if v < 1:
            raise ValueError(f"value must be at least 1, got {v}")
        return v

    @field_validator(
        "poll_interval_seconds",
        "probe_timeout_seconds",
        "trace_per_hop_timeout",
        "anomaly_factor",
        "trace_spike_factor",
    )
    @classmethod
    def validate_positive_float(cls, v):
        if v <= 0:
            raise ValueError(f"value must be positive, got {v}")
        return v


# Global settings instance
settings = Settings()
