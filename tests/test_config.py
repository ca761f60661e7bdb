"""
Unit tests for application settings.
"""
import pytest
from pydantic import ValidationError

from netmon.config import Settings
from netmon.monitoring import HealthTracker


class TestSettings:
    """Tests for Settings defaults, validation and environment overrides."""

    def test_defaults(self, monkeypatch):
        """Defaults match the dashboard's expectations."""
        monkeypatch.delenv("API_PORT", raising=False)
        settings = Settings()

        assert settings.api_port == 5000
        assert settings.ema_alpha == 0.2
        assert settings.failure_threshold == 3
        assert settings.alert_capacity == 500
        assert settings.trace_max_hops == 30

    def test_environment_override(self, monkeypatch):
        """Environment variables override defaults."""
        monkeypatch.setenv("POLL_INTERVAL_SECONDS", "5")
        monkeypatch.setenv("PROBE_METHOD", "TCP")
        monkeypatch.setenv("DEFAULT_HOSTS", '["9.9.9.9"]')

        settings = Settings()

        assert settings.poll_interval_seconds == 5.0
        assert settings.probe_method == "tcp"
        assert settings.default_hosts == ["9.9.9.9"]

    @pytest.mark.parametrize(
        "field,value",
        [
            ("ema_alpha", 0),
            ("ema_alpha", 1.5),
            ("probe_method", "udp"),
            ("failure_threshold", 0),
            ("alert_capacity", 0),
            ("max_hosts", 0),
            ("trace_workers", 0),
            ("poll_interval_seconds", 0),
            ("probe_timeout_seconds", -1),
        ],
    )
    def test_invalid_values(self, field, value):
        """Out of range values are rejected."""
        with pytest.raises(ValidationError):
            Settings(**{field: value})

    def test_tracker_from_settings(self, test_settings, clock):
        """The tracker takes its thresholds from settings."""
        tracker = HealthTracker.from_settings(test_settings, clock=clock)

        assert tracker.alpha == test_settings.ema_alpha
        assert tracker.failure_threshold == test_settings.failure_threshold
        assert tracker.trace_cooldown == test_settings.trace_cooldown_seconds
