"""
Unit tests for the bounded alert log.
"""
import threading

import pytest

from netmon.models import AlertEntry, AlertKind
from netmon.monitoring import AlertLog


class TestAlertLog:
    """Tests for AlertLog capacity and ordering."""

    def test_add_timestamps_with_clock(self, clock):
        """Entries carry the injected clock's time."""
        log = AlertLog(capacity=10, clock=clock)
        entry = log.add("Started monitoring 8.8.8.8", AlertKind.INFO)

        assert entry.timestamp == clock()
        assert entry.kind == AlertKind.INFO
        assert log.recent() == [entry]

    def test_kind_accepts_plain_string(self, clock):
        """A string kind is coerced to AlertKind."""
        log = AlertLog(clock=clock)
        entry = log.add("something odd", "error")

        assert entry.kind is AlertKind.ERROR

    def test_capacity_evicts_oldest(self, clock):
        """Appending beyond capacity drops the oldest entries first."""
        log = AlertLog(capacity=500, clock=clock)
        for i in range(501):
            log.add(f"alert {i}", AlertKind.ANOMALY)
            clock.advance(1)

        entries = log.recent()
        assert len(log) == 500
        assert entries[0].message == "alert 1"
        assert entries[-1].message == "alert 500"
        assert log.total_appended == 501

    def test_recent_returns_newest_last(self, clock):
        """recent(n) returns the n most recent entries in append order."""
        log = AlertLog(capacity=10, clock=clock)
        for i in range(5):
            log.add(f"alert {i}")

        assert [e.message for e in log.recent(2)] == ["alert 3", "alert 4"]
        assert log.recent(0) == []
        assert len(log.recent(100)) == 5

    def test_recent_is_a_copy(self, clock):
        """Callers cannot mutate the log through the returned list."""
        log = AlertLog(capacity=10, clock=clock)
        log.add("one")
        entries = log.recent()
        entries.clear()

        assert len(log) == 1

    def test_append_prebuilt_entry(self):
        """append() stores an entry as-is."""
        log = AlertLog(capacity=2)
        entry = AlertEntry(timestamp=1.0, message="x", kind=AlertKind.FAILURE)
        log.append(entry)

        assert log.recent() == [entry]

    def test_invalid_capacity(self):
        """A log must hold at least one entry."""
        with pytest.raises(ValueError):
            AlertLog(capacity=0)

    def test_concurrent_appends_never_exceed_capacity(self):
        """Concurrent writers neither lose appends nor overflow the bound."""
        log = AlertLog(capacity=100)

        def writer(name):
            for i in range(200):
                log.add(f"{name}-{i}", AlertKind.INFO)

        threads = [threading.Thread(target=writer, args=(f"t{n}",)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(log) == 100
        assert log.total_appended == 1600

        # Each writer's surviving entries keep their relative order
        by_writer = {}
        for entry in log.recent():
            name, index = entry.message.split("-")
            by_writer.setdefault(name, []).append(int(index))
        for indexes in by_writer.values():
            assert indexes == sorted(indexes)


class TestAlertEntry:
    """Tests for the wire representation."""

    def test_as_wire(self):
        """Entries render as [timestamp, message, kind]."""
        entry = AlertEntry(timestamp=1700000000.5, message="Anomaly", kind=AlertKind.ANOMALY)

        assert entry.as_wire() == [1700000000.5, "Anomaly", "anomaly"]

    def test_entry_is_immutable(self):
        """Stored alerts cannot be edited."""
        entry = AlertEntry(timestamp=1.0, message="x", kind=AlertKind.INFO)

        with pytest.raises(Exception):
            entry.message = "y"
