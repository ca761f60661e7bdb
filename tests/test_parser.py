"""
Unit tests for ping and traceroute output parsing.
"""
from netmon.scanner.parser import (
    looks_unreachable,
    parse_packet_loss,
    parse_ping_latency,
    parse_traceroute_destination,
    parse_traceroute_hop,
)

PING_OK = """PING 8.8.8.8 (8.8.8.8) 56(84) bytes of data.
64 bytes from 8.8.8.8: icmp_seq=1 ttl=117 time=14.2 ms

--- 8.8.8.8 ping statistics ---
1 packets transmitted, 1 received, 0% packet loss, time 0ms
rtt min/avg/max/mdev = 14.231/14.231/14.231/0.000 ms
"""

PING_LOST = """PING 10.255.255.1 (10.255.255.1) 56(84) bytes of data.

--- 10.255.255.1 ping statistics ---
1 packets transmitted, 0 received, 100% packet loss, time 0ms
"""

PING_UNREACHABLE = """PING 192.168.99.9 (192.168.99.9) 56(84) bytes of data.
From 192.168.1.10 icmp_seq=1 Destination Host Unreachable
"""

TRACE_HEADER = "traceroute to 8.8.8.8 (8.8.8.8), 3 hops max, 60 byte packets\n"


class TestPingParsing:
    """Tests for ping output parsing."""

    def test_parse_latency(self):
        """The echo reply time is extracted in ms."""
        assert parse_ping_latency(PING_OK) == 14.2

    def test_parse_sub_millisecond_latency(self):
        """BSD style ``time<1 ms`` output is handled."""
        assert parse_ping_latency("64 bytes from 127.0.0.1: time<1 ms") == 1.0

    def test_no_reply(self):
        """Output without a reply line yields None."""
        assert parse_ping_latency(PING_LOST) is None
        assert parse_packet_loss(PING_LOST) == 100.0

    def test_unreachable_markers(self):
        """Explicit network errors are recognised."""
        assert looks_unreachable(PING_UNREACHABLE)
        assert looks_unreachable("ping: unknown host nosuch.invalid")
        assert not looks_unreachable(PING_LOST)


class TestTracerouteParsing:
    """Tests for single-TTL traceroute parsing."""

    def test_destination_from_header(self):
        """The resolved destination is taken from the header."""
        output = "traceroute to dns.google (8.8.4.4), 30 hops max, 60 byte packets\n"
        assert parse_traceroute_destination(output) == "8.8.4.4"

    def test_responding_hop(self):
        """A hop line yields its address and all round trip times."""
        output = TRACE_HEADER + " 3  10.0.0.1  12.345 ms  11.201 ms  10.5 ms\n"

        hop = parse_traceroute_hop(output, 3)

        assert hop["ip"] == "10.0.0.1"
        assert hop["rtts"] == [12.345, 11.201, 10.5]
        assert hop["destination"] == "8.8.8.8"

    def test_partial_replies(self):
        """Timed out samples are skipped."""
        output = TRACE_HEADER + " 2  10.0.0.9  9.0 ms * 7.0 ms\n"

        hop = parse_traceroute_hop(output, 2)

        assert hop["rtts"] == [9.0, 7.0]

    def test_silent_hop(self):
        """A line of stars is a silent hop."""
        output = TRACE_HEADER + " 4  * * *\n"

        hop = parse_traceroute_hop(output, 4)

        assert hop["ip"] is None
        assert hop["rtts"] == []

    def test_multiple_responders_picks_most_replies(self):
        """With ECMP the address with the most replies wins."""
        output = TRACE_HEADER + " 5  10.0.0.1  12.3 ms 10.0.0.2  11.9 ms  11.0 ms !H\n"

        hop = parse_traceroute_hop(output, 5)

        assert hop["ip"] == "10.0.0.2"
        assert hop["rtts"] == [11.9, 11.0]

    def test_missing_ttl_line(self):
        """A TTL absent from the output is silent."""
        hop = parse_traceroute_hop(TRACE_HEADER, 7)

        assert hop["ip"] is None
        assert hop["ttl"] == 7
