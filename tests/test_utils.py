"""Tests for the ping wrapper: command building, RTT parsing and outcome classification."""

from __future__ import annotations

import shutil
import subprocess
from unittest.mock import patch

import pytest

from inframon.utils import build_ping_command, parse_rtt, ping_target


def _completed(returncode: int, stdout: str) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["ping"], returncode=returncode, stdout=stdout)


class TestBuildPingCommand:
    @pytest.mark.parametrize(
        "platform, expected",
        [
            ("linux", ["ping", "-c", "1", "-W", "1", "10.0.0.1"]),
            ("darwin", ["ping", "-c", "1", "-W", "1000", "10.0.0.1"]),
            ("freebsd13", ["ping", "-c", "1", "-W", "1000", "10.0.0.1"]),
            ("win32", ["ping", "-n", "1", "-w", "1000", "10.0.0.1"]),
        ],
    )
    def test_platforms(self, platform, expected):
        assert build_ping_command("10.0.0.1", platform) == expected


class TestParseRtt:
    def test_sub_millisecond_linux_output(self):
        out = "64 bytes from 127.0.0.1: icmp_seq=1 ttl=64 time=0.042 ms"
        assert parse_rtt(out) == 0
        assert parse_rtt("time=0.6 ms") == 1

    def test_rounds_half_up(self):
        assert parse_rtt("time=12.5 ms") == 13
        assert parse_rtt("time=12.49 ms") == 12

    def test_windows_output(self):
        assert parse_rtt("Reply from 10.0.0.1: bytes=32 time=14ms TTL=117") == 14
        assert parse_rtt("Reply from 127.0.0.1: bytes=32 time<1ms TTL=128") == 1

    def test_absent_or_garbage(self):
        assert parse_rtt("") == 0
        assert parse_rtt("Request timed out.") == 0
        assert parse_rtt("time=1.2.3 ms") == 0


class TestPingTarget:
    def test_online(self):
        with patch("inframon.utils.subprocess.run", return_value=_completed(0, "time=3.6 ms")):
            result = ping_target("10.0.0.1")
        assert result.online is True
        assert result.rtt_ms == 4
        assert result.target == "10.0.0.1"
        assert result.error == ""
        assert result.last_checked.tzinfo is not None

    def test_nonzero_exit_is_unreachable(self):
        with patch("inframon.utils.subprocess.run", return_value=_completed(1, "100% packet loss")):
            result = ping_target("10.0.0.1")
        assert result.online is False
        assert result.error == "unreachable"
        assert result.rtt_ms == 0

    def test_timeout(self):
        with patch(
            "inframon.utils.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="ping", timeout=2),
        ):
            result = ping_target("10.0.0.1")
        assert result.online is False
        assert result.error == "timeout"

    def test_missing_binary_is_unreachable(self):
        with patch("inframon.utils.subprocess.run", side_effect=FileNotFoundError("ping")):
            result = ping_target("10.0.0.1")
        assert result.online is False
        assert result.error == "unreachable"

    def test_passes_hard_timeout(self):
        with patch("inframon.utils.subprocess.run", return_value=_completed(0, "")) as run:
            ping_target("10.0.0.1", timeout=2.0)
        assert run.call_args.kwargs["timeout"] == 2.0

    def test_decodes_output_leniently(self):
        with patch("inframon.utils.subprocess.run", return_value=_completed(0, "")) as run:
            ping_target("10.0.0.1")
        assert run.call_args.kwargs["errors"] == "replace"

    @pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX shell")
    def test_non_utf8_output_still_classified(self):
        command = ["sh", "-c", r"printf 'Antwort \377\376 Zeit=3ms\n'"]
        with patch("inframon.utils.build_ping_command", return_value=command):
            result = ping_target("10.0.0.1")
        assert result.online is True
        assert result.error == ""
