"""
Design (utils.py)
- Purpose: Reachability probe helpers: platform ping command, RTT parsing, and the ping
           wrapper that turns one subprocess run into a PingResult.
- Inputs: Target address (str).
- Outputs: PingResult / parsed values.
- Side effects: ping_target runs a subprocess (ping).
- Thread-safety: Stateless; safe to call from any thread.
"""

import os
import re
import subprocess
import sys
from typing import List

from .config import PING_TIMEOUT_SEC
from .models import ERROR_TIMEOUT, ERROR_UNREACHABLE, PingResult, utcnow

RTT_REGEX = re.compile(r"time[=<]([0-9.]+)\s*ms")


def build_ping_command(target: str, platform: str | None = None) -> List[str]:
    """
    Purpose: Build a single-echo ping command with a ~1s reply wait for this OS.
    Inputs: target address; platform (defaults to sys.platform).
    Outputs: argv list.
    """
    platform = platform or sys.platform
    if platform == "win32":
        return ["ping", "-n", "1", "-w", "1000", target]
    if platform == "darwin" or "bsd" in platform:
        return ["ping", "-c", "1", "-W", "1000", target]
    return ["ping", "-c", "1", "-W", "1", target]


def parse_rtt(output: str) -> int:
    """
    Purpose: Extract round-trip time from ping output ("time=0.042 ms", "time<1ms").
    Outputs: Milliseconds rounded half up; 0 if absent or unparseable.
    """
    match = RTT_REGEX.search(output or "")
    if not match:
        return 0
    try:
        value = float(match.group(1))
    except ValueError:
        return 0
    return int(value + 0.5)


def ping_target(target: str, timeout: float = PING_TIMEOUT_SEC) -> PingResult:
    """
    Purpose: Ping the given address once and classify the outcome.
    Inputs: target (str), timeout (hard deadline in seconds).
    Outputs: PingResult; error is "" when online, "timeout" when the deadline expired,
             "unreachable" for any other failure (including a missing ping binary).
    Side Effects: Spawns a 'ping' subprocess.
    Thread-safety: Safe; no shared state.
    """
    started = utcnow()
    creationflags = subprocess.CREATE_NO_WINDOW if os.name == "nt" else 0
    try:
        completed = subprocess.run(
            build_ping_command(target),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            creationflags=creationflags,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        return PingResult(online=False, last_checked=started, target=target, error=ERROR_TIMEOUT)
    except OSError:
        return PingResult(online=False, last_checked=started, target=target, error=ERROR_UNREACHABLE)

    online = completed.returncode == 0
    return PingResult(
        online=online,
        last_checked=started,
        rtt_ms=parse_rtt(completed.stdout),
        target=target,
        error="" if online else ERROR_UNREACHABLE,
    )
