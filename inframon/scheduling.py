"""
Design (scheduling.py)
- Purpose: Scheduling and throttling primitives shared by the ping and SSH monitors.
    WakeSignal: single-slot coalesced wake-up for a monitor loop.
    Ticker: recurring wall-clock deadline that can be re-armed at a new cadence.
    fan_out(): run keyed jobs on threads with a bounded number in flight.
    effective_interval() / is_due(): per-device throttle rule.
- Side effects: fan_out() spawns and joins threads.
- Thread-safety: WakeSignal is safe from any thread; a Ticker belongs to one loop thread.
"""

import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Hashable, Iterable, Tuple

from .config import DEFAULT_INTERVAL_SEC


class WakeSignal:
    """
    Design (WakeSignal)
    - State: one pending flag guarded by a condition variable.
    - post(): store a wake if none is pending; never blocks, never queues a second one.
    - wait(timeout): block until a wake is pending or timeout elapses, then consume it.
      Returns True if a wake was consumed.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending = False

    def post(self) -> None:
        with self._cond:
            if not self._pending:
                self._pending = True
                self._cond.notify()

    def wait(self, timeout: float | None = None) -> bool:
        with self._cond:
            if not self._pending:
                self._cond.wait(timeout)
            fired = self._pending
            self._pending = False
            return fired

    @property
    def pending(self) -> bool:
        with self._cond:
            return self._pending


class Ticker:
    """Monotonic recurring deadline. Missed ticks are skipped rather than replayed."""

    def __init__(self, interval_sec: float) -> None:
        self.interval_sec = interval_sec
        self._deadline = time.monotonic() + interval_sec

    def reset(self, interval_sec: float) -> None:
        self.interval_sec = interval_sec
        self._deadline = time.monotonic() + interval_sec

    def remaining(self) -> float:
        return max(0.0, self._deadline - time.monotonic())

    def advance(self) -> None:
        self._deadline += self.interval_sec
        now = time.monotonic()
        if self._deadline <= now:
            self._deadline = now + self.interval_sec


def effective_interval(override_sec: int, fallback_sec: int) -> int:
    """Device override if set, else the global interval, else the default."""
    if override_sec > 0:
        return override_sec
    if fallback_sec > 0:
        return fallback_sec
    return DEFAULT_INTERVAL_SEC


def is_due(last_checked: datetime, interval_sec: int, now: datetime) -> bool:
    """True once interval_sec has elapsed since last_checked."""
    return (now - last_checked).total_seconds() >= interval_sec


def fan_out(jobs: Iterable[Tuple[Hashable, Callable[[], Any]]], limit: int) -> Dict[Hashable, Any]:
    """
    Purpose: Run every job concurrently with at most `limit` executing at once.
    Inputs: jobs as (key, zero-arg callable) pairs; limit >= 1.
    Outputs: {key: return value}. A job that raises leaves no entry for its key.
    Side effects: One thread per job, all joined before returning.
    """
    gate = threading.BoundedSemaphore(max(limit, 1))
    results: Dict[Hashable, Any] = {}
    results_lock = threading.Lock()

    def run(key: Hashable, job: Callable[[], Any]) -> None:
        with gate:
            value = job()
        with results_lock:
            results[key] = value

    threads = [
        threading.Thread(target=run, args=(key, job), daemon=True)
        for key, job in jobs
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return results
