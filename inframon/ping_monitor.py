"""
Background reachability (ping) monitor.

Design:
- Runs in its own daemon thread; board pushes and status reads come from other threads.
- Loop states:
    disabled: no device has ping enabled; wake at least every IDLE_RECHECK_SEC to re-check,
              or immediately on an update signal (and probe at once if now enabled).
    armed:    wait for the ticker (global interval) or an update signal, then run a cycle.
- Every cycle:
    1) Snapshot targets, prior results and policy under the lock (no I/O under the lock).
    2) Skip segments, disabled devices, and devices probed less than their interval ago.
    3) Devices with no address get an immediate "no ip" result.
    4) Ping the rest, at most PING_MAX_CONCURRENT at once, and log one line per probe.
    5) Merge results and prune devices that left the target set, in one critical section.
- Methods:
    start(): begin the daemon thread
    stop(): signal the thread to stop
    update_from_board() / update_targets() / set_policy(): replace state and wake the loop;
        target swaps also drop results of removed devices
    get_policy() / get_results(): copies for readers
    run_cycle(): one synchronous probe cycle (what the loop runs)
- Thread-safety: _lock guards targets/policy/results; _cycle_lock keeps cycles from
  overlapping, so a device never has two probes in flight.
"""

import threading
from dataclasses import replace
from datetime import datetime
from functools import partial
from typing import Callable, Dict, List, Optional, Sequence

from .config import (
    DEFAULT_INTERVAL_SEC,
    DEFAULT_SHOW_STATUS,
    IDLE_RECHECK_SEC,
    MAX_INTERVAL_SEC,
    MIN_INTERVAL_SEC,
    PING_MAX_CONCURRENT,
)
from .logs import LogStore
from .models import ERROR_NO_IP, ERROR_UNREACHABLE, Device, MonitoringPolicy, PingResult, utcnow
from .scheduling import Ticker, WakeSignal, effective_interval, fan_out, is_due
from .utils import ping_target

LOG_SOURCE = "ping"


def sanitize_policy(policy: MonitoringPolicy) -> MonitoringPolicy:
    """
    Purpose: Repair an incoming policy instead of rejecting it.
    Rules: interval 0 -> default (and default show_status if nothing else was set);
           interval outside [MIN, MAX] -> default. Values below MIN reset to the default,
           not to MIN.
    Outputs: A new MonitoringPolicy; `enabled` is left for the caller to recompute.
    """
    interval = policy.interval_sec
    show_status = policy.show_status
    if interval == 0:
        if not policy.enabled and not show_status:
            show_status = DEFAULT_SHOW_STATUS
        interval = DEFAULT_INTERVAL_SEC
    if interval < MIN_INTERVAL_SEC or interval > MAX_INTERVAL_SEC:
        interval = DEFAULT_INTERVAL_SEC
    return replace(policy, interval_sec=interval, show_status=show_status)


def any_ping_enabled(devices: Sequence[Device]) -> bool:
    return any(device.ping_enabled for device in devices)


class PingMonitor:
    def __init__(
        self,
        logs: Optional[LogStore] = None,
        probe: Callable[[str], PingResult] = ping_target,
        clock: Callable[[], datetime] = utcnow,
        max_concurrent: int = PING_MAX_CONCURRENT,
    ):
        self.logs = logs
        self.probe = probe
        self.clock = clock
        self.max_concurrent = max_concurrent
        self._lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._policy = MonitoringPolicy()
        self._devices: List[Device] = []
        self._results: Dict[str, PingResult] = {}
        self._wake = WakeSignal()
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="ping-monitor", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._wake.post()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    # -------- Board / settings updates --------

    def update_from_board(self, devices: Sequence[Device], policy: MonitoringPolicy) -> None:
        """Replace targets and policy together; `enabled` follows the new targets."""
        policy = sanitize_policy(policy)
        devices = list(devices)
        with self._lock:
            self._devices = devices
            self._policy = replace(policy, enabled=any_ping_enabled(devices))
            self._prune_locked()
        self._wake.post()

    def update_targets(self, devices: Sequence[Device]) -> None:
        devices = list(devices)
        with self._lock:
            self._devices = devices
            self._policy = replace(self._policy, enabled=any_ping_enabled(devices))
            self._prune_locked()
        self._wake.post()

    def set_policy(self, policy: MonitoringPolicy) -> None:
        """Sanitize and apply a policy; it cannot enable polling by itself."""
        policy = sanitize_policy(policy)
        with self._lock:
            self._policy = replace(policy, enabled=any_ping_enabled(self._devices))
        self._wake.post()

    # -------- Snapshots for safe reading --------

    def get_policy(self) -> MonitoringPolicy:
        with self._lock:
            return replace(self._policy)

    def get_results(self) -> Dict[str, PingResult]:
        # PingResult is frozen, so copying the dict is enough
        with self._lock:
            return dict(self._results)

    # -------- Loop --------

    def _loop(self) -> None:
        ticker: Optional[Ticker] = None
        while not self._stop.is_set():
            policy = self.get_policy()
            if not policy.enabled:
                ticker = None
                woken = self._wake.wait(IDLE_RECHECK_SEC)
                if woken and not self._stop.is_set() and self.get_policy().enabled:
                    self.run_cycle()
                continue

            interval = policy.interval_sec if policy.interval_sec > 0 else DEFAULT_INTERVAL_SEC
            if ticker is None:
                ticker = Ticker(interval)
            elif ticker.interval_sec != interval:
                ticker.reset(interval)

            woken = self._wake.wait(ticker.remaining())
            if self._stop.is_set():
                break
            if woken:
                if self.get_policy().enabled:
                    self.run_cycle()
                continue
            self.run_cycle()
            ticker.advance()

    def run_cycle(self) -> None:
        with self._cycle_lock:
            with self._lock:
                devices = list(self._devices)
                previous = dict(self._results)
                policy = replace(self._policy)

            now = self.clock()
            results: Dict[str, PingResult] = {}
            jobs = []
            for device in devices:
                if device.is_segment or not device.ping_enabled:
                    continue
                interval = effective_interval(device.ping_interval_sec, policy.interval_sec)
                last = previous.get(device.id)
                if last is not None and not is_due(last.last_checked, interval, now):
                    continue
                target = device.pick_target()
                if not target:
                    results[device.id] = PingResult(online=False, last_checked=now, error=ERROR_NO_IP)
                    self._log("warn", f"ping skipped for {device.id}: no ip")
                    continue
                jobs.append((device.id, partial(self._probe_device, device.id, target)))

            results.update(fan_out(jobs, self.max_concurrent))

            with self._lock:
                self._results.update(results)
                self._prune_locked()

    def _probe_device(self, device_id: str, target: str) -> PingResult:
        try:
            result = self.probe(target)
        except Exception:
            result = PingResult(
                online=False, last_checked=self.clock(), target=target, error=ERROR_UNREACHABLE
            )
        level = "info" if result.online else "warn"
        self._log(
            level,
            f"ping {device_id} -> online={str(result.online).lower()} "
            f"rtt={result.rtt_ms}ms error={result.error}",
        )
        return result

    def _prune_locked(self) -> None:
        """Drop results for devices no longer in the target set (caller holds _lock)."""
        current_ids = {device.id for device in self._devices}
        for device_id in [d for d in self._results if d not in current_ids]:
            del self._results[device_id]

    def _log(self, level: str, message: str) -> None:
        if self.logs is None:
            return
        self.logs.append(level, LOG_SOURCE, message)
