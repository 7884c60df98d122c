"""
Background liveness (SSH) monitor.

Design:
- Same thread/lock/cache layout as PingMonitor, with a fixed SSH_INTERVAL_SEC cadence,
  no per-device interval and no throttle: every eligible device is checked every cycle.
- Eligible: not a segment and connect_enabled.
- Each probe resolves credentials through the provider, falls back to the device's own
  address when no host is stored, then runs check_connection (SSH_TIMEOUT_SEC).
  Every failure, including provider errors, becomes SSHStatus.error.
- At most SSH_MAX_CONCURRENT sessions in flight.
"""

import threading
from dataclasses import replace
from datetime import datetime
from functools import partial
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from .config import SSH_INTERVAL_SEC, SSH_MAX_CONCURRENT, SSH_TIMEOUT_SEC
from .logs import LogStore
from .models import Device, DeviceCredentials, SSHStatus, utcnow
from .scheduling import Ticker, WakeSignal, fan_out
from .sshutil import check_connection

LOG_SOURCE = "ssh"


class CredentialProvider(Protocol):
    def get(self, device_id: str) -> Optional[DeviceCredentials]:
        """Stored credentials, None if absent; raises if the store cannot be read."""


class SSHMonitor:
    def __init__(
        self,
        provider: Optional[CredentialProvider],
        logs: Optional[LogStore] = None,
        probe: Callable[[DeviceCredentials, float], None] = check_connection,
        clock: Callable[[], datetime] = utcnow,
        interval_sec: float = SSH_INTERVAL_SEC,
        max_concurrent: int = SSH_MAX_CONCURRENT,
    ):
        self.provider = provider
        self.logs = logs
        self.probe = probe
        self.clock = clock
        self.interval_sec = interval_sec
        self.max_concurrent = max_concurrent
        self._lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._devices: List[Device] = []
        self._results: Dict[str, SSHStatus] = {}
        self._wake = WakeSignal()
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="ssh-monitor", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._wake.post()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def update_targets(self, devices: Sequence[Device]) -> None:
        devices = list(devices)
        with self._lock:
            self._devices = devices
            self._prune_locked()
        self._wake.post()

    def get_results(self) -> Dict[str, SSHStatus]:
        with self._lock:
            return dict(self._results)

    def _loop(self) -> None:
        ticker = Ticker(self.interval_sec)
        while not self._stop.is_set():
            woken = self._wake.wait(ticker.remaining())
            if self._stop.is_set():
                break
            self.run_cycle()
            if not woken:
                ticker.advance()

    def run_cycle(self) -> None:
        with self._cycle_lock:
            with self._lock:
                devices = list(self._devices)

            jobs = [
                (device.id, partial(self._check_device, device))
                for device in devices
                if not device.is_segment and device.connect_enabled
            ]
            results = fan_out(jobs, self.max_concurrent)

            with self._lock:
                self._results.update(results)
                self._prune_locked()

    def _check_device(self, device: Device) -> SSHStatus:
        started = self.clock()
        error = self._connect(device)
        status = SSHStatus(online=not error, last_checked=started, error=error)
        self._log(
            "info" if status.online else "warn",
            f"ssh {device.id} -> online={str(status.online).lower()} error={status.error}",
        )
        return status

    def _connect(self, device: Device) -> str:
        """Run one check; returns "" on success or the failure reason."""
        if self.provider is None:
            return "settings provider missing"
        try:
            creds = self.provider.get(device.id)
        except Exception as err:
            return str(err) or err.__class__.__name__
        if creds is None:
            return "settings not found"
        if not creds.host.strip():
            creds = replace(creds, host=device.pick_target())
        try:
            self.probe(creds, SSH_TIMEOUT_SEC)
        except Exception as err:
            return str(err) or err.__class__.__name__
        return ""

    def _prune_locked(self) -> None:
        current_ids = {device.id for device in self._devices}
        for device_id in [d for d in self._results if d not in current_ids]:
            del self._results[device_id]

    def _log(self, level: str, message: str) -> None:
        if self.logs is None:
            return
        self.logs.append(level, LOG_SOURCE, message)
