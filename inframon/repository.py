"""
Design (repository.py)
- Purpose: Own the current board and push every change to both monitors, so the UI
           never talks to the monitors' target sets directly.
- Inputs: Board JSON dicts (load/save), DeviceCredentials (set_credentials).
- Outputs: Decoded Board snapshots.
- Side effects: Reads/writes the board file and the secret store; logs settings changes.
- Thread-safety: All mutating/reading operations take the internal lock; publishing to the
                 monitors only swaps their state and never blocks on probes.
"""

import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import LINK_SPEED_TIMEOUT_SEC
from .logs import LogStore
from .models import Board, Device, DeviceCredentials
from .ping_monitor import PingMonitor
from .secret_store import SecretStore, SecretStoreError, sanitize_credentials
from .ssh_monitor import SSHMonitor
from .sshutil import detect_link_speed
from .storage import read_board_data, save_board_data


class BoardRepo:
    """
    Design (BoardRepo)
    - State:
        _source: last decoded Board, as written on the board
        _board: _source with connect_enabled taken from the secret store
        _lock: threading.Lock protecting _board and file access
    """

    def __init__(
        self,
        path: Path,
        ping: PingMonitor,
        ssh: SSHMonitor,
        secrets: Optional[SecretStore] = None,
        logs: Optional[LogStore] = None,
        detector: Callable[[DeviceCredentials, float], Tuple[int, str]] = detect_link_speed,
    ) -> None:
        self.path = Path(path)
        self.ping = ping
        self.ssh = ssh
        self.secrets = secrets
        self.logs = logs
        self.detector = detector
        self._lock = threading.Lock()
        self._source = Board()
        self._board = Board()

    # -------- Board --------

    def load(self) -> Board:
        """
        Purpose: (Re)read the board file and publish it to the monitors.
        Outputs: The decoded Board.
        """
        with self._lock:
            data = read_board_data(self.path)
            return self._publish(Board.from_dict(data))

    def save(self, data: Dict[str, Any]) -> Board:
        """
        Purpose: Persist a full board replacement and publish it.
        Inputs: data (board JSON dict).
        Outputs: The decoded Board.
        """
        with self._lock:
            save_board_data(self.path, data)
            return self._publish(Board.from_dict(data))

    def snapshot(self) -> Board:
        with self._lock:
            return self._copy_board()

    # -------- Credentials --------

    def set_credentials(self, device_id: str, creds: DeviceCredentials) -> DeviceCredentials:
        """
        Purpose: Store SSH settings for a device and republish so the SSH monitor sees the
                 new connect flag.
                 Linux devices with the connection enabled get their link speed detected
                 first (blocking, up to LINK_SPEED_TIMEOUT_SEC).
        Outputs: The sanitized credentials that were stored.
        Side effects: Writes the secret store; logs enable/disable transitions.
        """
        if self.secrets is None:
            raise SecretStoreError("secrets store not available")
        creds = sanitize_credentials(creds)
        self._log(
            "info",
            "settings",
            f"settings received for {device_id} (connect={str(creds.connect_enabled).lower()} "
            f"os={creds.os} host={creds.host})",
        )
        creds = self._detect_link_speed(device_id, creds)
        try:
            previous = self.secrets.get(device_id)
        except SecretStoreError as err:
            self._log("warn", "settings", f"failed to read previous settings for {device_id}: {err}")
            previous = None
        self.secrets.set(device_id, creds)

        was_enabled = previous.connect_enabled if previous is not None else False
        if creds.connect_enabled != was_enabled:
            action = "enabled" if creds.connect_enabled else "disabled"
            self._log("info", "ssh", f"SSH connection {action} for {device_id}")
        if creds.connect_enabled:
            self._log(
                "info",
                "ssh",
                f"SSH settings saved for {device_id} (host={creds.host or 'unset'} "
                f"port={creds.port} user={creds.username or 'unset'})",
            )
        self.republish()
        return creds

    def delete_credentials(self, device_id: str) -> None:
        if self.secrets is None:
            raise SecretStoreError("secrets store not available")
        self.secrets.delete(device_id)
        self.republish()

    def refresh_link_speed(self, device_id: str, force: bool = False) -> Optional[DeviceCredentials]:
        """
        Purpose: Detect the link speed for stored settings that lack one (or always, with
                 force) and store the new value.
        Outputs: The stored credentials after detection; None when the device has none.
        """
        if self.secrets is None:
            raise SecretStoreError("secrets store not available")
        creds = self.secrets.get(device_id)
        if creds is None or not creds.connect_enabled:
            return creds
        if creds.os == "linux":
            if creds.link_speed_mbps and not force:
                return creds
            self._log("info", "ssh", f"auto-detect link speed for {device_id}")
        updated = self._detect_link_speed(device_id, creds)
        if updated.link_speed_mbps != creds.link_speed_mbps:
            self.secrets.set(device_id, updated)
        return updated

    def republish(self) -> None:
        """Push the current board again (e.g. after credentials changed)."""
        with self._lock:
            self._publish(self._source)

    # -------- Internal --------

    def _publish(self, board: Board) -> Board:
        self._source = board
        devices = self._with_connect_flags(board.devices)
        self._board = Board(policy=board.policy, devices=devices)
        self.ping.update_from_board(devices, board.policy)
        self.ssh.update_targets(devices)
        return self._copy_board()

    def _detect_link_speed(self, device_id: str, creds: DeviceCredentials) -> DeviceCredentials:
        if not creds.connect_enabled:
            return creds
        if creds.os != "linux":
            self._log("info", "ssh", f"link speed detection skipped for {device_id} (os={creds.os})")
            return creds
        target = creds if creds.host else replace(creds, host=self._device_target(device_id))
        try:
            speed, iface = self.detector(target, LINK_SPEED_TIMEOUT_SEC)
        except Exception as err:
            self._log("warn", "ssh", f"ethtool failed for {device_id}: {err}")
            return creds
        if speed <= 0:
            return creds
        self._log("info", "ssh", f"link speed {speed} Mbps detected for {device_id} ({iface})")
        return replace(creds, link_speed_mbps=speed)

    def _device_target(self, device_id: str) -> str:
        with self._lock:
            for device in self._board.devices:
                if device.id == device_id:
                    return device.pick_target()
        return ""

    def _copy_board(self) -> Board:
        return Board(policy=replace(self._board.policy), devices=list(self._board.devices))

    def _with_connect_flags(self, devices: List[Device]) -> List[Device]:
        """The secret store's connect bit wins over the board's for devices that have a record."""
        if self.secrets is None:
            return list(devices)
        out: List[Device] = []
        for device in devices:
            if device.is_segment:
                out.append(device)
                continue
            try:
                creds = self.secrets.get(device.id)
            except SecretStoreError as err:
                self._log("warn", "settings", f"failed to read settings for {device.id}: {err}")
                creds = None
            if creds is not None and creds.connect_enabled != device.connect_enabled:
                device = replace(device, connect_enabled=creds.connect_enabled)
            out.append(device)
        return out

    def _log(self, level: str, source: str, message: str) -> None:
        if self.logs is None:
            return
        self.logs.append(level, source, message)
