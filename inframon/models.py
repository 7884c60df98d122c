"""
Design (models.py)
- Purpose: Define typed data structures for the board (devices, monitoring policy),
           probe results, device credentials and log entries.
- Inputs: Field values, or loosely-typed JSON dicts decoded once via from_dict().
- Outputs: Dataclass instances; to_dict() renders the JSON field names.
- Side effects: None.
- Thread-safety: Devices and results are frozen, so pollers can hand out shallow copies
                 of their caches without exposing mutable state.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

from .config import DEFAULT_INTERVAL_SEC, DEFAULT_SHOW_STATUS, SSH_DEFAULT_PORT

# Reachability error classification
ERROR_TIMEOUT = "timeout"
ERROR_UNREACHABLE = "unreachable"
ERROR_NO_IP = "no ip"

AUTH_PASSWORD = "password"
AUTH_SSH_KEY = "ssh_key"

SEGMENT_TYPE = "network"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _int(value: Any) -> int:
    # bool is an int subclass; reject it along with floats and strings
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0


def _bool(value: Any) -> bool:
    return value if isinstance(value, bool) else False


def _iso(ts: datetime) -> str:
    return ts.isoformat().replace("+00:00", "Z")


class DeviceKind(Enum):
    DEVICE = "device"
    SEGMENT = "segment"


@dataclass(frozen=True)
class Device:
    """
    Design (Device)
    - Purpose: One board node as seen by the pollers.
    - Fields:
        id: unique within a board refresh.
        kind: SEGMENT for network segments (never probed), DEVICE otherwise.
        device_type: raw board type ("server", "router", "network", ...).
        ip_public / ip_private / ip_overlay: candidate addresses, "" when unset.
        ping_enabled: reachability monitoring opt-in (unset on the board means False).
        ping_interval_sec: per-device override, 0 = use the global interval.
        connect_enabled: liveness (SSH) monitoring opt-in.
    """
    id: str
    kind: DeviceKind = DeviceKind.DEVICE
    device_type: str = ""
    ip_public: str = ""
    ip_private: str = ""
    ip_overlay: str = ""
    ping_enabled: bool = False
    ping_interval_sec: int = 0
    connect_enabled: bool = False

    @property
    def is_segment(self) -> bool:
        return self.kind is DeviceKind.SEGMENT

    def pick_target(self) -> str:
        """Preferred probe address: public, then private, then overlay. "" if none."""
        for address in (self.ip_public, self.ip_private, self.ip_overlay):
            if address:
                return address
        return ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Device":
        device_type = _str(data.get("type"))
        return cls(
            id=_str(data.get("id")),
            kind=DeviceKind.SEGMENT if device_type == SEGMENT_TYPE else DeviceKind.DEVICE,
            device_type=device_type,
            ip_public=_str(data.get("ipPublic")),
            ip_private=_str(data.get("ipPrivate")),
            ip_overlay=_str(data.get("ipTailscale")),
            ping_enabled=_bool(data.get("pingEnabled")),
            ping_interval_sec=max(_int(data.get("pingIntervalSec")), 0),
            connect_enabled=_bool(data.get("connectEnabled")),
        )


@dataclass
class MonitoringPolicy:
    enabled: bool = False
    interval_sec: int = DEFAULT_INTERVAL_SEC
    show_status: bool = DEFAULT_SHOW_STATUS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MonitoringPolicy":
        # Missing intervalSec decodes to 0, which sanitization turns into the default
        return cls(
            enabled=_bool(data.get("enabled")),
            interval_sec=_int(data.get("intervalSec")),
            show_status=_bool(data.get("showStatus")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "intervalSec": self.interval_sec,
            "showStatus": self.show_status,
        }


@dataclass
class Board:
    """Decoded board: the monitoring policy plus the node list, in board order."""
    policy: MonitoringPolicy = field(default_factory=MonitoringPolicy)
    devices: List[Device] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Board":
        meta = data.get("meta")
        monitoring = meta.get("monitoring") if isinstance(meta, dict) else None
        policy = MonitoringPolicy.from_dict(monitoring if isinstance(monitoring, dict) else {})

        devices: List[Device] = []
        seen = set()
        nodes = data.get("nodes")
        for item in nodes if isinstance(nodes, list) else []:
            if not isinstance(item, dict):
                continue
            device = Device.from_dict(item)
            if not device.id or device.id in seen:
                continue
            seen.add(device.id)
            devices.append(device)
        return cls(policy=policy, devices=devices)


@dataclass(frozen=True)
class PingResult:
    online: bool
    last_checked: datetime
    rtt_ms: int = 0
    target: str = ""
    error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "online": self.online,
            "lastChecked": _iso(self.last_checked),
            "rttMs": self.rtt_ms,
            "target": self.target,
            "error": self.error,
        }


@dataclass(frozen=True)
class SSHStatus:
    online: bool
    last_checked: datetime
    error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "online": self.online,
            "lastChecked": _iso(self.last_checked),
            "error": self.error,
        }


@dataclass
class DeviceCredentials:
    """
    Design (DeviceCredentials)
    - Purpose: SSH access settings for one device, stored encrypted by SecretStore.
    - Fields:
        os: operating-system hint ("linux", ...).
        host: explicit host; "" means use the device's own addresses.
        port: SSH port (22 by default).
        auth_method: "password" or "ssh_key".
        username / password / private_key / private_key_passphrase: auth material.
        connect_enabled: opt-in for the liveness poller.
        link_speed_mbps: last detected link speed, 0 when unknown.
    """
    os: str = "linux"
    host: str = ""
    port: int = SSH_DEFAULT_PORT
    auth_method: str = AUTH_PASSWORD
    username: str = ""
    password: str = ""
    private_key: str = ""
    private_key_passphrase: str = ""
    connect_enabled: bool = False
    link_speed_mbps: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeviceCredentials":
        # Secrets are taken verbatim; only sanitize_credentials() trims
        def raw(key: str) -> str:
            value = data.get(key)
            return value if isinstance(value, str) else ""

        return cls(
            os=raw("os"),
            host=raw("host"),
            port=_int(data.get("port")),
            auth_method=raw("authMethod"),
            username=raw("username"),
            password=raw("password"),
            private_key=raw("privateKey"),
            private_key_passphrase=raw("privateKeyPassphrase"),
            connect_enabled=_bool(data.get("connectEnabled")),
            link_speed_mbps=max(_int(data.get("linkSpeedMbps")), 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "os": self.os,
            "host": self.host,
            "port": self.port,
            "authMethod": self.auth_method,
            "username": self.username,
            "password": self.password,
            "privateKey": self.private_key,
            "privateKeyPassphrase": self.private_key_passphrase,
            "connectEnabled": self.connect_enabled,
            "linkSpeedMbps": self.link_speed_mbps,
        }


@dataclass(frozen=True)
class LogEntry:
    time: str
    level: str
    source: str
    message: str
