"""
Design (sshutil.py)
- Purpose: SSH helpers.
    check_connection(): liveness probe. Open a transport, authenticate, close. No command.
    detect_link_speed(): log in and read the speed of the default-route interface
                         (ethtool, then sysfs on Linux; Get-NetAdapter on Windows).
- Inputs: DeviceCredentials (host already resolved by the caller), timeout in seconds.
- Outputs: None / (speed in Mbps, interface name); raises on any failure (SSHCheckError
           for incomplete credentials, LinkSpeedError when no speed can be read,
           paramiko / socket errors for network and auth failures).
- Side effects: One TCP connection per call.
- Thread-safety: Stateless; each call owns its own SSHClient.
"""

import io
import json
import re
import shlex
from typing import Tuple

import paramiko

from .config import LINK_SPEED_TIMEOUT_SEC, SSH_DEFAULT_PORT, SSH_TIMEOUT_SEC
from .models import AUTH_SSH_KEY, DeviceCredentials

KEY_TYPES = (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey)

SPEED_REGEX = re.compile(r"([0-9]+(?:\.[0-9]+)?)\s*([mg]b(?:/s|ps))", re.IGNORECASE)

ROUTE_IFACE_SCRIPT = r"ip route get 1.1.1.1 | sed -n 's/.* dev \([^ ]*\).*/\1/p'"
LINK_IFACE_SCRIPT = r"""ip -o link show | awk -F': ' '$2 != "lo" {print $2; exit}'"""
SYSFS_IFACE_SCRIPT = "ls /sys/class/net 2>/dev/null | grep -v '^lo$' | head -n1"

WINDOWS_SPEED_COMMAND = (
    'powershell -NoProfile -Command "'
    "$route = Get-NetRoute -DestinationPrefix '0.0.0.0/0' | Sort-Object RouteMetric | Select-Object -First 1; "
    "$idx = $null; if ($route) { $idx = $route.InterfaceIndex }; "
    "$adapter = $null; if ($idx) { $adapter = Get-NetAdapter -InterfaceIndex $idx -ErrorAction SilentlyContinue }; "
    "if (-not $adapter) { $adapter = Get-NetAdapter | Where-Object { $_.Status -eq 'Up' } "
    "| Sort-Object LinkSpeed -Descending | Select-Object -First 1 }; "
    "if ($adapter) { [pscustomobject]@{Name=$adapter.Name; LinkSpeed=$adapter.LinkSpeed} | ConvertTo-Json -Compress }"
    '"'
)


class SSHCheckError(ValueError):
    """Credentials are incomplete; raised before any connection attempt."""


class LinkSpeedError(ValueError):
    """The session worked but no usable link speed could be read."""


def load_private_key(text: str, passphrase: str = "") -> paramiko.PKey:
    """Parse an OpenSSH/PEM private key, trying each supported key type in turn."""
    last_error: Exception = SSHCheckError("unsupported private key")
    for key_type in KEY_TYPES:
        try:
            return key_type.from_private_key(io.StringIO(text), password=passphrase or None)
        except paramiko.PasswordRequiredException:
            raise
        except (paramiko.SSHException, ValueError) as err:
            last_error = err
    raise last_error


def build_auth(creds: DeviceCredentials) -> dict:
    """connect() keyword arguments for the configured auth method."""
    method = (creds.auth_method or "").strip().lower()
    if method == AUTH_SSH_KEY:
        key = creds.private_key.strip()
        if not key:
            raise SSHCheckError("private key is empty")
        return {"pkey": load_private_key(key, creds.private_key_passphrase)}
    if not creds.password:
        raise SSHCheckError("password is empty")
    return {"password": creds.password}


def open_client(creds: DeviceCredentials, timeout: float) -> paramiko.SSHClient:
    """Validate credentials and return a connected, authenticated client (caller closes)."""
    host = creds.host.strip()
    if not host:
        raise SSHCheckError("host is empty")
    user = creds.username.strip()
    if not user:
        raise SSHCheckError("username is empty")
    port = creds.port or SSH_DEFAULT_PORT
    if timeout <= 0:
        timeout = SSH_TIMEOUT_SEC
    auth = build_auth(creds)

    client = paramiko.SSHClient()
    # Host keys are not verified; nothing is loaded from or saved to known_hosts
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    try:
        client.connect(
            hostname=host,
            port=port,
            username=user,
            timeout=timeout,
            banner_timeout=timeout,
            auth_timeout=timeout,
            allow_agent=False,
            look_for_keys=False,
            **auth,
        )
    except Exception:
        client.close()
        raise
    return client


def check_connection(creds: DeviceCredentials, timeout: float = SSH_TIMEOUT_SEC) -> None:
    client = open_client(creds, timeout)
    client.close()


def run_command(client: paramiko.SSHClient, command: str, timeout: float) -> str:
    """Run one command; returns stdout, raises LinkSpeedError on a non-zero exit."""
    _, stdout, _ = client.exec_command(command, timeout=timeout)
    output = stdout.read().decode("utf-8", errors="replace")
    status = stdout.channel.recv_exit_status()
    if status != 0:
        raise LinkSpeedError(f"command exited with status {status}")
    return output


def _sh(script: str) -> str:
    return f"sh -c {shlex.quote(script)}"


def detect_link_speed(
    creds: DeviceCredentials, timeout: float = LINK_SPEED_TIMEOUT_SEC
) -> Tuple[int, str]:
    """
    Purpose: Read the link speed of the device's main interface over SSH.
    Outputs: (speed in Mbps, interface name).
    Side effects: One SSH session running a few read-only commands.
    """
    if timeout <= 0:
        timeout = SSH_TIMEOUT_SEC
    client = open_client(creds, timeout)
    try:
        if creds.os.strip().lower() == "windows":
            return _detect_windows_speed(client, timeout)
        return _detect_linux_speed(client, timeout)
    finally:
        client.close()


def _detect_linux_speed(client: paramiko.SSHClient, timeout: float) -> Tuple[int, str]:
    try:
        iface = run_command(client, _sh(ROUTE_IFACE_SCRIPT), timeout).strip()
    except (LinkSpeedError, paramiko.SSHException, OSError) as err:
        raise LinkSpeedError(f"failed to detect interface: {err}") from err
    for script in (LINK_IFACE_SCRIPT, SYSFS_IFACE_SCRIPT):
        if iface:
            break
        try:
            iface = run_command(client, _sh(script), timeout).strip()
        except (LinkSpeedError, paramiko.SSHException, OSError):
            iface = ""
    if not iface:
        raise LinkSpeedError("could not determine interface")

    name = shlex.quote(iface)
    attempts = (
        (f"ethtool {name} 2>/dev/null | awk -F': ' '/Speed:/ {{print $2; exit}}'", parse_speed),
        (f"cat /sys/class/net/{name}/speed 2>/dev/null", parse_sysfs_speed),
    )
    for script, parse in attempts:
        try:
            return parse(run_command(client, _sh(script), timeout)), iface
        except (LinkSpeedError, paramiko.SSHException, OSError):
            continue
    raise LinkSpeedError("speed unavailable (ethtool returned empty and sysfs missing)")


def _detect_windows_speed(client: paramiko.SSHClient, timeout: float) -> Tuple[int, str]:
    output = run_command(client, WINDOWS_SPEED_COMMAND, timeout)
    try:
        return parse_windows_link_speed_json(output)
    except LinkSpeedError as err:
        try:
            return parse_windows_link_speed(output)
        except LinkSpeedError:
            raise err


# -------- Parsers --------

def parse_speed(raw: str) -> int:
    """ethtool / Get-NetAdapter text ("1000Mb/s", "2.5 Gbps") to Mbps."""
    value = (raw or "").strip()
    if not value:
        raise LinkSpeedError("empty speed")
    if "unknown" in value.lower():
        raise LinkSpeedError("speed unknown")
    match = SPEED_REGEX.search(value)
    if not match:
        raise LinkSpeedError(f"unexpected speed format: {value}")
    num = float(match.group(1))
    if match.group(2).lower().startswith("g"):
        num *= 1000
    if num <= 0:
        raise LinkSpeedError("invalid speed")
    return int(num + 0.5)


def parse_sysfs_speed(raw: str) -> int:
    """/sys/class/net/<iface>/speed holds Mbps; -1 or 0 means unknown."""
    value = (raw or "").strip()
    if not value:
        raise LinkSpeedError("empty speed")
    if value in ("-1", "0"):
        raise LinkSpeedError("speed unknown")
    try:
        num = int(value)
    except ValueError:
        raise LinkSpeedError(f"unexpected speed format: {value}") from None
    if num <= 0:
        raise LinkSpeedError("invalid speed")
    return num


def bps_to_mbps(bps: float) -> int:
    if bps <= 0:
        return 0
    return int(bps / 1_000_000 + 0.5)


def parse_windows_link_speed_json(raw: str) -> Tuple[int, str]:
    value = (raw or "").strip()
    if not value:
        raise LinkSpeedError("empty response")
    try:
        payload = json.loads(value)
    except ValueError as err:
        raise LinkSpeedError(f"invalid adapter json: {err}") from err
    if not isinstance(payload, dict) or payload.get("LinkSpeed") is None:
        raise LinkSpeedError("missing link speed")
    name = payload.get("Name") if isinstance(payload.get("Name"), str) else ""
    speed = payload["LinkSpeed"]
    if isinstance(speed, (int, float)) and not isinstance(speed, bool):
        return bps_to_mbps(speed), name
    if isinstance(speed, str):
        return parse_speed(speed), name
    raise LinkSpeedError("unsupported link speed type")


def parse_windows_link_speed(raw: str) -> Tuple[int, str]:
    """Fallback for table output: first row that carries a speed."""
    for line in (raw or "").splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("---") or "LinkSpeed" in trimmed:
            continue
        match = SPEED_REGEX.search(trimmed)
        if not match:
            continue
        name = trimmed[:match.start()].strip() or "adapter"
        return parse_speed(match.group(0)), name
    raise LinkSpeedError("unable to parse windows link speed")
