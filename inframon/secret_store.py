"""
Design (secret_store.py)
- Purpose: Keep per-device SSH credentials encrypted at rest.
- Files:
    key file:  base64 of a 32-byte AES key, created (mode 0600) on first use.
    data file: {"version": 1, "updatedAt": ..., "items": {device_id: blob}} where
               blob = base64(nonce || AES-GCM(credentials JSON)).
- Outputs: DeviceCredentials (get), None when a device has no record.
- Side effects: Reads/writes both files.
- Errors: Unreadable files, bad keys and failed decryption raise SecretStoreError.
- Thread-safety: Every public method takes the internal lock.
"""

import base64
import json
import os
import threading
from pathlib import Path
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .config import SSH_DEFAULT_PORT
from .models import AUTH_PASSWORD, AUTH_SSH_KEY, DeviceCredentials, utcnow

KEY_SIZE = 32
NONCE_SIZE = 12
FILE_VERSION = 1


class SecretStoreError(Exception):
    pass


def sanitize_credentials(creds: DeviceCredentials) -> DeviceCredentials:
    """Normalize user input: defaults for os/port/auth, and drop the unused auth material."""
    os_hint = creds.os.strip().lower() or "linux"
    method = creds.auth_method.strip().lower() or AUTH_PASSWORD
    password = creds.password
    private_key = creds.private_key
    passphrase = creds.private_key_passphrase
    if method == AUTH_PASSWORD:
        private_key = ""
        passphrase = ""
    elif method == AUTH_SSH_KEY:
        password = ""
    return DeviceCredentials(
        os=os_hint,
        host=creds.host.strip(),
        port=creds.port or SSH_DEFAULT_PORT,
        auth_method=method,
        username=creds.username.strip(),
        password=password,
        private_key=private_key,
        private_key_passphrase=passphrase,
        connect_enabled=creds.connect_enabled,
        link_speed_mbps=max(creds.link_speed_mbps, 0),
    )


def load_or_create_key(path: Path) -> bytes:
    if path.exists():
        try:
            key = base64.b64decode(path.read_text(encoding="utf-8").strip(), validate=True)
        except (OSError, ValueError) as err:
            raise SecretStoreError(f"failed to read secret key: {err}") from err
        if len(key) != KEY_SIZE:
            raise SecretStoreError("invalid secret key length")
        return key

    key = AESGCM.generate_key(bit_length=KEY_SIZE * 8)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(base64.b64encode(key).decode("ascii"), encoding="utf-8")
        os.chmod(path, 0o600)
    except OSError as err:
        raise SecretStoreError(f"failed to write secret key: {err}") from err
    return key


def encrypt_payload(key: bytes, plaintext: bytes) -> str:
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
    return base64.b64encode(nonce + ciphertext).decode("ascii")


def decrypt_payload(key: bytes, payload: str) -> bytes:
    if not isinstance(payload, str):
        raise SecretStoreError("invalid payload")
    try:
        data = base64.b64decode(payload, validate=True)
    except ValueError as err:
        raise SecretStoreError("invalid payload") from err
    if len(data) < NONCE_SIZE:
        raise SecretStoreError("invalid payload")
    try:
        return AESGCM(key).decrypt(data[:NONCE_SIZE], data[NONCE_SIZE:], None)
    except InvalidTag as err:
        raise SecretStoreError("failed to decrypt device settings") from err


class SecretStore:
    def __init__(self, key_path: Path, data_path: Path) -> None:
        self._lock = threading.Lock()
        self._key = load_or_create_key(Path(key_path))
        self.path = Path(data_path)

    def get(self, device_id: str) -> DeviceCredentials | None:
        with self._lock:
            items = self._load()["items"]
            blob = items.get(device_id)
            if blob is None:
                return None
            plaintext = decrypt_payload(self._key, blob)
            try:
                data = json.loads(plaintext)
            except ValueError as err:
                raise SecretStoreError(f"invalid device settings: {err}") from err
            if not isinstance(data, dict):
                raise SecretStoreError("invalid device settings")
            return DeviceCredentials.from_dict(data)

    def set(self, device_id: str, creds: DeviceCredentials) -> None:
        raw = json.dumps(creds.to_dict()).encode("utf-8")
        with self._lock:
            file = self._load()
            file["items"][device_id] = encrypt_payload(self._key, raw)
            self._save(file)

    def delete(self, device_id: str) -> None:
        with self._lock:
            file = self._load()
            file["items"].pop(device_id, None)
            self._save(file)

    # -------- File I/O (lock held by caller) --------

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"version": FILE_VERSION, "updatedAt": _stamp(), "items": {}}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as err:
            raise SecretStoreError(f"failed to read secrets file: {err}") from err
        if not isinstance(data, dict):
            raise SecretStoreError("invalid secrets file")
        if not isinstance(data.get("items"), dict):
            data["items"] = {}
        if not data.get("version"):
            data["version"] = FILE_VERSION
        return data

    def _save(self, file: Dict[str, Any]) -> None:
        file["updatedAt"] = _stamp()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(file, f, indent=2)
            os.chmod(self.path, 0o600)
        except OSError as err:
            raise SecretStoreError(f"failed to write secrets file: {err}") from err


def _stamp() -> str:
    return utcnow().strftime("%Y-%m-%dT%H:%M:%SZ")
