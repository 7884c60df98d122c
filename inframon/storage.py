"""
Design (storage.py)
- Purpose: Resolve the data directory and load/save the board JSON.
- Inputs: Paths (from get_data_dir()), board dicts for save.
- Outputs: Board dicts on load; None on save.
- Side effects: Reads/writes files. A missing board file is created with the starter board;
                a corrupt one loads as the starter board (file left untouched);
                save failures are ignored.
- Thread-safety: Callers serialize access (BoardRepo holds its lock around load/save).
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict

from .config import (
    APP_TITLE,
    BOARD_FILENAME,
    DATA_DIR_ENV,
    DATA_DIR_NAME,
    DEFAULT_INTERVAL_SEC,
    SECRET_KEY_FILENAME,
    SECRETS_FILENAME,
)
from .models import utcnow


def get_data_dir() -> Path:
    """
    Resolve the data directory. INFRAMON_DATA_DIR wins; on Windows prefer the app data dir
    so it survives reinstalls. Fallback to data/ next to the executable (or the project
    root when running from source).
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override)
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / APP_TITLE
    if getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS"):
        base = Path(sys.executable).parent
    else:
        base = Path(__file__).resolve().parent.parent
    return base / DATA_DIR_NAME


def get_board_path(data_dir: Path) -> Path:
    return data_dir / BOARD_FILENAME


def get_secret_paths(data_dir: Path) -> tuple[Path, Path]:
    """(key file, secrets file)"""
    return data_dir / SECRET_KEY_FILENAME, data_dir / SECRETS_FILENAME


def default_board_data() -> Dict[str, Any]:
    """Starter board: one LAN segment and two devices, monitoring off."""
    return {
        "version": 1,
        "meta": {
            "name": APP_TITLE,
            "updatedAt": utcnow().strftime("%Y-%m-%dT%H:%M:%SZ"),
            "monitoring": {
                "enabled": False,
                "intervalSec": DEFAULT_INTERVAL_SEC,
                "showStatus": False,
            },
        },
        "nodes": [
            {
                "id": "net-1",
                "type": "network",
                "label": "LAN-1",
                "networkPublicIp": "203.0.113.0/24",
                "notes": "Primary LAN segment",
            },
            {
                "id": "node-1",
                "type": "server",
                "label": "Server A",
                "ipPrivate": "10.0.0.10",
                "ipPublic": "203.0.113.10",
                "notes": "Primary app server",
            },
            {
                "id": "node-2",
                "type": "router",
                "label": "Edge Router",
                "ipPrivate": "10.0.0.1",
                "ipPublic": "198.51.100.1",
                "notes": "Gateway to ISP",
            },
        ],
        "links": [],
    }


def read_board_data(path: Path) -> Dict[str, Any]:
    """
    Load the board JSON. Writes the starter board if the file is missing; returns the
    starter board (without overwriting) if the file cannot be parsed.
    """
    if not path.exists():
        data = default_board_data()
        save_board_data(path, data)
        return data
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return default_board_data()
    if not isinstance(data, dict):
        return default_board_data()
    return data


def save_board_data(path: Path, data: Dict[str, Any]) -> None:
    """
    Save the board JSON. Ignores OSError (e.g. read-only location).
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
    except OSError:
        pass
