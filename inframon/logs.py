"""
Design (logs.py)
- Purpose: Bounded in-memory log shared by the monitors and shown in the Logs panel.
- Inputs: (level, source, message) triples from any thread.
- Outputs: LogEntry lists, oldest first.
- Side effects: Oldest entries are dropped once LOG_MAX_LINES is reached.
- Thread-safety: append()/list() take the internal lock.
"""

import threading
from collections import deque
from typing import Deque, List

from .config import LOG_MAX_LINES
from .models import LogEntry, utcnow


class LogStore:
    def __init__(self, max_entries: int = LOG_MAX_LINES) -> None:
        if max_entries <= 0:
            max_entries = LOG_MAX_LINES
        self._lock = threading.Lock()
        self._items: Deque[LogEntry] = deque(maxlen=max_entries)

    def append(self, level: str, source: str, message: str) -> None:
        entry = LogEntry(
            time=utcnow().strftime("%Y-%m-%dT%H:%M:%SZ"),
            level=level,
            source=source,
            message=message,
        )
        with self._lock:
            self._items.append(entry)

    def list(self, limit: int = 0) -> List[LogEntry]:
        """Newest `limit` entries (all when limit <= 0 or larger than the buffer), oldest first."""
        with self._lock:
            items = list(self._items)
        if limit <= 0 or limit >= len(items):
            return items
        return items[-limit:]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
