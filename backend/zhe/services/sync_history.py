"""
In-memory rolling history of KV sync runs, newest first.

Resets on restart; there is no table behind it.
"""

import threading
from collections import deque
from datetime import datetime
from typing import Iterable, List, Optional

from ..config import settings
from ..schemas import SyncHealth, SyncHistoryEntry


class SyncHistory:
    def __init__(self, max_entries: int = 50):
        self._entries: deque = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen

    def record(self, entry: SyncHistoryEntry) -> None:
        """Add a run; the oldest entry falls off once the buffer is full."""
        with self._lock:
            self._entries.appendleft(entry)

    def entries(self) -> List[SyncHistoryEntry]:
        with self._lock:
            return list(self._entries)

    def latest(self) -> Optional[SyncHistoryEntry]:
        with self._lock:
            return self._entries[0] if self._entries else None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


history = SyncHistory(max_entries=settings.SYNC_HISTORY_SIZE)


def get_history() -> SyncHistory:
    return history


def derive_sync_health(entries: Iterable[SyncHistoryEntry]) -> SyncHealth:
    """Summarize a newest-first list of runs."""
    entries = list(entries)
    if not entries:
        return SyncHealth()

    latest = entries[0]
    return SyncHealth(
        last_sync_time=datetime.fromisoformat(latest.timestamp),
        last_status=latest.status,
        last_synced=latest.synced,
        total_runs=len(entries),
        error_runs=sum(1 for e in entries if e.status == "error"),
        skipped_runs=sum(1 for e in entries if e.status == "skipped"),
    )
