"""
KV dirty flag: has the store changed since the last full sync?

Kept apart from the KV client and the sync orchestrator so that both
can depend on it without depending on each other. Process-local and not
persisted; it starts dirty so the first sync after a restart always
pushes everything.
"""

import threading


class DirtyTracker:
    def __init__(self, dirty: bool = True):
        self._lock = threading.Lock()
        self._dirty = dirty

    def mark_dirty(self) -> None:
        with self._lock:
            self._dirty = True

    def is_dirty(self) -> bool:
        with self._lock:
            return self._dirty

    def clear_dirty(self) -> None:
        with self._lock:
            self._dirty = False

    def reset(self, value: bool = True) -> None:
        """Force the flag to a value (tests)."""
        with self._lock:
            self._dirty = value


tracker = DirtyTracker()


def get_tracker() -> DirtyTracker:
    return tracker


def mark_dirty() -> None:
    tracker.mark_dirty()


def is_dirty() -> bool:
    return tracker.is_dirty()


def clear_dirty() -> None:
    tracker.clear_dirty()
