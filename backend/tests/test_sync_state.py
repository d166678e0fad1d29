import threading
from datetime import datetime, timezone

from zhe.schemas import SyncHistoryEntry
from zhe.services.dirty import DirtyTracker
from zhe.services.sync_history import SyncHistory, derive_sync_health


def entry(status="success", synced=1, hour=0):
    return SyncHistoryEntry(
        timestamp=datetime(2025, 1, 1, hour, tzinfo=timezone.utc).isoformat(),
        status=status,
        synced=synced,
        total=synced,
    )


def test_tracker_starts_dirty():
    assert DirtyTracker().is_dirty()


def test_tracker_transitions():
    tracker = DirtyTracker(dirty=False)
    assert not tracker.is_dirty()

    tracker.mark_dirty()
    tracker.mark_dirty()
    assert tracker.is_dirty()

    tracker.clear_dirty()
    assert not tracker.is_dirty()

    tracker.reset()
    assert tracker.is_dirty()


def test_tracker_concurrent_marks():
    tracker = DirtyTracker(dirty=False)
    threads = [threading.Thread(target=tracker.mark_dirty) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert tracker.is_dirty()


def test_history_is_newest_first():
    history = SyncHistory()
    history.record(entry(hour=1))
    history.record(entry(status="error", hour=2))

    assert [e.status for e in history.entries()] == ["error", "success"]
    assert history.latest().status == "error"


def test_history_drops_oldest_beyond_capacity():
    history = SyncHistory(max_entries=50)
    for i in range(55):
        history.record(entry(synced=i))

    entries = history.entries()
    assert len(entries) == 50
    assert entries[0].synced == 54
    assert entries[-1].synced == 5


def test_history_entries_is_a_copy():
    history = SyncHistory()
    history.record(entry())

    history.entries().clear()

    assert len(history) == 1
    history.clear()
    assert history.latest() is None


def test_health_of_empty_history():
    health = derive_sync_health([])

    assert health.last_sync_time is None
    assert health.total_runs == 0


def test_health_summary():
    history = SyncHistory()
    history.record(entry(status="success", synced=3, hour=1))
    history.record(entry(status="error", synced=0, hour=2))
    history.record(entry(status="skipped", synced=0, hour=3))
    history.record(entry(status="success", synced=7, hour=4))

    health = derive_sync_health(history.entries())

    assert health.last_status == "success"
    assert health.last_synced == 7
    assert health.last_sync_time == datetime(2025, 1, 1, 4, tzinfo=timezone.utc)
    assert health.total_runs == 4
    assert health.error_runs == 1
    assert health.skipped_runs == 1
