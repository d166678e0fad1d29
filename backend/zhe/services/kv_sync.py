"""
Full store -> edge cache sync.

Shared by the cron route and the startup hook. Safe to fire and forget:
failures end up in the returned SyncResult and in the sync history,
never as exceptions.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from ..core.codec import row_to_kv_data
from ..database import Row
from ..schemas import KVEntry, SyncHistoryEntry, SyncResult
from .dirty import DirtyTracker, get_tracker
from .kv_client import KVClient, get_kv_client
from .links import get_all_links_for_kv
from .sync_history import SyncHistory, get_history

logger = logging.getLogger(__name__)

FETCH_ERROR = "Failed to fetch links from store"
NOT_CONFIGURED_ERROR = "KV not configured"

LinkFetcher = Callable[[], Awaitable[List[Row]]]


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def perform_kv_sync(
    client: Optional[KVClient] = None,
    tracker: Optional[DirtyTracker] = None,
    history: Optional[SyncHistory] = None,
    fetch_links: Optional[LinkFetcher] = None,
) -> SyncResult:
    """
    Push every link to the edge cache if anything changed since the last
    clean sync.

    The dirty flag is cleared before the read so that writes landing while
    the sync runs keep it set; it is raised again unless every entry was
    written.
    """
    client = client or get_kv_client()
    tracker = tracker or get_tracker()
    history = history or get_history()
    fetch_links = fetch_links or get_all_links_for_kv

    if not client.is_configured:
        return SyncResult(error=NOT_CONFIGURED_ERROR)

    if not tracker.is_dirty():
        logger.info("sync-kv: skipped, no changes since last sync")
        history.record(SyncHistoryEntry(timestamp=_now_iso(), status="skipped"))
        return SyncResult(skipped=True)

    started = time.monotonic()
    tracker.clear_dirty()

    try:
        rows = await fetch_links()
    except Exception:
        tracker.mark_dirty()
        duration_ms = _elapsed_ms(started)
        logger.exception("sync-kv: %s", FETCH_ERROR)
        history.record(
            SyncHistoryEntry(
                timestamp=_now_iso(),
                status="error",
                duration_ms=duration_ms,
                error=FETCH_ERROR,
            )
        )
        return SyncResult(duration_ms=duration_ms, error=FETCH_ERROR)

    try:
        entries = [KVEntry(slug=row["slug"], data=row_to_kv_data(row)) for row in rows]
        result = await client.bulk_put_links(entries)
    except Exception as e:
        tracker.mark_dirty()
        duration_ms = _elapsed_ms(started)
        error = f"Sync failed: {e}"
        logger.exception("sync-kv: unexpected failure")
        history.record(
            SyncHistoryEntry(
                timestamp=_now_iso(),
                status="error",
                total=len(rows),
                duration_ms=duration_ms,
                error=error,
            )
        )
        return SyncResult(total=len(rows), duration_ms=duration_ms, error=error)

    duration_ms = _elapsed_ms(started)
    if result.failed > 0:
        tracker.mark_dirty()

    logger.info(
        "sync-kv: synced %d links, %d failed, %dms",
        result.success, result.failed, duration_ms,
    )
    history.record(
        SyncHistoryEntry(
            timestamp=_now_iso(),
            status="error" if result.failed > 0 else "success",
            synced=result.success,
            failed=result.failed,
            total=len(rows),
            duration_ms=duration_ms,
        )
    )
    return SyncResult(
        synced=result.success,
        failed=result.failed,
        total=len(rows),
        duration_ms=duration_ms,
    )
