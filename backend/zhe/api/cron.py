from fastapi import APIRouter, Depends, HTTPException

from ..core.security import require_worker_secret
from ..services.kv_client import is_kv_configured
from ..services.kv_sync import perform_kv_sync
from ..services.sync_history import derive_sync_health, get_history

router = APIRouter()


@router.post("/cron/sync-kv", dependencies=[Depends(require_worker_secret)])
async def sync_kv():
    """
    Full database -> edge cache sync.

    Called by the worker's cron trigger as a consistency safety net;
    skipped cheaply when nothing changed since the last clean run.
    """
    if not is_kv_configured():
        raise HTTPException(
            status_code=503,
            detail="KV not configured (missing Cloudflare credentials)",
        )

    result = await perform_kv_sync()

    if result.error:
        raise HTTPException(status_code=500, detail=result.error)

    return {
        "synced": result.synced,
        "failed": result.failed,
        "total": result.total,
        "durationMs": result.duration_ms,
        "skipped": result.skipped,
    }


@router.get("/worker-status")
async def worker_status():
    """Sync health derived from the in-memory history, plus the runs themselves."""
    entries = get_history().entries()
    health = derive_sync_health(entries)
    return {
        **health.model_dump(mode="json", by_alias=True),
        "history": [entry.model_dump(mode="json", by_alias=True) for entry in entries],
    }
