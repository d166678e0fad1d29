from typing import Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class KVLinkData(BaseModel):
    """Minimal per-slug payload the edge redirect path needs.

    Serialised with camelCase keys: ``{"id", "originalUrl", "expiresAt"}``,
    ``expiresAt`` being epoch milliseconds or null for "never expires".
    """
    id: int
    original_url: str = Field(..., alias="originalUrl")
    expires_at: Optional[int] = Field(None, alias="expiresAt")

    class Config:
        populate_by_name = True

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class KVEntry(BaseModel):
    slug: str
    data: KVLinkData


class BulkPutResult(BaseModel):
    success: int = 0
    failed: int = 0


class SyncResult(BaseModel):
    """Outcome of one orchestrator run"""
    synced: int = 0
    failed: int = 0
    total: int = 0
    duration_ms: int = 0
    skipped: bool = False
    error: Optional[str] = None


SyncStatus = Literal["success", "error", "skipped"]


class SyncHistoryEntry(BaseModel):
    timestamp: str  # ISO 8601, UTC
    status: SyncStatus
    synced: int = 0
    failed: int = 0
    total: int = 0
    duration_ms: int = Field(0, alias="durationMs")
    error: Optional[str] = None

    class Config:
        populate_by_name = True


class SyncHealth(BaseModel):
    """Summary of recent sync runs for the status page"""
    last_sync_time: Optional[datetime] = Field(None, alias="lastSyncTime")
    last_status: Optional[SyncStatus] = Field(None, alias="lastStatus")
    last_synced: int = Field(0, alias="lastSynced")
    total_runs: int = Field(0, alias="totalRuns")
    error_runs: int = Field(0, alias="errorRuns")
    skipped_runs: int = Field(0, alias="skippedRuns")

    class Config:
        populate_by_name = True
