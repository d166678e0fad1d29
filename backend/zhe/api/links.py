import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..core.codec import to_epoch_ms
from ..core.security import verify_click_caller
from ..schemas import ClickEvent
from ..services.kv_client import kv_get_link
from ..services.links import get_link_by_slug, record_click

logger = logging.getLogger(__name__)

router = APIRouter()


class ClickReport(BaseModel):
    """Click data posted by the edge worker"""
    link_id: int = Field(..., alias="linkId")
    country: Optional[str] = None
    city: Optional[str] = None
    device: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    referer: Optional[str] = None

    class Config:
        populate_by_name = True


def _is_expired(expires_at_ms: Optional[int]) -> bool:
    if expires_at_ms is None:
        return False
    return to_epoch_ms(datetime.now(timezone.utc)) > expires_at_ms


@router.get("/lookup")
async def lookup_slug(slug: Optional[str] = None):
    """
    Resolve a slug for the redirect path.

    Tries the edge cache first and falls back to the database.
    """
    if not slug:
        raise HTTPException(status_code=400, detail="Missing slug")

    cached = await kv_get_link(slug)
    if cached is not None:
        if _is_expired(cached.expires_at):
            return JSONResponse(status_code=404, content={"found": False, "expired": True})
        return {"found": True, "id": cached.id, "originalUrl": cached.original_url, "slug": slug}

    link = await get_link_by_slug(slug)
    if link is None:
        return JSONResponse(status_code=404, content={"found": False})

    if _is_expired(to_epoch_ms(link.expires_at)):
        return JSONResponse(status_code=404, content={"found": False, "expired": True})

    return {"found": True, "id": link.id, "originalUrl": link.original_url, "slug": link.slug}


@router.post("/record-click", dependencies=[Depends(verify_click_caller)])
async def report_click(report: ClickReport):
    """Record one click reported by the edge worker."""
    await record_click(ClickEvent(**report.model_dump()))
    return {"success": True}
