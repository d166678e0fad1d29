from typing import Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel


class AnalyticsRead(BaseModel):
    """Single recorded click"""
    id: int
    link_id: int
    country: Optional[str] = None
    city: Optional[str] = None
    device: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    referer: Optional[str] = None
    created_at: datetime


class ClickEvent(BaseModel):
    """Click data captured by the redirect path"""
    link_id: int
    country: Optional[str] = None
    city: Optional[str] = None
    device: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    referer: Optional[str] = None


class AnalyticsStats(BaseModel):
    """Aggregated analytics for one link"""
    total_clicks: int = 0
    unique_countries: List[str] = []
    device_breakdown: Dict[str, int] = {}
    browser_breakdown: Dict[str, int] = {}
    os_breakdown: Dict[str, int] = {}


class TopLinkEntry(BaseModel):
    slug: str
    original_url: str
    clicks: int


class OverviewStats(BaseModel):
    """Owner-wide dashboard numbers"""
    total_links: int = 0
    total_clicks: int = 0
    total_uploads: int = 0
    total_storage_bytes: int = 0
    click_timestamps: List[datetime] = []
    upload_timestamps: List[datetime] = []
    top_links: List[TopLinkEntry] = []
    device_breakdown: Dict[str, int] = {}
    browser_breakdown: Dict[str, int] = {}
    os_breakdown: Dict[str, int] = {}
    file_type_breakdown: Dict[str, int] = {}
