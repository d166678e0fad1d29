from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class LinkCreate(BaseModel):
    """Schema for creating a new short link"""
    original_url: str = Field(..., description="Destination URL", min_length=1, max_length=2048)
    slug: str = Field(..., description="Short code, unique across all owners", min_length=1, max_length=50)
    is_custom: bool = False
    folder_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    clicks: int = 0


class LinkUpdate(BaseModel):
    """Schema for updating a link. Only fields that are explicitly set are written."""
    original_url: Optional[str] = Field(None, min_length=1, max_length=2048)
    folder_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    slug: Optional[str] = Field(None, min_length=1, max_length=50)
    is_custom: Optional[bool] = None
    screenshot_url: Optional[str] = None


class LinkMetadataUpdate(BaseModel):
    """Enrichment fields fetched from the destination page"""
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_favicon: Optional[str] = None


class LinkRead(BaseModel):
    """A stored link"""
    id: int
    user_id: str
    folder_id: Optional[str] = None
    original_url: str
    slug: str
    is_custom: bool = False
    expires_at: Optional[datetime] = None
    clicks: int = 0
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_favicon: Optional[str] = None
    screenshot_url: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
