from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class TagCreate(BaseModel):
    """Name and color are checked by the repository before insertion"""
    name: str
    color: str


class TagUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None


class TagRead(BaseModel):
    id: str
    user_id: str
    name: str
    color: str
    created_at: datetime


class LinkTagRead(BaseModel):
    link_id: int
    tag_id: str
