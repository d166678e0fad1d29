from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class FolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    icon: str = "folder"


class FolderUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    icon: Optional[str] = None


class FolderRead(BaseModel):
    id: str
    user_id: str
    name: str
    icon: str = "folder"
    created_at: datetime
