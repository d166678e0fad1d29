from pydantic import BaseModel, Field
from datetime import datetime


class UploadCreate(BaseModel):
    key: str = Field(..., min_length=1, max_length=512)
    file_name: str
    file_type: str
    file_size: int = Field(..., ge=0)
    public_url: str


class UploadRead(BaseModel):
    id: int
    user_id: str
    key: str
    file_name: str
    file_type: str
    file_size: int
    public_url: str
    created_at: datetime
