from pydantic import BaseModel
from typing import Optional


class UserSettingsRead(BaseModel):
    user_id: str
    preview_style: str = "favicon"
    backy_pull_key: Optional[str] = None
