from pydantic import BaseModel
from datetime import datetime


class WebhookRead(BaseModel):
    id: int
    user_id: str
    token: str
    rate_limit: int = 5
    created_at: datetime
