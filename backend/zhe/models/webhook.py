from sqlalchemy import Column, Integer, String, DateTime
from ..database import Base


class Webhook(Base):
    """Per-owner programmatic access token"""
    __tablename__ = "webhooks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), unique=True, nullable=False)
    token = Column(String(128), unique=True, nullable=False)
    rate_limit = Column(Integer, nullable=False, default=5)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Webhook for {self.user_id}>"
