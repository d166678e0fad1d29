from sqlalchemy import Column, String
from ..database import Base


class UserSettings(Base):
    """Per-owner preferences"""
    __tablename__ = "user_settings"

    user_id = Column(String(255), primary_key=True)
    preview_style = Column(String(32), nullable=False, default="favicon")
    backy_pull_key = Column(String(128), nullable=True)

    def __repr__(self):
        return f"<UserSettings {self.user_id}>"
