from sqlalchemy import Column, String, DateTime
from ..database import Base


class Folder(Base):
    """Owner-scoped folder grouping links"""
    __tablename__ = "folders"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    icon = Column(String(64), nullable=False, default="folder")
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Folder {self.name}>"
