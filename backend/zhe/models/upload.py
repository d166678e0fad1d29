from sqlalchemy import Column, Integer, String, DateTime
from ..database import Base


class Upload(Base):
    """File stored in object storage"""
    __tablename__ = "uploads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    key = Column(String(512), unique=True, nullable=False)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(128), nullable=False)
    file_size = Column(Integer, nullable=False)
    public_url = Column(String(2048), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Upload {self.key}>"
