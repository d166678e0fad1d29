from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from ..database import Base


class Analytics(Base):
    """Click event recorded on redirect"""
    __tablename__ = "analytics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    link_id = Column(Integer, ForeignKey("links.id", ondelete="CASCADE"), nullable=False)
    country = Column(String(64), nullable=True)
    city = Column(String(128), nullable=True)
    device = Column(String(32), nullable=True)
    browser = Column(String(64), nullable=True)
    os = Column(String(64), nullable=True)
    referer = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index('idx_analytics_link_created', 'link_id', 'created_at'),
    )

    def __repr__(self):
        return f"<Analytics {self.id} for link {self.link_id}>"
