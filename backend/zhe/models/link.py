from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Text, Index
from ..database import Base


class Link(Base):
    """Short link model"""
    __tablename__ = "links"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    folder_id = Column(String(36), ForeignKey("folders.id", ondelete="SET NULL"), nullable=True)
    original_url = Column(String(2048), nullable=False)
    slug = Column(String(50), unique=True, index=True, nullable=False)
    is_custom = Column(Boolean, default=False, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    clicks = Column(Integer, default=0, nullable=False)

    # Enrichment, filled in after creation
    meta_title = Column(String(512), nullable=True)
    meta_description = Column(Text, nullable=True)
    meta_favicon = Column(String(2048), nullable=True)
    screenshot_url = Column(String(2048), nullable=True)
    note = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index('idx_links_user_created', 'user_id', 'created_at'),
        Index('idx_links_user_folder', 'user_id', 'folder_id'),
    )

    def __repr__(self):
        return f"<Link {self.slug} -> {self.original_url}>"
