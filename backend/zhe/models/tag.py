from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from ..database import Base


class Tag(Base):
    """Owner-scoped label for links"""
    __tablename__ = "tags"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    name = Column(String(30), nullable=False)
    color = Column(String(16), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Tag {self.name}>"


class LinkTag(Base):
    """Link <-> tag association"""
    __tablename__ = "link_tags"

    link_id = Column(Integer, ForeignKey("links.id", ondelete="CASCADE"), primary_key=True)
    tag_id = Column(String(36), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)

    __table_args__ = (
        Index('idx_link_tags_tag', 'tag_id'),
    )

    def __repr__(self):
        return f"<LinkTag {self.link_id}:{self.tag_id}>"
