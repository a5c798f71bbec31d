"""Read later model."""
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.db.base import Base


class ReadLaterItem(Base):
    """A story a user saved to read later. One row per (user, story)."""

    __tablename__ = "read_later"
    __table_args__ = (
        UniqueConstraint("user_id", "story_id", name="uq_read_later_user_story"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    story_id = Column(Integer, ForeignKey("stories.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="read_later_items")
    story = relationship("Story", back_populates="read_later_items")
