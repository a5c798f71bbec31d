"""Database models."""
from app.models.user import User
from app.models.story import Story
from app.models.read_later import ReadLaterItem

__all__ = [
    "User",
    "Story",
    "ReadLaterItem",
]
