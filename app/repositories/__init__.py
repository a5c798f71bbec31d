"""Data-access layer."""
from app.repositories.story_repository import StoryRepository
from app.repositories.user_repository import UserRepository
from app.repositories.read_later_repository import ReadLaterRepository

__all__ = [
    "StoryRepository",
    "UserRepository",
    "ReadLaterRepository",
]
