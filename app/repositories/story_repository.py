"""
Story repository.

Thin data-access layer for the ``Story`` entity. It works on a ``Session``
supplied by the caller and only flushes: the calling service decides when
to commit or roll back, so a story row and its files can succeed or fail
together.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError
from app.models.story import Story

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"title", "author", "description", "thumbnail", "content_file", "content_text"}


class StoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, **attrs) -> Story:
        story = Story(**attrs)
        self.db.add(story)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Story insert rejected by the database: %s", e.orig)
            raise ConflictError("A story with this information already exists.") from e
        return story

    def find_by_id(self, story_id: int) -> Optional[Story]:
        return self.db.get(Story, story_id)

    def find_by_uuid(self, story_uuid: str) -> Optional[Story]:
        return self.db.query(Story).filter(Story.uuid == story_uuid).first()

    def find_by_owner(self, user_id: int) -> List[Story]:
        return (
            self.db.query(Story)
            .filter(Story.user_id == user_id)
            .order_by(Story.created_at.desc(), Story.id.desc())
            .all()
        )

    def search(self, query: Optional[str] = None) -> List[Story]:
        """Stories whose title or author contains ``query``; all stories when empty."""
        q = self.db.query(Story)
        if query:
            q = q.filter(or_(
                Story.title.contains(query, autoescape=True),
                Story.author.contains(query, autoescape=True),
            ))
        return q.order_by(Story.created_at.desc(), Story.id.desc()).all()

    def update(self, story: Story, **attrs) -> Story:
        for key, value in attrs.items():
            if key not in UPDATABLE_FIELDS:
                raise ValueError(f"Unknown story field: {key}")
            setattr(story, key, value)
        story.updated_at = datetime.utcnow()
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("A story with this information already exists.") from e
        return story

    def delete(self, story: Story) -> None:
        self.db.delete(story)
        self.db.flush()
