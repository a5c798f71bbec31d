"""Read later repository."""
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.core.exceptions import ConflictError
from app.models.read_later import ReadLaterItem


class ReadLaterRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, user_id: int, story_id: int) -> ReadLaterItem:
        """Insert a (user, story) pair; the unique constraint reports duplicates."""
        item = ReadLaterItem(user_id=user_id, story_id=story_id)
        self.db.add(item)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Story already in read later list", code="ALREADY_EXISTS") from e
        return item

    def list_for_user(self, user_id: int) -> List[ReadLaterItem]:
        return (
            self.db.query(ReadLaterItem)
            .options(joinedload(ReadLaterItem.story))
            .filter(ReadLaterItem.user_id == user_id)
            .order_by(ReadLaterItem.created_at.desc(), ReadLaterItem.id.desc())
            .all()
        )

    def find_for_user(self, item_id: int, user_id: int) -> Optional[ReadLaterItem]:
        return (
            self.db.query(ReadLaterItem)
            .filter(ReadLaterItem.id == item_id, ReadLaterItem.user_id == user_id)
            .first()
        )

    def delete(self, item: ReadLaterItem) -> None:
        self.db.delete(item)
        self.db.flush()
