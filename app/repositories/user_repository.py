"""User repository."""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError
from app.models.user import User


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, **attrs) -> User:
        user = User(**attrs)
        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Email already registered") from e
        return user

    def find_by_id(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def search(self, name: Optional[str] = None) -> List[User]:
        q = self.db.query(User)
        if name:
            q = q.filter(User.name.contains(name, autoescape=True))
        return q.order_by(User.id).all()

    def update(self, user: User, **attrs) -> User:
        for key, value in attrs.items():
            setattr(user, key, value)
        user.updated_at = datetime.utcnow()
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Email already registered") from e
        return user

    def delete(self, user: User) -> None:
        self.db.delete(user)
        self.db.flush()
