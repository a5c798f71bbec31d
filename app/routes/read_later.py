"""Read later routes."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy.orm import Session

from app.core.exceptions import MissingData, NotFound
from app.core.responses import APIResponse, CamelModel
from app.core.security import Identity, get_current_identity, get_current_user
from app.db.sessions import get_db
from app.models.user import User
from app.repositories.read_later_repository import ReadLaterRepository
from app.repositories.story_repository import StoryRepository
from app.routes.stories import StorySummary, to_summary


router = APIRouter(prefix="/readlater", tags=["Read Later"])


# Request/Response schemas
class AddReadLaterRequest(CamelModel):
    story_id: Optional[int] = Field(None)


class ReadLaterResponse(CamelModel):
    id: int
    user_id: int
    story_id: int
    created_at: datetime
    updated_at: datetime
    story: Optional[StorySummary] = None


def _to_response(item) -> ReadLaterResponse:
    return ReadLaterResponse.model_validate(item).model_copy(
        update={"story": to_summary(item.story) if item.story else None}
    )


@router.post("", response_model=APIResponse[ReadLaterResponse], status_code=status.HTTP_201_CREATED)
def add_to_read_later(
    request: Optional[AddReadLaterRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Save a story to the current user's read later list.

    A story can only be on a user's list once; a second add answers 409
    with code ``ALREADY_EXISTS``.
    """
    story_id = request.story_id if request else None
    if not story_id:
        raise MissingData("Story ID is required")

    if StoryRepository(db).find_by_id(story_id) is None:
        raise NotFound("Story not found")

    item = ReadLaterRepository(db).add(current_user.id, story_id)
    db.commit()
    db.refresh(item)

    return APIResponse(
        code="ADDED_TO_READ_LATER",
        message="Story added to read later",
        data=_to_response(item),
    )


@router.get("/RL", response_model=APIResponse[List[ReadLaterResponse]])
def get_read_later_list(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Current user's read later list, most recently added first."""
    items = ReadLaterRepository(db).list_for_user(identity.id)
    return APIResponse(
        code="READ_LATER_FETCHED",
        message="Read later list retrieved",
        data=[_to_response(item) for item in items],
    )


@router.delete("/RL/{item_id}", response_model=APIResponse[None])
def remove_from_read_later(
    item_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Remove an item; users can only remove their own items."""
    repo = ReadLaterRepository(db)
    item = repo.find_for_user(item_id, identity.id)
    if item is None:
        raise NotFound("Read later item not found")

    repo.delete(item)
    db.commit()

    return APIResponse(code="REMOVED_FROM_READ_LATER", message="Story removed from read later")
