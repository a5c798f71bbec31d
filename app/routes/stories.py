"""Story routes."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.core.responses import APIResponse, CamelModel
from app.core.security import Identity, get_current_identity
from app.db.sessions import get_db
from app.models.story import Story
from app.services.storage import CONTENT, THUMBNAILS, LocalStorage, get_storage
from app.services.story_service import StoryResult, StoryService


router = APIRouter(prefix="/stories", tags=["Stories"])


# Response schemas
class OwnerSummary(CamelModel):
    id: int
    name: str
    email: str


class StorySummary(CamelModel):
    id: int
    uuid: str
    user_id: int
    title: str
    author: str
    description: str
    thumbnail: Optional[str] = None
    content_file: Optional[str] = None
    thumbnail_url: Optional[str] = None
    content_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class StoryResponse(StorySummary):
    content_text: Optional[str] = None


class StoryUploadResponse(StoryResponse):
    user: Optional[OwnerSummary] = None
    content_length: int
    original_length: int
    was_truncated: bool


def get_story_service(
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
) -> StoryService:
    return StoryService(db, storage)


def _urls(story: Story) -> dict:
    return {
        "thumbnail_url": LocalStorage.url_for(THUMBNAILS, story.thumbnail),
        "content_url": LocalStorage.url_for(CONTENT, story.content_file),
    }


def to_summary(story: Story) -> StorySummary:
    return StorySummary.model_validate(story).model_copy(update=_urls(story))


def to_response(story: Story) -> StoryResponse:
    return StoryResponse.model_validate(story).model_copy(update=_urls(story))


def to_upload_response(result: StoryResult) -> StoryUploadResponse:
    story = result.story
    return StoryUploadResponse(
        **to_response(story).model_dump(),
        user=OwnerSummary.model_validate(story.user) if story.user else None,
        content_length=result.content_length,
        original_length=result.original_length,
        was_truncated=result.was_truncated,
    )


@router.get("", response_model=APIResponse[List[StorySummary]])
def list_stories(
    search: Optional[str] = Query(None),
    identity: Identity = Depends(get_current_identity),
    service: StoryService = Depends(get_story_service),
):
    """
    List stories, newest first.

    ``search`` matches against title or author. Story text is left out.
    """
    stories = service.search(search)
    return APIResponse(
        message="Stories have been retrieved",
        data=[to_summary(s) for s in stories],
    )


@router.get("/read/{story_id}", response_model=APIResponse[StoryResponse])
def read_story(story_id: int, service: StoryService = Depends(get_story_service)):
    """Public endpoint returning a story with its full text."""
    story = service.get_story(story_id)
    return APIResponse(message="Story details retrieved", data=to_response(story))


@router.get("/s/{story_uuid}", response_model=APIResponse[StoryResponse])
def read_story_by_uuid(story_uuid: str, service: StoryService = Depends(get_story_service)):
    """Public endpoint for shareable links, keyed by the story's uuid."""
    story = service.get_story_by_uuid(story_uuid)
    return APIResponse(message="Story details retrieved", data=to_response(story))


@router.get("/c/me", response_model=APIResponse[List[StorySummary]])
def my_stories(
    identity: Identity = Depends(get_current_identity),
    service: StoryService = Depends(get_story_service),
):
    """Stories created by the current user."""
    stories = service.stories_of(identity)
    return APIResponse(
        code="STORIES_FETCHED",
        message="Stories retrieved successfully",
        data=[to_summary(s) for s in stories],
    )


@router.post("/create", response_model=APIResponse[StoryUploadResponse], status_code=status.HTTP_201_CREATED)
async def create_story(
    title: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    content: Optional[UploadFile] = File(None),
    identity: Identity = Depends(get_current_identity),
    service: StoryService = Depends(get_story_service),
):
    """
    Upload a new story.

    Accepts a thumbnail image and a content document (TXT, DOCX, PDF, up to
    10MB each). The document's text is extracted and stored, truncated to
    fit the text column when needed.

    Protected endpoint - requires JWT authentication.
    """
    result = await service.create_story(
        identity,
        title=title,
        author=author,
        description=description,
        thumbnail=thumbnail,
        content=content,
    )
    return APIResponse(
        code="STORY_CREATED",
        message="Story created successfully",
        data=to_upload_response(result),
    )


@router.put("/update/{story_id}", response_model=APIResponse[StoryUploadResponse])
async def update_story(
    story_id: int,
    title: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    content: Optional[UploadFile] = File(None),
    identity: Identity = Depends(get_current_identity),
    service: StoryService = Depends(get_story_service),
):
    """
    Update a story. Only its creator may do this.

    Omitted fields keep their current values; a new thumbnail or content
    file replaces the old one.
    """
    result = await service.update_story(
        identity,
        story_id,
        title=title,
        author=author,
        description=description,
        thumbnail=thumbnail,
        content=content,
    )
    return APIResponse(
        code="STORY_UPDATED",
        message="Story has been updated successfully",
        data=to_upload_response(result),
    )


@router.delete("/delete/{story_id}", response_model=APIResponse[None])
def delete_story(
    story_id: int,
    identity: Identity = Depends(get_current_identity),
    service: StoryService = Depends(get_story_service),
):
    """Delete a story and its files. Allowed for its creator and administrators."""
    service.delete_story(identity, story_id)
    return APIResponse(code="STORY_DELETED", message="Story has been deleted")
