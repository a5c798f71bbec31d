"""Story ingestion service.

Creates, updates and deletes stories together with their uploaded files.

Create flow:
    validate -> stage uploads -> extract text -> apply length limit
    -> insert row (flush) -> move files into place -> commit

The row is only committed once both files sit in their public directories,
so a failed move leaves neither a story row nor stray files behind.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional, Tuple

from fastapi import UploadFile
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    MissingFields,
    MissingFiles,
    NotFound,
    StorageError,
    Unauthenticated,
    UnsupportedFormat,
    UserNotFound,
    ValidationError,
)
from app.core.security import Identity
from app.models.story import Story
from app.repositories.story_repository import StoryRepository
from app.repositories.user_repository import UserRepository
from app.services.ownership import ensure_can_mutate, ensure_owner
from app.services.storage import CONTENT, THUMBNAILS, LocalStorage, StagedFile
from app.utils.content_policy import ContentLimitResult, enforce_limit
from app.utils.file_processor import FileProcessor

logger = logging.getLogger(__name__)


@dataclass
class StoryResult:
    """A stored story plus what happened to its text on the way in."""

    story: Story
    content_length: int
    original_length: int
    was_truncated: bool


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _is_present(upload: Optional[UploadFile]) -> bool:
    return upload is not None and bool(upload.filename)


def validate_thumbnail(upload: UploadFile) -> None:
    if not (upload.content_type or "").startswith("image/"):
        raise ValidationError("Only image files are allowed for thumbnails", code="INVALID_THUMBNAIL")


def validate_content(upload: UploadFile) -> None:
    if not FileProcessor.is_supported(upload.filename):
        raise UnsupportedFormat()


class StoryService:
    """Orchestrates story uploads on top of the repository and file storage."""

    def __init__(self, db: Session, storage: LocalStorage):
        self.db = db
        self.storage = storage
        self.stories = StoryRepository(db)
        self.users = UserRepository(db)

    # ----- reads -----

    def get_story(self, story_id: int) -> Story:
        story = self.stories.find_by_id(story_id)
        if story is None:
            raise NotFound("Story not found")
        return story

    def get_story_by_uuid(self, story_uuid: str) -> Story:
        story = self.stories.find_by_uuid(story_uuid)
        if story is None:
            raise NotFound("Story not found")
        return story

    def search(self, query: Optional[str]) -> List[Story]:
        return self.stories.search(_clean(query))

    def stories_of(self, identity: Optional[Identity]) -> List[Story]:
        if identity is None:
            raise Unauthenticated()
        return self.stories.find_by_owner(identity.id)

    # ----- create -----

    async def create_story(
        self,
        identity: Optional[Identity],
        title: Optional[str],
        author: Optional[str],
        description: Optional[str],
        thumbnail: Optional[UploadFile],
        content: Optional[UploadFile],
    ) -> StoryResult:
        if identity is None:
            raise Unauthenticated("User is not authenticated")

        # tokens can outlive the account they were issued for
        user = self.users.find_by_id(identity.id)
        if user is None:
            raise UserNotFound()

        title, author, description = _clean(title), _clean(author), _clean(description)
        if not title or not author or not description:
            raise MissingFields()

        if not _is_present(thumbnail) or not _is_present(content):
            raise MissingFiles()

        validate_thumbnail(thumbnail)
        validate_content(content)

        staged_thumbnail, staged_content = await self._stage_pair(thumbnail, content)
        staged = [staged_thumbnail, staged_content]

        try:
            limited = self._extract(staged_content)
        except Exception:
            self._discard(staged)
            raise

        logger.info(
            "Creating story for user %s: original length %d, stored length %d",
            user.id, limited.original_length, len(limited.text),
        )

        try:
            story = self.stories.create(
                uuid=str(uuid.uuid4()),
                title=title,
                author=author,
                description=description,
                thumbnail=staged_thumbnail.filename,
                content_file=staged_content.filename,
                content_text=limited.text,
                user_id=user.id,
            )
        except Exception:
            self._discard(staged)
            raise

        self._place_and_commit([(staged_thumbnail, THUMBNAILS), (staged_content, CONTENT)])
        self.db.refresh(story)

        return StoryResult(
            story=story,
            content_length=len(limited.text),
            original_length=limited.original_length,
            was_truncated=limited.was_truncated,
        )

    # ----- update -----

    async def update_story(
        self,
        identity: Optional[Identity],
        story_id: int,
        title: Optional[str] = None,
        author: Optional[str] = None,
        description: Optional[str] = None,
        thumbnail: Optional[UploadFile] = None,
        content: Optional[UploadFile] = None,
    ) -> StoryResult:
        if identity is None:
            raise Unauthenticated("Authentication required")

        story = self.get_story(story_id)
        ensure_owner(identity, story, action="edit")

        changes = {}
        for field, value in (("title", title), ("author", author), ("description", description)):
            value = _clean(value)
            if value:
                changes[field] = value

        new_thumbnail = thumbnail if _is_present(thumbnail) else None
        new_content = content if _is_present(content) else None
        if new_thumbnail is not None:
            validate_thumbnail(new_thumbnail)
        if new_content is not None:
            validate_content(new_content)

        staged: List[StagedFile] = []
        placements: List[Tuple[StagedFile, str]] = []
        replaced: List[Tuple[str, Optional[str]]] = []
        limited: Optional[ContentLimitResult] = None

        try:
            if new_thumbnail is not None:
                staged_thumbnail = await self.storage.stage(new_thumbnail, settings.MAX_UPLOAD_SIZE)
                staged.append(staged_thumbnail)
                placements.append((staged_thumbnail, THUMBNAILS))
                replaced.append((THUMBNAILS, story.thumbnail))
                changes["thumbnail"] = staged_thumbnail.filename

            if new_content is not None:
                staged_content = await self.storage.stage(new_content, settings.MAX_UPLOAD_SIZE)
                staged.append(staged_content)
                limited = self._extract(staged_content)
                placements.append((staged_content, CONTENT))
                replaced.append((CONTENT, story.content_file))
                changes["content_file"] = staged_content.filename
                changes["content_text"] = limited.text

            self.stories.update(story, **changes)
        except Exception:
            self._discard(staged)
            raise

        self._place_and_commit(placements)

        # old files go only after the new references are committed
        for kind, filename in replaced:
            try:
                self.storage.delete(kind, filename)
            except StorageError:
                logger.error("Could not remove replaced file %s/%s of story %s", kind, filename, story.id)

        self.db.refresh(story)
        content_length = len(story.content_text or "")
        return StoryResult(
            story=story,
            content_length=content_length,
            original_length=limited.original_length if limited else content_length,
            was_truncated=limited.was_truncated if limited else False,
        )

    # ----- delete -----

    def delete_story(self, identity: Optional[Identity], story_id: int) -> None:
        if identity is None:
            raise Unauthenticated("User is not authenticated")

        story = self.get_story(story_id)
        ensure_can_mutate(identity, story, action="delete")

        self.storage.delete(THUMBNAILS, story.thumbnail)
        self.storage.delete(CONTENT, story.content_file)

        self.stories.delete(story)
        self.db.commit()
        logger.info("Story %s deleted by user %s", story_id, identity.id)

    # ----- helpers -----

    async def _stage_pair(self, thumbnail: UploadFile, content: UploadFile) -> Tuple[StagedFile, StagedFile]:
        staged_thumbnail = await self.storage.stage(thumbnail, settings.MAX_UPLOAD_SIZE)
        try:
            staged_content = await self.storage.stage(content, settings.MAX_UPLOAD_SIZE)
        except Exception:
            self.storage.discard(staged_thumbnail)
            raise
        return staged_thumbnail, staged_content

    def _extract(self, staged: StagedFile) -> ContentLimitResult:
        text = FileProcessor.extract_text(str(staged.path), staged.original_filename)
        return enforce_limit(text, settings.MAX_CONTENT_LENGTH)

    def _discard(self, staged: List[StagedFile]) -> None:
        for item in staged:
            self.storage.discard(item)

    def _place_and_commit(self, placements: List[Tuple[StagedFile, str]]) -> None:
        """Move staged files into place, then commit. Undo both on failure."""
        placed: List[Tuple[str, str]] = []
        try:
            for staged, kind in placements:
                placed.append((kind, self.storage.place(staged, kind)))
            self.db.commit()
        except Exception as e:
            logger.error("Rolling back story changes: %s", e)
            self.db.rollback()
            for kind, filename in placed:
                try:
                    self.storage.delete(kind, filename)
                except StorageError:
                    logger.error("Error removing placed file %s/%s during rollback", kind, filename)
            self._discard([staged for staged, _ in placements])
            raise
