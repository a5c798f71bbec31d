"""Local file storage for uploaded thumbnails, story documents and profile pictures.

Uploads are first staged in a temporary directory under a generated name and
only moved into their public directory once the owning database row is ready
to commit.
"""
import logging
import os
import random
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles
from fastapi import UploadFile

from app.core.config import settings
from app.core.exceptions import StorageError, ValidationError

logger = logging.getLogger(__name__)

THUMBNAILS = "story_thumbnails"
CONTENT = "story_content"
PROFILE_PICTURES = "profile_picture"
KINDS = (THUMBNAILS, CONTENT, PROFILE_PICTURES)

CHUNK_SIZE = 1024 * 1024


@dataclass
class StagedFile:
    path: Path
    filename: str
    original_filename: str
    content_type: Optional[str]
    size: int


def generate_filename(original_filename: str) -> str:
    """Unique name that keeps the original extension, e.g. ``1718000000000-123456789.pdf``."""
    ext = Path(original_filename or "").suffix.lower()
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"


class LocalStorage:
    def __init__(self, root: str, tmp_dir: str):
        self.root = Path(root)
        self.tmp_dir = Path(tmp_dir)

    def ensure_dirs(self) -> None:
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        for kind in KINDS:
            (self.root / kind).mkdir(parents=True, exist_ok=True)

    def path_for(self, kind: str, filename: str) -> Path:
        if kind not in KINDS:
            raise ValueError(f"Unknown storage directory: {kind}")
        # filenames come from the database; never let them escape the directory
        return self.root / kind / Path(filename).name

    @staticmethod
    def url_for(kind: str, filename: Optional[str]) -> Optional[str]:
        if not filename:
            return None
        return f"/{kind}/{filename}"

    async def stage(self, upload: UploadFile, max_size: int = settings.MAX_UPLOAD_SIZE) -> StagedFile:
        """Write an upload into the temp directory, enforcing ``max_size``."""
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        filename = generate_filename(upload.filename)
        path = self.tmp_dir / filename
        size = 0

        try:
            async with aiofiles.open(path, "wb") as buffer:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > max_size:
                        raise ValidationError(
                            f"File {upload.filename} exceeds the {max_size // (1024 * 1024)}MB limit",
                            code="FILE_TOO_LARGE",
                        )
                    await buffer.write(chunk)
        except ValidationError:
            path.unlink(missing_ok=True)
            raise
        except OSError as e:
            path.unlink(missing_ok=True)
            logger.error("Could not stage upload %s: %s", upload.filename, e)
            raise StorageError("Failed to store uploaded file") from e

        return StagedFile(
            path=path,
            filename=filename,
            original_filename=upload.filename or "",
            content_type=upload.content_type,
            size=size,
        )

    def place(self, staged: StagedFile, kind: str) -> str:
        """Move a staged file into its permanent directory and return its filename."""
        dest = self.path_for(kind, staged.filename)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(staged.path), str(dest))
        except OSError as e:
            logger.error("Error moving %s to %s: %s", staged.path, dest, e)
            raise StorageError() from e
        return staged.filename

    def discard(self, staged: Optional[StagedFile]) -> None:
        """Remove a staged file if it is still there. Errors are only logged."""
        if staged is None:
            return
        try:
            staged.path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Error cleaning up staged file %s: %s", staged.path, e)

    def delete(self, kind: str, filename: Optional[str]) -> None:
        """Delete a placed file. Missing files are not an error."""
        if not filename:
            return
        path = self.path_for(kind, filename)
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.info("File %s already gone", path)
        except OSError as e:
            logger.error("Error deleting %s: %s", path, e)
            raise StorageError("Failed to delete stored file") from e


def get_storage() -> LocalStorage:
    """FastAPI dependency returning the configured storage."""
    return LocalStorage(settings.STORAGE_ROOT, settings.UPLOAD_TMP_DIR)
