"""Who may change or remove a story."""
import logging

from app.core.exceptions import Unauthorized
from app.core.security import Identity
from app.models.story import Story

logger = logging.getLogger(__name__)


def is_owner(identity: Identity, story: Story) -> bool:
    return identity is not None and identity.id == story.user_id


def can_mutate(identity: Identity, story: Story) -> bool:
    """Administrators and the story's creator may mutate it."""
    if identity is None:
        return False
    return identity.is_admin or is_owner(identity, story)


def ensure_owner(identity: Identity, story: Story, action: str = "edit") -> None:
    """Strict check used for edits: administrators get no override here."""
    if not is_owner(identity, story):
        logger.warning(
            "Unauthorized %s attempt: user %s on story %s owned by %s",
            action, getattr(identity, "id", None), story.id, story.user_id,
        )
        raise Unauthorized(f"You are not authorized to {action} this story")


def ensure_can_mutate(identity: Identity, story: Story, action: str = "delete") -> None:
    if not can_mutate(identity, story):
        logger.warning(
            "Unauthorized %s attempt: user %s on story %s owned by %s",
            action, getattr(identity, "id", None), story.id, story.user_id,
        )
        raise Unauthorized(f"You are not authorized to {action} this story")
