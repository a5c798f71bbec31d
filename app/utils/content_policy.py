"""Length limit applied to extracted story text before it is stored."""
import logging
from typing import NamedTuple

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 65535  # TEXT column
TRUNCATION_MARKER = "...[CONTENT TRUNCATED]"
TRUNCATION_RESERVE = 50
SHORT_TRUNCATION_MARKER = "...[TRUNCATED]"
SHORT_TRUNCATION_RESERVE = 25


class ContentLimitResult(NamedTuple):
    text: str
    was_truncated: bool
    original_length: int


def enforce_limit(text: str, max_length: int = MAX_CONTENT_LENGTH) -> ContentLimitResult:
    """Fit ``text`` into ``max_length`` characters.

    Oversized text keeps its prefix and gets a truncation marker appended.
    The returned text is never longer than ``max_length``.
    """
    text = text or ""
    original_length = len(text)
    if original_length <= max_length:
        return ContentLimitResult(text, False, original_length)

    available = max(max_length - TRUNCATION_RESERVE, 0)
    stored = text[:available] + TRUNCATION_MARKER

    if len(stored) > max_length:
        available = max(max_length - SHORT_TRUNCATION_RESERVE, 0)
        stored = text[:available] + SHORT_TRUNCATION_MARKER
    if len(stored) > max_length:
        stored = stored[:max_length]

    logger.warning("Content truncated from %d to %d characters", original_length, len(stored))
    return ContentLimitResult(stored, True, original_length)
