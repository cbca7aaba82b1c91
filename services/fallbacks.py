"""Fallback text and title validation for the generation service.

Generation failures never block a send: the caller substitutes a canned
response or title drawn from a fixed rotation.
"""

import re
from typing import List, Optional

from config import (
    FALLBACK_RESPONSES,
    FALLBACK_RESPONSE_PREFIX,
    FALLBACK_TITLES,
    MAX_TITLE_LENGTH,
    TITLE_ECHO_PREFIX_LENGTH,
)
from services.errors import InvalidTitleError

_TITLE_STRIP_CHARS = re.compile(r"[\"'#*]")


class FallbackRotation:
    """Deterministic round-robin over a fixed list of strings."""

    def __init__(self, items: List[str]):
        if not items:
            raise ValueError("Fallback rotation needs at least one item")
        self._items = list(items)
        self._index = 0

    def next(self) -> str:
        item = self._items[self._index % len(self._items)]
        self._index += 1
        return item


class Fallbacks:
    """Response and title rotations owned by one send coordinator."""

    def __init__(
        self,
        responses: Optional[List[str]] = None,
        titles: Optional[List[str]] = None
    ):
        self._responses = FallbackRotation(responses or FALLBACK_RESPONSES)
        self._titles = FallbackRotation(titles or FALLBACK_TITLES)

    def response(self) -> str:
        return f"{FALLBACK_RESPONSE_PREFIX}{self._responses.next()}"

    def title(self) -> str:
        return self._titles.next()


def clean_title(raw: Optional[str]) -> str:
    """Strip quotes, markdown markers and surrounding whitespace."""
    if not raw:
        return ""
    return _TITLE_STRIP_CHARS.sub("", raw).strip()


def validate_title(raw: Optional[str], prompt: str) -> str:
    """Return a cleaned title, or raise InvalidTitleError.

    Rejected: empty titles, titles longer than MAX_TITLE_LENGTH, and titles
    that echo the prompt.
    """
    title = clean_title(raw)
    if not title:
        raise InvalidTitleError("Title is empty")
    if len(title) > MAX_TITLE_LENGTH:
        raise InvalidTitleError(f"Title exceeds {MAX_TITLE_LENGTH} characters")

    lowered = title.lower()
    prompt_lowered = prompt.strip().lower()
    if prompt_lowered and lowered == prompt_lowered:
        raise InvalidTitleError("Title echoes the prompt")
    # Prefix check applies only to prompts at least TITLE_ECHO_PREFIX_LENGTH long
    if len(prompt_lowered) >= TITLE_ECHO_PREFIX_LENGTH:
        if prompt_lowered[:TITLE_ECHO_PREFIX_LENGTH] in lowered:
            raise InvalidTitleError("Title echoes the prompt")

    return title
