"""Payload checks for note create and update.

Pure functions: nothing here touches storage. Fields are checked in a fixed
order (title, content, tags) and the first failure is raised.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from notes_service.errors import InvalidContent, InvalidTags, InvalidTitle, TooManyTags

MAX_TITLE_LENGTH = 120
MAX_CONTENT_LENGTH = 10_000
MAX_TAGS = 10

_MISSING = object()


@dataclass(frozen=True)
class ValidatedNote:
    title: str
    content: str
    tags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class NotePatch:
    """Partial update. A field left as None is absent and stays untouched."""

    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[list[str]] = None

    def fields(self) -> dict[str, Any]:
        return {
            name: value
            for name, value in (("title", self.title), ("content", self.content), ("tags", self.tags))
            if value is not None
        }


def _check_title(value: Any, empty_message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidTitle(empty_message)
    title = value.strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise InvalidTitle(f"Title must be {MAX_TITLE_LENGTH} characters or less")
    return title


def _check_content(value: Any, empty_message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidContent(empty_message)
    content = value.strip()
    if len(content) > MAX_CONTENT_LENGTH:
        raise InvalidContent(f"Content must be {MAX_CONTENT_LENGTH} characters or less")
    return content


def _check_tags(value: Any) -> list[str]:
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise InvalidTags()
    if len(value) > MAX_TAGS:
        raise TooManyTags(f"Maximum {MAX_TAGS} tags allowed")
    if not all(isinstance(t, str) for t in value):
        raise InvalidTags()
    return list(value)


def validate_create(payload: Mapping[str, Any]) -> ValidatedNote:
    title = _check_title(payload.get("title"), "Title is required")
    content = _check_content(payload.get("content"), "Content is required")
    raw_tags = payload.get("tags")
    tags = _check_tags(raw_tags) if raw_tags is not None else []
    return ValidatedNote(title=title, content=content, tags=tags)


def validate_update(payload: Mapping[str, Any]) -> NotePatch:
    title = payload.get("title", _MISSING)
    content = payload.get("content", _MISSING)
    tags = payload.get("tags", _MISSING)

    return NotePatch(
        title=_check_title(title, "Title cannot be empty") if title is not _MISSING else None,
        content=_check_content(content, "Content cannot be empty") if content is not _MISSING else None,
        # explicit null tags count as absent, same as on create
        tags=_check_tags(tags) if tags is not _MISSING and tags is not None else None,
    )
