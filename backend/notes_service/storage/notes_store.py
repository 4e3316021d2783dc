import base64
import binascii
import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from notes_service.errors import InvalidCursor
from notes_service.services.validation import NotePatch, ValidatedNote
from notes_service.storage.kv_backend import (
    PARTITION_ATTR,
    SORT_ATTR,
    ConditionalCheckFailed,
    Item,
    Key,
    KeyValueBackend,
)

DEFAULT_LIMIT = 20


def utc_now_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_note_id() -> str:
    return str(uuid.uuid4())


def owner_partition(owner_id: str) -> str:
    return f"USER#{owner_id}"


def note_sort_key(note_id: str) -> str:
    return f"NOTE#{note_id}"


def note_key(owner_id: str, note_id: str) -> Key:
    return Key(partition=owner_partition(owner_id), sort=note_sort_key(note_id))


@dataclass(frozen=True)
class Note:
    id: str
    owner_id: str
    title: str
    content: str
    tags: list[str]
    created_at: str
    updated_at: str
    version: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version": self.version,
        }

    def to_item(self) -> Item:
        item = {PARTITION_ATTR: owner_partition(self.owner_id), SORT_ATTR: note_sort_key(self.id)}
        item.update(self.to_dict())
        return item

    @classmethod
    def from_item(cls, raw: Item) -> "Note":
        return cls(
            id=raw["id"],
            owner_id=raw["owner_id"],
            title=raw["title"],
            content=raw["content"],
            tags=list(raw.get("tags") or []),
            created_at=raw["created_at"],
            updated_at=raw["updated_at"],
            version=int(raw.get("version", 1)),
        )


@dataclass(frozen=True)
class NotFound:
    owner_id: str
    note_id: str


@dataclass(frozen=True)
class Conflict:
    note_id: str
    expected_version: int
    actual_version: int


@dataclass(frozen=True)
class IdCollision:
    note_id: str


@dataclass(frozen=True)
class NotePage:
    items: list[Note]
    next_cursor: Optional[str]


def encode_cursor(last_evaluated_key: Optional[dict[str, str]]) -> Optional[str]:
    if last_evaluated_key is None:
        return None
    raw = json.dumps(last_evaluated_key, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> dict[str, str]:
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        key = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
    except (ValueError, UnicodeError, binascii.Error) as e:
        raise InvalidCursor() from e
    if not isinstance(key, dict) or not isinstance(key.get(SORT_ATTR), str):
        raise InvalidCursor()
    return key


class NotesStore:
    """Owner-scoped note persistence on a partition/sort key-value backend.

    Ownership is carried by the key itself: every operation addresses the
    ``USER#<owner>`` partition, so another owner's note is unreachable rather
    than filtered out after a fetch.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        clock: Callable[[], str] = utc_now_iso,
        id_factory: Callable[[], str] = new_note_id,
    ):
        self.backend = backend
        self.clock = clock
        self.id_factory = id_factory

    def create(self, owner_id: str, validated: ValidatedNote) -> Union[Note, IdCollision]:
        now = self.clock()
        note = Note(
            id=self.id_factory(),
            owner_id=owner_id,
            title=validated.title,
            content=validated.content,
            tags=list(validated.tags),
            created_at=now,
            updated_at=now,
            version=1,
        )
        try:
            self.backend.put_item(note.to_item(), if_not_exists=True)
        except ConditionalCheckFailed:
            return IdCollision(note_id=note.id)
        return note

    def list(self, owner_id: str, limit: int = DEFAULT_LIMIT, cursor: Optional[str] = None) -> NotePage:
        if limit < 1:
            raise ValueError("limit must be positive")
        start_key = None
        if cursor:
            # only the sort key is honoured; the partition always comes from the caller
            start_key = {PARTITION_ATTR: owner_partition(owner_id), SORT_ATTR: decode_cursor(cursor)[SORT_ATTR]}
        page = self.backend.query(owner_partition(owner_id), limit, exclusive_start_key=start_key)
        return NotePage(
            items=[Note.from_item(i) for i in page.items],
            next_cursor=encode_cursor(page.last_evaluated_key),
        )

    def get(self, owner_id: str, note_id: str) -> Union[Note, NotFound]:
        raw = self.backend.get_item(note_key(owner_id, note_id))
        if raw is None:
            return NotFound(owner_id=owner_id, note_id=note_id)
        return Note.from_item(raw)

    def update(
        self,
        owner_id: str,
        note_id: str,
        patch: NotePatch,
        expected_version: Optional[int] = None,
    ) -> Union[Note, NotFound, Conflict]:
        set_fields = patch.fields()
        set_fields["updated_at"] = self.clock()
        # existence is always a condition; the version only when the caller pins one
        expected = {"version": expected_version} if expected_version is not None else None

        try:
            raw = self.backend.update_item(
                note_key(owner_id, note_id),
                set_fields,
                expected=expected,
                increment={"version": 1},
            )
        except ConditionalCheckFailed as e:
            if e.current is None:
                return NotFound(owner_id=owner_id, note_id=note_id)
            return Conflict(
                note_id=note_id,
                expected_version=expected_version if expected_version is not None else 0,
                actual_version=int(e.current.get("version", 1)),
            )
        return Note.from_item(raw)

    def delete(self, owner_id: str, note_id: str) -> None:
        self.backend.delete_item(note_key(owner_id, note_id))
