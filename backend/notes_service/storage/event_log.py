import json
import logging
import os
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from notes_service.storage.file_backend import encode_segment
from notes_service.storage.notes_store import utc_now_iso

logger = logging.getLogger("notes.events")


@dataclass(frozen=True)
class Event:
    event_type: str
    owner_id: str
    note_id: Optional[str] = None
    meta: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    ts: str = field(default_factory=utc_now_iso)

    def as_record(self) -> dict[str, Any]:
        return asdict(self)


class EventLog:
    """Structured note events.

    Every event reaches the ``notes.events`` logger as a JSON object. With a
    directory configured it is also appended to that owner's ``.log`` file.
    """

    def __init__(self, directory: Optional[Path] = None):
        self.directory = directory

    def path_for(self, owner_id: str) -> Path:
        if self.directory is None:
            raise ValueError("EventLog has no directory")
        return self.directory / "events" / f"{encode_segment(owner_id)}.log"

    def emit(self, event: Event) -> None:
        payload = json.dumps(event.as_record(), ensure_ascii=False, sort_keys=True)
        logger.info(payload)
        if self.directory is not None:
            self._append(self.path_for(event.owner_id), payload)

    @staticmethod
    def _append(path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        try:
            os.write(fd, (payload + "\n").encode("utf-8"))
            os.fsync(fd)
        finally:
            os.close(fd)
