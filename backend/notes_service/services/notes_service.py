import logging
from typing import Any, Mapping, Optional

from notes_service.errors import ConflictError, NotFoundError
from notes_service.services.validation import validate_create, validate_update
from notes_service.storage.event_log import Event, EventLog
from notes_service.storage.notes_store import (
    DEFAULT_LIMIT,
    Conflict,
    IdCollision,
    Note,
    NotePage,
    NotesStore,
    NotFound,
)

logger = logging.getLogger("notes.service")


class NotesService:
    """Validates payloads, calls the store and turns miss results into errors."""

    def __init__(self, store: NotesStore, event_log: Optional[EventLog] = None):
        self.store = store
        self.event_log = event_log or EventLog()

    def _emit(self, event: Event) -> None:
        try:
            self.event_log.emit(event)
        except OSError:
            logger.warning("Could not persist %s event for note %s", event.event_type, event.note_id, exc_info=True)

    def create_note(self, owner_id: str, payload: Mapping[str, Any]) -> Note:
        logger.info("Creating note for owner %s", owner_id)
        validated = validate_create(payload)

        result = self.store.create(owner_id, validated)
        if isinstance(result, IdCollision):
            logger.error("Generated note id %s already exists for owner %s", result.note_id, owner_id)
            raise ConflictError("Note id collision, retry the request")

        logger.info("Note created: %s", result.id)
        self._emit(Event(event_type="NOTE_CREATED", owner_id=owner_id, note_id=result.id, meta={"version": result.version}))
        return result

    def list_notes(self, owner_id: str, limit: int = DEFAULT_LIMIT, cursor: Optional[str] = None) -> NotePage:
        logger.info("Listing notes for owner %s (limit=%d)", owner_id, limit)
        return self.store.list(owner_id, limit=limit, cursor=cursor)

    def get_note(self, owner_id: str, note_id: str) -> Note:
        result = self.store.get(owner_id, note_id)
        if isinstance(result, NotFound):
            raise NotFoundError("Note")
        return result

    def update_note(
        self,
        owner_id: str,
        note_id: str,
        payload: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> Note:
        logger.info("Updating note %s for owner %s", note_id, owner_id)
        patch = validate_update(payload)

        result = self.store.update(owner_id, note_id, patch, expected_version=expected_version)
        if isinstance(result, NotFound):
            raise NotFoundError("Note")
        if isinstance(result, Conflict):
            raise ConflictError(f"Expected version {result.expected_version}, found {result.actual_version}")

        self._emit(Event(
            event_type="NOTE_UPDATED",
            owner_id=owner_id,
            note_id=note_id,
            meta={"version": result.version, "fields": sorted(patch.fields())},
        ))
        return result

    def delete_note(self, owner_id: str, note_id: str) -> None:
        logger.info("Deleting note %s for owner %s", note_id, owner_id)
        self.store.delete(owner_id, note_id)
        self._emit(Event(event_type="NOTE_DELETED", owner_id=owner_id, note_id=note_id))
