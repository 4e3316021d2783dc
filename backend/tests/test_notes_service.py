import pytest

from notes_service.errors import ConflictError, InvalidTitle, NotFoundError
from notes_service.services.notes_service import NotesService
from notes_service.storage.kv_backend import MemoryBackend
from notes_service.storage.notes_store import NotesStore


class RecordingBackend(MemoryBackend):
    def __init__(self):
        super().__init__()
        self.calls = []

    def put_item(self, item, if_not_exists=False):
        self.calls.append("put_item")
        super().put_item(item, if_not_exists=if_not_exists)

    def update_item(self, key, set_fields, expected=None, increment=None):
        self.calls.append("update_item")
        return super().update_item(key, set_fields, expected=expected, increment=increment)


def test_validation_errors_never_reach_the_store():
    backend = RecordingBackend()
    service = NotesService(NotesStore(backend))

    with pytest.raises(InvalidTitle):
        service.create_note("u1", {"title": "", "content": "c"})
    with pytest.raises(InvalidTitle):
        service.update_note("u1", "n1", {"title": " "})
    assert backend.calls == []


def test_misses_become_not_found():
    service = NotesService(NotesStore(MemoryBackend()))
    with pytest.raises(NotFoundError):
        service.get_note("u1", "missing")
    with pytest.raises(NotFoundError):
        service.update_note("u1", "missing", {"title": "x"})
    service.delete_note("u1", "missing")


def test_id_collision_becomes_conflict():
    service = NotesService(NotesStore(MemoryBackend(), id_factory=lambda: "same"))
    service.create_note("u1", {"title": "a", "content": "c"})
    with pytest.raises(ConflictError):
        service.create_note("u1", {"title": "b", "content": "c"})


def test_stale_version_becomes_conflict():
    service = NotesService(NotesStore(MemoryBackend()))
    note = service.create_note("u1", {"title": "a", "content": "c"})
    service.update_note("u1", note.id, {"content": "d"}, expected_version=1)
    with pytest.raises(ConflictError) as exc:
        service.update_note("u1", note.id, {"content": "e"}, expected_version=1)
    assert exc.value.status_code == 409
