from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, Path, Query, Request, Response, status

from notes_service.config import Settings
from notes_service.errors import NotesException
from notes_service.models.notes import NoteCreate, NoteListOut, NoteOut, NoteUpdate
from notes_service.services.notes_service import NotesService
from notes_service.utils.jwt_auth import get_owner_id

router = APIRouter(prefix="/notes", tags=["notes"])

NoteId = Annotated[str, Path(min_length=1, max_length=128)]


def get_notes_service(request: Request) -> NotesService:
    return request.app.state.notes_service


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _parse_if_match(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    raw = value.strip()
    if raw.startswith("W/"):
        raw = raw[2:]
    try:
        return int(raw.strip('"'))
    except ValueError:
        raise NotesException("invalid_request", "If-Match must carry a note version")


@router.post("", response_model=NoteOut, status_code=status.HTTP_201_CREATED)
def create_note(
    payload: NoteCreate,
    owner_id: str = Depends(get_owner_id),
    service: NotesService = Depends(get_notes_service),
) -> NoteOut:
    note = service.create_note(owner_id, payload.model_dump())
    return NoteOut(**note.to_dict())


@router.get("", response_model=NoteListOut)
def list_notes(
    limit: Optional[int] = Query(default=None, ge=1),
    cursor: Optional[str] = Query(default=None),
    next_token: Optional[str] = Query(default=None, alias="nextToken"),
    owner_id: str = Depends(get_owner_id),
    service: NotesService = Depends(get_notes_service),
    settings: Settings = Depends(get_settings),
) -> NoteListOut:
    if limit is None:
        limit = settings.default_page_size
    if limit > settings.max_page_size:
        raise NotesException("invalid_limit", f"limit must be between 1 and {settings.max_page_size}")

    page = service.list_notes(owner_id, limit=limit, cursor=cursor or next_token)
    return NoteListOut(items=[NoteOut(**n.to_dict()) for n in page.items], next_cursor=page.next_cursor)


@router.get("/{note_id}", response_model=NoteOut)
def get_note(
    note_id: NoteId,
    owner_id: str = Depends(get_owner_id),
    service: NotesService = Depends(get_notes_service),
) -> NoteOut:
    note = service.get_note(owner_id, note_id)
    return NoteOut(**note.to_dict())


@router.put("/{note_id}", response_model=NoteOut)
def update_note(
    payload: NoteUpdate,
    note_id: NoteId,
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    owner_id: str = Depends(get_owner_id),
    service: NotesService = Depends(get_notes_service),
) -> NoteOut:
    expected_version = payload.expected_version
    if expected_version is None:
        expected_version = _parse_if_match(if_match)

    fields = payload.model_dump(exclude_unset=True, exclude={"expected_version"})
    note = service.update_note(owner_id, note_id, fields, expected_version=expected_version)
    return NoteOut(**note.to_dict())


# idempotent: deleting a missing note is still 204
@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_note(
    note_id: NoteId,
    owner_id: str = Depends(get_owner_id),
    service: NotesService = Depends(get_notes_service),
) -> Response:
    service.delete_note(owner_id, note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
