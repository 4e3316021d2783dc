from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Length rules live in services.validation so violations carry their own error codes.
class NoteCreate(CamelModel):
    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[list[str]] = None


class NoteUpdate(CamelModel):
    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[list[str]] = None
    expected_version: Optional[int] = Field(default=None, ge=1)


class NoteOut(CamelModel):
    id: str
    owner_id: str
    title: str
    content: str
    tags: list[str]
    created_at: str
    updated_at: str
    version: int


class NoteListOut(CamelModel):
    items: list[NoteOut]
    next_cursor: Optional[str] = None
