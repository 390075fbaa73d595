from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Literal, Optional, Union
from uuid import uuid4

from pydantic import AwareDatetime, BaseModel, Field as PydanticField, computed_field
from sqlmodel import Field, SQLModel

from .tags import extract_tags


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return uuid4().hex


class Blob(SQLModel, table=True):
    """One serialized collection, addressed by key."""

    key: str = Field(primary_key=True)
    value: str = ""
    updated_at: datetime = Field(default_factory=utcnow)


class Note(BaseModel):
    id: str = PydanticField(default_factory=new_id)
    content: str = ""
    created_at: AwareDatetime = PydanticField(default_factory=utcnow)
    updated_at: AwareDatetime = PydanticField(default_factory=utcnow)
    is_pinned: bool = False
    is_trashed: bool = False
    folder_id: Optional[str] = None

    # derived from content on every access; a stored "tags" key is ignored on load
    @computed_field  # type: ignore[prop-decorator]
    @property
    def tags(self) -> list[str]:
        return extract_tags(self.content)

    def touch(self) -> None:
        self.updated_at = max(utcnow(), self.updated_at, self.created_at)


class Folder(BaseModel):
    id: str = PydanticField(default_factory=new_id)
    name: str
    parent_id: Optional[str] = None
    created_at: AwareDatetime = PydanticField(default_factory=utcnow)


class TagCount(BaseModel):
    tag: str
    count: int


# ---------- folder assignment for note updates ----------
@dataclass(frozen=True)
class Unchanged:
    pass


@dataclass(frozen=True)
class Clear:
    pass


@dataclass(frozen=True)
class SetTo:
    folder_id: str


FolderChange = Union[Unchanged, Clear, SetTo]

UNCHANGED = Unchanged()
CLEAR = Clear()


def folder_change(folder_id: Optional[str]) -> FolderChange:
    """Map an explicitly given folder id (possibly ``None``) to a change."""
    return CLEAR if folder_id is None else SetTo(folder_id)


# ---------- list views ----------
class NoteFilter(BaseModel):
    kind: Literal["all", "trash", "tag", "folder"] = "all"
    tag: Optional[str] = None
    folder_id: Optional[str] = None
