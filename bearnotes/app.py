# bearnotes/app.py
from __future__ import annotations
from typing import Literal, Optional
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .errors import StorageWriteError
from .log import setup_logging
from .models import UNCHANGED, Folder, Note, NoteFilter, TagCount, folder_change
from .services import Storage, filter_notes, use_system_collation


# ---------- Schemas ----------
class NoteCreate(BaseModel):
    content: str = ""
    folder_id: Optional[str] = None

class NoteEdit(BaseModel):
    content: str
    # leave out to keep the folder, null to move to root
    folder_id: Optional[str] = None

class NoteOut(BaseModel):
    id: str
    content: str
    tags: list[str]
    is_pinned: bool
    is_trashed: bool
    folder_id: Optional[str]
    created_at: datetime
    updated_at: datetime

class FolderCreate(BaseModel):
    name: str = Field(min_length=1)
    parent_id: Optional[str] = None

class FolderRename(BaseModel):
    name: str = Field(min_length=1)

class TagRename(BaseModel):
    new_tag: str

def _to_out(n: Note) -> NoteOut:
    return NoteOut(
        id=n.id, content=n.content, tags=n.tags,
        is_pinned=n.is_pinned, is_trashed=n.is_trashed, folder_id=n.folder_id,
        created_at=n.created_at, updated_at=n.updated_at,
    )

def _strip_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Folder name must not be empty")
    return name

def _found(obj, what: str = "Not found"):
    if not obj:
        raise HTTPException(status_code=404, detail=what)
    return obj


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def create_app(storage: Optional[Storage] = None) -> FastAPI:
    """Build the API around one engine; opens the configured database if none is given."""
    if storage is None:
        setup_logging()
        use_system_collation()
        storage = Storage.open()

    app = FastAPI(title="bearnotes API")
    app.state.storage = storage

    @app.exception_handler(ValueError)
    async def _bad_argument(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(StorageWriteError)
    async def _write_failed(request: Request, exc: StorageWriteError):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    # ---------- notes ----------
    @app.get("/api/notes", response_model=list[NoteOut])
    def api_list_notes(
        view: Literal["all", "trash", "tag", "folder"] = "all",
        tag: Optional[str] = None,
        folder_id: Optional[str] = None,
        search: Optional[str] = Query(None),
        s: Storage = Depends(get_storage),
    ):
        notes = filter_notes(s.notes.list_all(), NoteFilter(kind=view, tag=tag, folder_id=folder_id), search)
        return [_to_out(n) for n in notes]

    @app.post("/api/notes", response_model=NoteOut, status_code=201)
    def api_create_note(payload: NoteCreate, s: Storage = Depends(get_storage)):
        return _to_out(s.notes.create(payload.content, payload.folder_id))

    @app.get("/api/notes/{note_id}", response_model=NoteOut)
    def api_get_note(note_id: str, s: Storage = Depends(get_storage)):
        return _to_out(_found(s.notes.get(note_id)))

    @app.patch("/api/notes/{note_id}", response_model=NoteOut)
    def api_edit_note(note_id: str, payload: NoteEdit, s: Storage = Depends(get_storage)):
        if "folder_id" in payload.model_fields_set:
            change = folder_change(payload.folder_id)
        else:
            change = UNCHANGED
        return _to_out(_found(s.notes.update(note_id, payload.content, change)))

    @app.post("/api/notes/{note_id}/pin", response_model=NoteOut)
    def api_toggle_pin(note_id: str, s: Storage = Depends(get_storage)):
        return _to_out(_found(s.notes.toggle_pin(note_id)))

    @app.post("/api/notes/{note_id}/trash", response_model=NoteOut)
    def api_trash(note_id: str, s: Storage = Depends(get_storage)):
        return _to_out(_found(s.notes.move_to_trash(note_id)))

    @app.post("/api/notes/{note_id}/restore", response_model=NoteOut)
    def api_restore(note_id: str, s: Storage = Depends(get_storage)):
        return _to_out(_found(s.notes.restore(note_id)))

    @app.delete("/api/notes/{note_id}")
    def api_delete_note(note_id: str, s: Storage = Depends(get_storage)):
        _found(s.notes.delete_permanently(note_id))
        return {"ok": True}

    # ---------- folders ----------
    @app.get("/api/folders", response_model=list[Folder])
    def api_list_folders(s: Storage = Depends(get_storage)):
        return s.folders.list_all()

    @app.post("/api/folders", response_model=Folder, status_code=201)
    def api_create_folder(payload: FolderCreate, s: Storage = Depends(get_storage)):
        return s.folders.create(_strip_name(payload.name), payload.parent_id)

    @app.patch("/api/folders/{folder_id}", response_model=Folder)
    def api_rename_folder(folder_id: str, payload: FolderRename, s: Storage = Depends(get_storage)):
        return _found(s.folders.rename(folder_id, _strip_name(payload.name)))

    @app.delete("/api/folders/{folder_id}")
    def api_delete_folder(folder_id: str, s: Storage = Depends(get_storage)):
        _found(s.folders.delete(folder_id))
        return {"ok": True}

    # ---------- tags ----------
    @app.get("/api/tags", response_model=list[TagCount])
    def api_list_tags(s: Storage = Depends(get_storage)):
        return s.tags.list_tags()

    @app.post("/api/tags/{tag}/rename")
    def api_rename_tag(tag: str, payload: TagRename, s: Storage = Depends(get_storage)):
        return {"changed": s.tags.rename_tag(tag, payload.new_tag)}

    @app.delete("/api/tags/{tag}")
    def api_delete_tag(tag: str, s: Storage = Depends(get_storage)):
        return {"changed": s.tags.delete_tag(tag)}

    return app
