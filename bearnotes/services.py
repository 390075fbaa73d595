from __future__ import annotations
import locale
import logging
import re
import threading
import unicodedata
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Generic, Iterable, Optional, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from .db import BlobStore, SqlBlobStore
from .errors import InvalidTagError, StorageCorruptError, UnknownFolderError
from .models import (
    UNCHANGED,
    Clear,
    Folder,
    FolderChange,
    Note,
    NoteFilter,
    SetTo,
    TagCount,
    Unchanged,
)
from .tags import extract_tags, is_valid_tag, remove_tag, replace_tag

logger = logging.getLogger(__name__)

NOTES_KEY = "notes"
FOLDERS_KEY = "folders"

R = TypeVar("R", bound=BaseModel)


class Collection(Generic[R]):
    """One named collection inside the blob store.

    Every mutation must hold ``lock`` across its read and its write; plain
    reads don't take it and see the last committed blob.
    """

    def __init__(self, blobs: BlobStore, key: str, model: type[R]):
        self.blobs = blobs
        self.key = key
        self.lock = threading.Lock()
        self._adapter = TypeAdapter(list[model])

    def decode(self, raw: str) -> list[R]:
        try:
            return self._adapter.validate_json(raw)
        except ValidationError as e:
            raise StorageCorruptError(self.key, f"{e.error_count()} validation error(s)") from e

    def encode(self, records: Iterable[R]) -> str:
        return self._adapter.dump_json(list(records)).decode("utf-8")

    def read(self) -> list[R]:
        raw = self.blobs.get(self.key)
        if raw is None:
            return []
        try:
            return self.decode(raw)
        except StorageCorruptError as e:
            logger.warning("%s; treating it as empty", e)
            return []

    def write(self, records: Iterable[R]) -> None:
        self.blobs.put(self.key, self.encode(records))


def _find(records: list[R], record_id: str) -> Optional[R]:
    return next((r for r in records if r.id == record_id), None)  # type: ignore[attr-defined]


def use_system_collation() -> None:
    """Sort folder names with the user's LC_COLLATE instead of the C locale."""
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logger.debug("Keeping default collation: %s", e)


def _collation_base(name: str) -> str:
    # strxfrm rejects NUL; accents and case only break ties
    decomposed = unicodedata.normalize("NFKD", name.replace("\x00", "")).casefold()
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _folder_sort_key(folder: Folder) -> tuple[str, str, str]:
    name = folder.name.replace("\x00", "")
    return locale.strxfrm(_collation_base(name)), locale.strxfrm(name), folder.name


# ---------- notes ----------
class NoteStore:
    def __init__(self, notes: Collection[Note], folders: Collection[Folder]):
        self._notes = notes
        self._folders = folders

    def list_all(self) -> list[Note]:
        """Notes, most recently updated first; ties keep stored order."""
        return sorted(self._notes.read(), key=lambda n: n.updated_at, reverse=True)

    def get(self, note_id: str) -> Optional[Note]:
        return _find(self._notes.read(), note_id)

    @contextmanager
    def _locked(self, with_folders: bool):
        # folders before notes, same order as FolderStore.delete
        if with_folders:
            with self._folders.lock, self._notes.lock:
                yield
        else:
            with self._notes.lock:
                yield

    def _check_folder(self, folder_id: str) -> None:
        if _find(self._folders.read(), folder_id) is None:
            raise UnknownFolderError(folder_id)

    def create(self, content: str = "", folder_id: Optional[str] = None) -> Note:
        with self._locked(with_folders=folder_id is not None):
            if folder_id is not None:
                self._check_folder(folder_id)
            notes = self._notes.read()
            note = Note(content=content, folder_id=folder_id)
            note.updated_at = note.created_at
            notes.insert(0, note)
            self._notes.write(notes)
        logger.debug("Created note %s", note.id)
        return note

    def update(self, note_id: str, content: str, folder: FolderChange = UNCHANGED) -> Optional[Note]:
        """Replace content; ``folder`` decides what happens to the folder assignment."""
        if not isinstance(folder, (Unchanged, Clear, SetTo)):
            raise TypeError(f"folder must be Unchanged, Clear or SetTo, not {type(folder).__name__}")
        with self._locked(with_folders=isinstance(folder, SetTo)):
            notes = self._notes.read()
            note = _find(notes, note_id)
            if note is None:
                return None
            if isinstance(folder, SetTo):
                self._check_folder(folder.folder_id)
                note.folder_id = folder.folder_id
            elif isinstance(folder, Clear):
                note.folder_id = None
            note.content = content
            note.touch()
            self._notes.write(notes)
            return note

    def _apply(self, note_id: str, change: Callable[[Note], bool]) -> Optional[Note]:
        with self._notes.lock:
            notes = self._notes.read()
            note = _find(notes, note_id)
            if note is None:
                return None
            if change(note):
                self._notes.write(notes)
            return note

    def toggle_pin(self, note_id: str) -> Optional[Note]:
        """Flip the pin; a trashed note is returned unchanged."""

        def flip(note: Note) -> bool:
            if note.is_trashed:
                return False
            note.is_pinned = not note.is_pinned
            return True

        return self._apply(note_id, flip)

    def move_to_trash(self, note_id: str) -> Optional[Note]:
        """Trash a note; trashed notes are never pinned."""

        def trash(note: Note) -> bool:
            if note.is_trashed and not note.is_pinned:
                return False
            note.is_trashed = True
            note.is_pinned = False
            return True

        return self._apply(note_id, trash)

    def restore(self, note_id: str) -> Optional[Note]:
        def untrash(note: Note) -> bool:
            if not note.is_trashed:
                return False
            note.is_trashed = False
            return True

        return self._apply(note_id, untrash)

    def delete_permanently(self, note_id: str) -> bool:
        with self._notes.lock:
            notes = self._notes.read()
            kept = [n for n in notes if n.id != note_id]
            if len(kept) == len(notes):
                return False
            self._notes.write(kept)
        logger.info("Deleted note %s permanently", note_id)
        return True


# ---------- folders ----------
class FolderStore:
    def __init__(self, folders: Collection[Folder], notes: Collection[Note]):
        self._folders = folders
        self._notes = notes

    def list_all(self) -> list[Folder]:
        return sorted(self._folders.read(), key=_folder_sort_key)

    def get(self, folder_id: str) -> Optional[Folder]:
        return _find(self._folders.read(), folder_id)

    def children(self, parent_id: Optional[str] = None) -> list[Folder]:
        return [f for f in self.list_all() if f.parent_id == parent_id]

    def create(self, name: str, parent_id: Optional[str] = None) -> Folder:
        with self._folders.lock:
            folders = self._folders.read()
            if parent_id is not None and _find(folders, parent_id) is None:
                raise UnknownFolderError(parent_id)
            folder = Folder(name=name, parent_id=parent_id)
            folders.append(folder)
            self._folders.write(folders)
        return folder

    def rename(self, folder_id: str, name: str) -> Optional[Folder]:
        with self._folders.lock:
            folders = self._folders.read()
            folder = _find(folders, folder_id)
            if folder is None:
                return None
            folder.name = name
            self._folders.write(folders)
            return folder

    def delete(self, folder_id: str) -> bool:
        """Remove a folder, moving its notes and child folders to the root.

        Children are promoted, not deleted. Both collections are written in a
        single ``put_many`` so either the whole cascade lands or none of it.
        """
        with self._folders.lock, self._notes.lock:
            folders = self._folders.read()
            if _find(folders, folder_id) is None:
                return False
            notes = self._notes.read()

            detached = 0
            for note in notes:
                if note.folder_id == folder_id:
                    note.folder_id = None
                    detached += 1
            promoted = 0
            for folder in folders:
                if folder.parent_id == folder_id:
                    folder.parent_id = None
                    promoted += 1
            folders = [f for f in folders if f.id != folder_id]

            items = {self._folders.key: self._folders.encode(folders)}
            if detached:
                items[self._notes.key] = self._notes.encode(notes)
            self._folders.blobs.put_many(items)

        logger.info(
            "Deleted folder %s (%d note(s) moved to root, %d subfolder(s) promoted)",
            folder_id, detached, promoted,
        )
        return True


# ---------- tags ----------
class TagIndex:
    """Tags derived from note content on every call."""

    def __init__(self, notes: Collection[Note]):
        self._notes = notes

    def list_tags(self) -> list[TagCount]:
        counts: dict[str, int] = {}
        for note in self._notes.read():
            if note.is_trashed:
                continue
            for tag in extract_tags(note.content):
                counts[tag] = counts.get(tag, 0) + 1
        return [TagCount(tag=t, count=c) for t, c in counts.items()]

    def _rewrite(self, tag: str, rewrite: Callable[[str], str]) -> int:
        with self._notes.lock:
            notes = self._notes.read()
            changed = 0
            for note in notes:
                if tag not in extract_tags(note.content):
                    continue
                note.content = rewrite(note.content)
                note.touch()
                changed += 1
            if changed:
                self._notes.write(notes)
        return changed

    def rename_tag(self, old_tag: str, new_tag: str) -> int:
        """Rewrite ``#old_tag`` to ``#new_tag`` everywhere; returns notes changed."""
        if not is_valid_tag(new_tag):
            raise InvalidTagError(new_tag)
        if old_tag == new_tag:
            return 0
        changed = self._rewrite(old_tag, lambda content: replace_tag(content, old_tag, new_tag))
        if changed:
            logger.info("Renamed #%s to #%s in %d note(s)", old_tag, new_tag, changed)
        return changed

    def delete_tag(self, tag: str) -> int:
        changed = self._rewrite(tag, lambda content: remove_tag(content, tag))
        if changed:
            logger.info("Removed #%s from %d note(s)", tag, changed)
        return changed


# ---------- engine ----------
class Storage:
    """The notes/folders/tags engine over one blob store."""

    def __init__(self, blobs: BlobStore):
        self.blobs = blobs
        notes: Collection[Note] = Collection(blobs, NOTES_KEY, Note)
        folders: Collection[Folder] = Collection(blobs, FOLDERS_KEY, Folder)
        self.notes = NoteStore(notes, folders)
        self.folders = FolderStore(folders, notes)
        self.tags = TagIndex(notes)

    @classmethod
    def open(cls, db_path: Optional[Path] = None) -> "Storage":
        return cls(SqlBlobStore.open(db_path))


# ---------- list helpers ----------
_HEADING_RE = re.compile(r"^#+\s")


def filter_notes(
    notes: Iterable[Note],
    note_filter: Optional[NoteFilter] = None,
    query: Optional[str] = None,
) -> list[Note]:
    """
    Narrow a note list the way the sidebar views do.
    - query: case-insensitive substring of content
    - trash view: trashed notes only; every other view hides them
    - tag / folder views: notes carrying the tag / sitting in the folder
    """
    note_filter = note_filter or NoteFilter()
    q = query.lower() if query else None
    out = []
    for note in notes:
        if q and q not in note.content.lower():
            continue
        if note_filter.kind == "trash":
            if note.is_trashed:
                out.append(note)
            continue
        if note.is_trashed:
            continue
        if note_filter.kind == "tag" and note_filter.tag and note_filter.tag not in note.tags:
            continue
        if note_filter.kind == "folder" and note_filter.folder_id and note.folder_id != note_filter.folder_id:
            continue
        out.append(note)
    return out


def note_title(content: str) -> str:
    first = content.strip().split("\n")[0]
    return _HEADING_RE.sub("", first) or "Untitled Note"


def note_preview(content: str, limit: int = 120) -> str:
    rest = " ".join(content.strip().split("\n")[1:])
    return rest[:limit] or "No additional text"
