import pytest

from bearnotes.errors import UnknownFolderError
from bearnotes.models import CLEAR, SetTo, NoteFilter
from bearnotes.services import filter_notes, note_preview, note_title
from bearnotes.tags import extract_tags


def test_create_note_defaults(storage):
    n = storage.notes.create("# New Note\nWrite something... #idea")
    assert n.id
    assert n.created_at == n.updated_at
    assert n.is_pinned is False
    assert n.is_trashed is False
    assert n.folder_id is None
    assert n.tags == ["idea"]
    assert storage.notes.get(n.id).model_dump() == n.model_dump()


def test_new_note_sorts_first(storage):
    a = storage.notes.create("a")
    b = storage.notes.create("b")
    storage.notes.update(a.id, "a edited")
    c = storage.notes.create("c")
    assert [n.id for n in storage.notes.list_all()] == [c.id, a.id, b.id]


def test_update_recomputes_tags_and_bumps_timestamp(storage):
    n = storage.notes.create("#draft")
    updated = storage.notes.update(n.id, "#final #done")
    assert set(updated.tags) == {"final", "done"}
    assert updated.updated_at >= n.updated_at
    assert updated.updated_at >= updated.created_at
    stored = storage.notes.get(n.id)
    assert stored.tags == extract_tags(stored.content)


def test_update_folder_three_shapes(storage):
    f1 = storage.folders.create("F1")
    f2 = storage.folders.create("F2")
    n = storage.notes.create("x", f1.id)

    assert storage.notes.update(n.id, "y").folder_id == f1.id
    assert storage.notes.update(n.id, "z", SetTo(f2.id)).folder_id == f2.id
    assert storage.notes.update(n.id, "w", CLEAR).folder_id is None


def test_update_rejects_unknown_folder(storage, blobs):
    n = storage.notes.create("x")
    before = dict(blobs.data)
    with pytest.raises(UnknownFolderError):
        storage.notes.update(n.id, "y", SetTo("nope"))
    with pytest.raises(UnknownFolderError):
        storage.notes.create("z", "nope")
    assert blobs.data == before


def test_update_rejects_raw_folder_value(storage):
    n = storage.notes.create("x")
    with pytest.raises(TypeError):
        storage.notes.update(n.id, "y", "some-folder-id")


def test_missing_ids_are_silent(storage, blobs):
    storage.notes.create("keep me")
    before = dict(blobs.data)
    writes = len(blobs.writes)

    assert storage.notes.update("missing", "x") is None
    assert storage.notes.toggle_pin("missing") is None
    assert storage.notes.move_to_trash("missing") is None
    assert storage.notes.restore("missing") is None
    assert storage.notes.delete_permanently("missing") is False

    assert blobs.data == before
    assert len(blobs.writes) == writes


def test_pin_trash_restore_purge(storage):
    n = storage.notes.create("hello")
    assert storage.notes.toggle_pin(n.id).is_pinned is True

    trashed = storage.notes.move_to_trash(n.id)
    assert trashed.is_trashed is True
    assert trashed.is_pinned is False
    # idempotent
    assert storage.notes.move_to_trash(n.id).is_trashed is True

    restored = storage.notes.restore(n.id)
    assert restored.is_trashed is False
    assert restored.is_pinned is False
    assert storage.notes.restore(n.id).is_trashed is False

    assert storage.notes.delete_permanently(n.id) is True
    assert storage.notes.get(n.id) is None
    assert storage.notes.delete_permanently(n.id) is False


def test_filter_notes_views(storage):
    folder = storage.folders.create("Work")
    a = storage.notes.create("Alpha #idea", folder.id)
    b = storage.notes.create("Beta #todo")
    c = storage.notes.create("Gamma #idea")
    storage.notes.move_to_trash(c.id)
    notes = storage.notes.list_all()

    assert {n.id for n in filter_notes(notes)} == {a.id, b.id}
    assert [n.id for n in filter_notes(notes, NoteFilter(kind="trash"))] == [c.id]
    assert [n.id for n in filter_notes(notes, NoteFilter(kind="tag", tag="idea"))] == [a.id]
    assert [n.id for n in filter_notes(notes, NoteFilter(kind="folder", folder_id=folder.id))] == [a.id]
    assert [n.id for n in filter_notes(notes, query="BETA")] == [b.id]


def test_title_and_preview():
    assert note_title("# New Note\nWrite something... #idea") == "New Note"
    assert note_preview("# New Note\nWrite something... #idea") == "Write something... #idea"
    assert note_title("   ") == "Untitled Note"
    assert note_preview("only a title") == "No additional text"
    assert len(note_preview("t\n" + "x" * 500)) == 120


def test_trashed_note_cannot_be_pinned(storage, blobs):
    n = storage.notes.create("hello")
    storage.notes.move_to_trash(n.id)
    writes = len(blobs.writes)

    again = storage.notes.toggle_pin(n.id)
    assert again.is_trashed is True
    assert again.is_pinned is False
    assert len(blobs.writes) == writes
