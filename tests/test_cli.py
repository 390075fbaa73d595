import pytest
from typer.testing import CliRunner

from bearnotes.cli import app
from bearnotes.services import Storage

runner = CliRunner()


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = tmp_path / "cli.db"
    monkeypatch.setenv("BEARNOTES_DB_PATH", str(path))
    return path


def _open(db_path):
    return Storage.open(db_path)


def test_add_edit_and_list(db_path):
    result = runner.invoke(app, ["add", "-c", "# Groceries\nbuy milk #errand"])
    assert result.exit_code == 0, result.output
    assert "Created" in result.output

    note = _open(db_path).notes.list_all()[0]
    assert note.tags == ["errand"]

    result = runner.invoke(app, ["edit", note.id, "-c", "milk #errand #today"])
    assert result.exit_code == 0, result.output
    assert set(_open(db_path).notes.get(note.id).tags) == {"errand", "today"}

    result = runner.invoke(app, ["list", "--tag", "today"])
    assert result.exit_code == 0, result.output
    assert "milk" in result.output


def test_missing_note_exits_nonzero(db_path):
    result = runner.invoke(app, ["trash", "nope"])
    assert result.exit_code == 1
    assert "Not found" in result.output


def test_folders_and_cascade(db_path):
    assert runner.invoke(app, ["mkdir", "Projects"]).exit_code == 0
    folder = _open(db_path).folders.list_all()[0]
    assert runner.invoke(app, ["add", "-c", "plan", "-f", folder.id]).exit_code == 0

    result = runner.invoke(app, ["folders"])
    assert "Projects" in result.output

    assert runner.invoke(app, ["rmdir", folder.id]).exit_code == 0
    storage = _open(db_path)
    assert storage.folders.list_all() == []
    assert storage.notes.list_all()[0].folder_id is None


def test_unknown_folder_and_blank_name_are_argument_errors(db_path):
    assert runner.invoke(app, ["add", "-c", "x", "-f", "missing"]).exit_code == 2
    assert runner.invoke(app, ["mkdir", "   "]).exit_code == 2


def test_tag_commands(db_path):
    runner.invoke(app, ["add", "-c", "Review #idea please"])
    result = runner.invoke(app, ["rename-tag", "idea", "notion"])
    assert result.exit_code == 0, result.output
    assert _open(db_path).notes.list_all()[0].content == "Review #notion please"

    result = runner.invoke(app, ["tags"])
    assert "#notion" in result.output

    result = runner.invoke(app, ["delete-tag", "notion"])
    assert result.exit_code == 0
    assert _open(db_path).notes.list_all()[0].content == "Review please"

    assert runner.invoke(app, ["rename-tag", "a", "not valid"]).exit_code == 2
