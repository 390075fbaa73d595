import pytest

from bearnotes.services import Storage

from fakes import MemoryBlobStore


@pytest.fixture
def blobs():
    return MemoryBlobStore()


@pytest.fixture
def storage(blobs):
    return Storage(blobs)


@pytest.fixture
def db_storage(tmp_path, monkeypatch):
    monkeypatch.setenv("BEARNOTES_DB_PATH", str(tmp_path / "notes.db"))
    s = Storage.open()
    yield s
    s.blobs.close()
