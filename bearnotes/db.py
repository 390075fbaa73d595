from __future__ import annotations
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Mapping, Optional, Protocol

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from .errors import StorageWriteError
from .models import Blob, utcnow

logger = logging.getLogger(__name__)


def _compute_url(db_path: Optional[Path] = None) -> str:
    if db_path is None:
        env_path = os.getenv("BEARNOTES_DB_PATH")
        db_path = Path(env_path) if env_path else Path.home() / ".bearnotes" / "bearnotes.db"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{db_path}"


def make_engine(db_path: Optional[Path] = None) -> Engine:
    """Create an engine for ``db_path`` (or ``BEARNOTES_DB_PATH``) and its tables."""
    url = _compute_url(db_path)
    engine = create_engine(url, echo=False, connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(engine)
    logger.debug("Opened blob store at %s", url)
    return engine


@contextmanager
def session_scope(engine: Engine):
    # keep objects alive after commit so returned models retain values
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class BlobStore(Protocol):
    """Durable key -> text store. ``put_many`` applies all items or none."""

    def get(self, key: str) -> Optional[str]: ...

    def put_many(self, items: Mapping[str, str]) -> None: ...

    def put(self, key: str, value: str) -> None: ...


class SqlBlobStore:
    """Blob store backed by a single SQLite table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def open(cls, db_path: Optional[Path] = None) -> "SqlBlobStore":
        return cls(make_engine(db_path))

    def get(self, key: str) -> Optional[str]:
        with session_scope(self.engine) as s:
            row = s.get(Blob, key)
            return row.value if row else None

    def put_many(self, items: Mapping[str, str]) -> None:
        if not items:
            return
        try:
            with session_scope(self.engine) as s:
                now = utcnow()
                for key, value in items.items():
                    row = s.get(Blob, key)
                    if row is None:
                        row = Blob(key=key)
                    row.value = value
                    row.updated_at = now
                    s.add(row)
        except SQLAlchemyError as e:
            logger.error("Write of %s failed: %s", ", ".join(sorted(items)), e)
            raise StorageWriteError(items.keys(), str(e)) from e

    def put(self, key: str, value: str) -> None:
        self.put_many({key: value})

    def close(self) -> None:
        self.engine.dispose()
