from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from osint_tracker.config import get_settings
from osint_tracker.models import Base

_ENGINES: dict[str, Engine] = {}
_SESSIONS: dict[str, sessionmaker[Session]] = {}


def _resolve_url(db_url: str | None) -> str:
    return db_url or get_settings().database_url


def _sqlite_file(url: str) -> Path | None:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or not parsed.database or parsed.database == ":memory:":
        return None
    return Path(parsed.database)


def get_engine(db_url: str | None = None) -> Engine:
    url = _resolve_url(db_url)
    engine = _ENGINES.get(url)
    if engine is None:
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        engine = _ENGINES[url] = create_engine(url, future=True, connect_args=connect_args)
    return engine


def get_session_factory(db_url: str | None = None) -> sessionmaker[Session]:
    url = _resolve_url(db_url)
    factory = _SESSIONS.get(url)
    if factory is None:
        factory = _SESSIONS[url] = sessionmaker(bind=get_engine(url), expire_on_commit=False, future=True)
    return factory


def init_db(db_url: str | None = None) -> None:
    """Create the run tables, making the SQLite file's directory first when needed."""
    url = _resolve_url(db_url)
    path = _sqlite_file(url)
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(get_engine(url))


@contextmanager
def session_scope(db_url: str | None = None) -> Iterator[Session]:
    session = get_session_factory(db_url)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
