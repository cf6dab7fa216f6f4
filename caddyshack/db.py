"""Database bootstrap helpers for the configuration history store."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from . import models
from .config import DB_PATH, ensure_app_dir
from .logging import get_logger

logger = get_logger("db")

SCHEMA_VERSION = "1"

_engine = None
_engine_path: Path | None = None
_SessionLocal: sessionmaker[Session] | None = None


def get_engine(db_path: Path | str | None = None):
    """Return the engine for ``db_path``, or for the configured DB path.

    Without ``db_path`` the already open engine is reused. An explicit path
    that differs from the open one replaces the engine.
    """
    global _engine, _engine_path, _SessionLocal
    path = Path(db_path).expanduser() if db_path else None
    if _engine is not None and (path is None or path == _engine_path):
        return _engine
    if _engine is not None:
        logger.debug("Switching history database from %s to %s", _engine_path, path)
        _engine.dispose()
    path = path or Path(DB_PATH)
    ensure_app_dir(path.parent)
    _engine = create_engine(f"sqlite:///{path}", future=True)
    _engine_path = path
    _SessionLocal = sessionmaker(bind=_engine, expire_on_commit=False, future=True)
    _bootstrap_schema(_engine)
    logger.debug("Opened history database at %s", path)
    return _engine


def init_db(db_path: Path | str | None = None) -> None:
    """Create all tables."""
    engine = get_engine(db_path=db_path)
    models.Base.metadata.create_all(engine)


@contextmanager
def session_scope(db_path: Path | str | None = None) -> Iterator[Session]:
    """Provide a transactional scope."""
    if _SessionLocal is None or db_path is not None:
        get_engine(db_path=db_path)
    assert _SessionLocal is not None
    session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _bootstrap_schema(engine) -> None:
    models.Base.metadata.create_all(engine)
    with Session(engine) as session:
        meta = session.scalar(select(models.Meta).where(models.Meta.key == "schema_version"))
        if meta is None:
            session.add(
                models.Meta(
                    key="schema_version",
                    value=SCHEMA_VERSION,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            session.commit()


def schema_version(db_path: Path | str | None = None) -> str | None:
    with session_scope(db_path=db_path) as session:
        meta = session.get(models.Meta, "schema_version")
        return meta.value if meta else None
