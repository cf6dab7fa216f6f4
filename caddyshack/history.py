"""Keep a bounded history of Caddyfile contents that were replaced."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from hashlib import sha256
from pathlib import Path

from sqlalchemy import func, select

from . import models
from .config import HISTORY_LIMIT
from .db import session_scope
from .logging import get_logger

logger = get_logger("history")


@dataclass(slots=True)
class HistoryEntry:
    id: int
    created_at: datetime
    comment: str | None
    content_hash: str
    size: int
    source_path: str | None = None
    content: str | None = None


def content_digest(text: str) -> str:
    return sha256(text.encode("utf-8")).hexdigest()


def save_config_history(
    previous: str | None,
    new: str,
    *,
    comment: str | None = None,
    source_path: Path | str | None = None,
    db_path: Path | None = None,
) -> int | None:
    """Store ``previous`` when it exists and differs from ``new``.

    Returns the id of the stored entry, or ``None`` when nothing was saved.
    """
    if previous is None or previous == new:
        return None
    with session_scope(db_path=db_path) as session:
        entry = models.ConfigHistory(
            content=previous,
            content_hash=content_digest(previous),
            comment=comment,
            source_path=str(source_path) if source_path else None,
            size=len(previous.encode("utf-8")),
        )
        session.add(entry)
        session.flush()
        entry_id = entry.id
    logger.info("Saved previous Caddyfile to history as entry %d", entry_id)
    return entry_id


def prune_config_history(limit: int = HISTORY_LIMIT, *, db_path: Path | None = None) -> int:
    """Delete all but the newest ``limit`` entries; returns how many were removed."""
    if limit < 0:
        raise ValueError("history limit must not be negative")
    with session_scope(db_path=db_path) as session:
        keep = session.scalars(
            select(models.ConfigHistory.id)
            .order_by(models.ConfigHistory.created_at.desc(), models.ConfigHistory.id.desc())
            .limit(limit)
        ).all()
        stale = session.scalars(
            select(models.ConfigHistory).where(models.ConfigHistory.id.not_in(keep))
        ).all()
        for entry in stale:
            session.delete(entry)
    if stale:
        logger.info("Pruned %d history entries", len(stale))
    return len(stale)


def count_config_history(*, db_path: Path | None = None) -> int:
    with session_scope(db_path=db_path) as session:
        return session.scalar(select(func.count()).select_from(models.ConfigHistory)) or 0


def list_config_history(limit: int | None = None, *, db_path: Path | None = None) -> list[HistoryEntry]:
    """Return entries newest first, without their content."""
    stmt = select(models.ConfigHistory).order_by(
        models.ConfigHistory.created_at.desc(), models.ConfigHistory.id.desc()
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    with session_scope(db_path=db_path) as session:
        return [_entry(row, with_content=False) for row in session.scalars(stmt)]


def get_config_history(entry_id: int, *, db_path: Path | None = None) -> HistoryEntry | None:
    with session_scope(db_path=db_path) as session:
        row = session.get(models.ConfigHistory, entry_id)
        return _entry(row, with_content=True) if row else None


def _entry(row: models.ConfigHistory, *, with_content: bool) -> HistoryEntry:
    return HistoryEntry(
        id=row.id,
        created_at=row.created_at,
        comment=row.comment,
        content_hash=row.content_hash,
        size=row.size,
        source_path=row.source_path,
        content=row.content if with_content else None,
    )
