from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session, sessionmaker

from chatplanner.core.actions import note_title
from chatplanner.core.ports import NoteRef
from chatplanner.db.models import Note
from chatplanner.db.session import get_session


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _to_ref(note: Note) -> NoteRef:
    updated = note.updated_at
    if updated is not None and updated.tzinfo is None:
        updated = updated.replace(tzinfo=timezone.utc)
    return NoteRef(id=note.id, title=note.title, content=note.content, archived=note.archived, updated_at=updated)


def create_note(session: Session, *, user_id: str, content: str, title: str | None = None) -> Note:
    note = Note(user_id=user_id, content=content, title=title or note_title(content))
    session.add(note)
    session.flush()
    return note


def list_recent_notes(session: Session, user_id: str, limit: int = 20) -> list[Note]:
    stmt = (
        select(Note)
        .where(Note.user_id == user_id, Note.archived.is_(False))
        .order_by(desc(Note.updated_at), desc(Note.created_at))
        .limit(limit)
    )
    return list(session.scalars(stmt))


def get_note(session: Session, user_id: str, note_id: str) -> Optional[Note]:
    stmt = select(Note).where(Note.id == note_id, Note.user_id == user_id)
    return session.scalar(stmt)


def _is_uuid(token: str) -> bool:
    try:
        uuid.UUID(token)
    except ValueError:
        return False
    return True


def resolve_note_token(session: Session, user_id: str, token: str, limit: int = 20) -> Optional[tuple[Note, int]]:
    """Find a live note by its list number ("3") or by id. Returns the note and its list number (0 if off-list)."""
    token = (token or "").strip().lstrip("№#")
    if not token:
        return None
    recent = list_recent_notes(session, user_id, limit)
    if token.isdigit():
        number = int(token)
        if 1 <= number <= len(recent):
            return recent[number - 1], number
        return None
    if not _is_uuid(token):
        return None
    note = get_note(session, user_id, token)
    if note is None or note.archived:
        return None
    number = next((i for i, item in enumerate(recent, start=1) if item.id == note.id), 0)
    return note, number


def update_note(session: Session, note: Note, *, content: str, title: str | None = None) -> Note:
    note.content = content
    note.title = title or note_title(content)
    note.updated_at = _now_utc()
    session.flush()
    return note


def archive_note(session: Session, note: Note) -> Note:
    note.archived = True
    note.updated_at = _now_utc()
    session.flush()
    return note


class SqlNoteDirectory:
    """Read-only view over notes for the note-edit flow."""

    def __init__(self, factory: sessionmaker[Session] | None = None) -> None:
        self.factory = factory

    def list_recent_notes(self, user_id: str, limit: int = 20) -> list[NoteRef]:
        with get_session(self.factory) as session:
            return [_to_ref(note) for note in list_recent_notes(session, user_id, limit)]

    def get_note(self, user_id: str, note_id: str) -> Optional[NoteRef]:
        with get_session(self.factory) as session:
            note = get_note(session, user_id, note_id)
            return _to_ref(note) if note is not None else None
