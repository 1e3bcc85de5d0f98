from __future__ import annotations

import copy
import threading
from datetime import datetime, timezone
from typing import Generic, Optional, TypeVar

from loguru import logger
from sqlalchemy import delete
from sqlalchemy.orm import Session, sessionmaker

from chatplanner.core.wizard import (
    EventCreationSession,
    EventStep,
    NoteEditMode,
    NoteEditSession,
    NoteEditStep,
)
from chatplanner.db.models import EventCreationSessionRow, NoteEditSessionRow
from chatplanner.db.session import get_session


T = TypeVar("T")


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _enum_or(enum_cls, raw: str | None, default):
    try:
        return enum_cls(raw)
    except ValueError:
        logger.warning("Unknown stored {} {!r}, restarting the flow", enum_cls.__name__, raw)
        return default


class InMemorySessionStore(Generic[T]):
    """Process-local store; hands out copies so callers never share state."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, T] = {}

    def load(self, user_id: str) -> Optional[T]:
        with self._lock:
            item = self._items.get(user_id)
            return copy.deepcopy(item) if item is not None else None

    def save(self, user_id: str, session: T) -> None:
        with self._lock:
            self._items[user_id] = copy.deepcopy(session)

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._items.pop(user_id, None)


class SqlEventSessionStore:
    def __init__(self, factory: sessionmaker[Session] | None = None) -> None:
        self.factory = factory

    def load(self, user_id: str) -> Optional[EventCreationSession]:
        with get_session(self.factory) as session:
            row = session.get(EventCreationSessionRow, user_id)
            if row is None:
                return None
            return EventCreationSession(
                user_id=row.user_id,
                step=_enum_or(EventStep, row.step, EventStep.WAIT_DATE),
                meeting_date=row.meeting_date,
                meeting_time=row.meeting_time,
                meeting_title=row.meeting_title,
                duration_minutes=row.duration_minutes,
                updated_at=_as_utc(row.updated_at),
            )

    def save(self, user_id: str, state: EventCreationSession) -> None:
        with get_session(self.factory) as session:
            row = session.get(EventCreationSessionRow, user_id)
            if row is None:
                row = EventCreationSessionRow(user_id=user_id)
                session.add(row)
            row.step = state.step.value
            row.meeting_date = state.meeting_date
            row.meeting_time = state.meeting_time
            row.meeting_title = state.meeting_title
            row.duration_minutes = state.duration_minutes
            row.updated_at = state.updated_at or _now_utc()

    def delete(self, user_id: str) -> None:
        with get_session(self.factory) as session:
            session.execute(delete(EventCreationSessionRow).where(EventCreationSessionRow.user_id == user_id))


class SqlNoteEditSessionStore:
    def __init__(self, factory: sessionmaker[Session] | None = None) -> None:
        self.factory = factory

    def load(self, user_id: str) -> Optional[NoteEditSession]:
        with get_session(self.factory) as session:
            row = session.get(NoteEditSessionRow, user_id)
            if row is None:
                return None
            return NoteEditSession(
                user_id=row.user_id,
                step=_enum_or(NoteEditStep, row.step, NoteEditStep.WAIT_NOTE_NUMBER),
                mode=_enum_or(NoteEditMode, row.mode, NoteEditMode.EDIT),
                target_note_id=row.target_note_id,
                target_note_number=row.target_note_number,
                updated_at=_as_utc(row.updated_at),
            )

    def save(self, user_id: str, state: NoteEditSession) -> None:
        with get_session(self.factory) as session:
            row = session.get(NoteEditSessionRow, user_id)
            if row is None:
                row = NoteEditSessionRow(user_id=user_id)
                session.add(row)
            row.step = state.step.value
            row.mode = state.mode.value
            row.target_note_id = state.target_note_id
            row.target_note_number = state.target_note_number
            row.updated_at = state.updated_at or _now_utc()

    def delete(self, user_id: str) -> None:
        with get_session(self.factory) as session:
            session.execute(delete(NoteEditSessionRow).where(NoteEditSessionRow.user_id == user_id))
