from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, TypeVar

from chatplanner.core.actions import CreateMeeting


T = TypeVar("T")


class SessionStore(Protocol[T]):
    """Per-user conversation state. Each call is atomic on its own."""

    def load(self, user_id: str) -> Optional[T]: ...

    def save(self, user_id: str, session: T) -> None: ...

    def delete(self, user_id: str) -> None: ...


@dataclass(frozen=True, slots=True)
class NoteRef:
    id: str
    title: str
    content: str
    archived: bool = False
    updated_at: datetime | None = None


class NoteDirectory(Protocol):
    def list_recent_notes(self, user_id: str, limit: int = 20) -> list[NoteRef]: ...

    def get_note(self, user_id: str, note_id: str) -> Optional[NoteRef]: ...


class CalendarSync(Protocol):
    def is_connected(self, user_id: str) -> bool: ...

    def push_meeting(self, user_id: str, meeting: CreateMeeting) -> bool: ...
