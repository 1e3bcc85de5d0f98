from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union


@dataclass(frozen=True, slots=True)
class CreateMeeting:
    title: str
    starts_at: datetime
    ends_at: datetime
    external_link: str | None = None


@dataclass(frozen=True, slots=True)
class CreateTask:
    title: str
    due_at: datetime
    priority: str = "MEDIUM"
    external_link: str | None = None


@dataclass(frozen=True, slots=True)
class CreateNote:
    content: str
    title: str


@dataclass(frozen=True, slots=True)
class EditNote:
    # list number ("3") or note id
    note_ref: str
    content: str
    title: str


@dataclass(frozen=True, slots=True)
class DeleteNote:
    note_ref: str


CommittedAction = Union[CreateMeeting, CreateTask, CreateNote, EditNote, DeleteNote]


NOTE_TITLE_LEN = 70


def note_title(content: str) -> str:
    return content[:NOTE_TITLE_LEN]
