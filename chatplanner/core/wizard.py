from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Optional

from loguru import logger

from chatplanner.core.actions import CommittedAction, CreateMeeting, DeleteNote, EditNote, note_title
from chatplanner.core.fragments import ParsedFragment, merge_missing
from chatplanner.core.ports import NoteDirectory, SessionStore
from chatplanner.core.temporal import at_zone, parse_duration_minutes, parse_fragment
from chatplanner.core.text_normalize import matches_phrase, normalize_command_text
from chatplanner.core.titles import TITLE_MAX_LEN, extract_title, strip_create_command_phrases
from chatplanner.core.vocabulary import load_vocabulary
from chatplanner.llm.types import StructuredExtractor


class EventStep(str, Enum):
    WAIT_DATE = "WAIT_DATE"
    WAIT_TIME = "WAIT_TIME"
    WAIT_TITLE = "WAIT_TITLE"
    WAIT_DURATION = "WAIT_DURATION"


class NoteEditStep(str, Enum):
    WAIT_NOTE_NUMBER = "WAIT_NOTE_NUMBER"
    WAIT_NEW_TEXT = "WAIT_NEW_TEXT"


class NoteEditMode(str, Enum):
    EDIT = "EDIT"
    DELETE = "DELETE"


@dataclass(slots=True)
class EventCreationSession:
    user_id: str
    step: EventStep = EventStep.WAIT_DATE
    meeting_date: Optional[date] = None
    meeting_time: Optional[time] = None
    meeting_title: Optional[str] = None
    duration_minutes: Optional[int] = None
    updated_at: Optional[datetime] = None


@dataclass(slots=True)
class NoteEditSession:
    user_id: str
    step: NoteEditStep = NoteEditStep.WAIT_NOTE_NUMBER
    mode: NoteEditMode = NoteEditMode.EDIT
    target_note_id: Optional[str] = None
    target_note_number: Optional[int] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class WizardReply:
    text: str
    finished: bool = False
    action: Optional[CommittedAction] = None


EVENT_PROMPTS: dict[EventStep, str] = {
    EventStep.WAIT_DATE: "Не распознал дату. Напишите только дату: 21.02.2026 или 21 февраля.",
    EventStep.WAIT_TIME: "Не распознал время. Напишите только время: 14:30 или в 14 часов.",
    EventStep.WAIT_TITLE: "Как назвать событие? Напишите только название.",
    EventStep.WAIT_DURATION: "Не распознал длительность. Напишите только длительность: 30 минут, 1 час, 1.5 часа.",
}

EVENT_CANCELLED = "Создание события отменено."
NOTE_EDIT_CANCELLED = "Редактирование заметки отменено."
EVENT_BLANK_INPUT = "Я не вижу ответа. Напишите текстом или нажмите ❌ Отмена."
NOTE_BLANK_INPUT = "Пустой ответ. Отправьте номер заметки или нажмите ❌ Отмена."
EVENT_FALLBACK_TITLE = "Событие"

_EVENT_TRIGGER_RE = re.compile(
    r"(созда(ть|й)|добав(ить|ь)|запланиру(й|йте|ю)|сдела(й|ть))\s+(событи[еяю]|встреч[ауеи])"
)
_NON_DIGITS_RE = re.compile(r"[^0-9]")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def is_cancel_request(text: str | None) -> bool:
    if not text:
        return False
    if "❌" in text:
        return True
    normalized = normalize_command_text(text)
    vocab = load_vocabulary()
    return normalized in vocab.cancel_exact or any(word in normalized for word in vocab.cancel_contains)


def is_event_trigger(text: str | None) -> bool:
    normalized = normalize_command_text(text)
    if not normalized:
        return False
    for phrase in load_vocabulary().event_triggers:
        if normalized == phrase or normalized.startswith(phrase + " "):
            return True
    return bool(_EVENT_TRIGGER_RE.search(normalized))


def is_note_edit_trigger(text: str | None) -> bool:
    return matches_phrase(text, load_vocabulary().note_edit_triggers)


def is_note_delete_trigger(text: str | None) -> bool:
    return matches_phrase(text, load_vocabulary().note_delete_triggers)


def next_missing_step(session: EventCreationSession) -> Optional[EventStep]:
    if session.meeting_date is None:
        return EventStep.WAIT_DATE
    if session.meeting_time is None:
        return EventStep.WAIT_TIME
    if not session.meeting_title or not session.meeting_title.strip():
        return EventStep.WAIT_TITLE
    if session.duration_minutes is None:
        return EventStep.WAIT_DURATION
    return None


def _session_from_fragment(session: EventCreationSession, fragment: ParsedFragment) -> EventCreationSession:
    merged = merge_missing(
        ParsedFragment(session.meeting_date, session.meeting_time, session.duration_minutes, session.meeting_title),
        fragment,
    )
    return replace(
        session,
        meeting_date=merged.date,
        meeting_time=merged.time,
        duration_minutes=merged.duration_minutes,
        meeting_title=merged.title,
    )


class EventCreationWizard:
    """Collects date, time, title and duration for a new event over several messages."""

    def __init__(self, store: SessionStore[EventCreationSession], extractor: StructuredExtractor | None = None) -> None:
        self.store = store
        self.extractor = extractor

    def active(self, user_id: str) -> Optional[EventCreationSession]:
        return self.store.load(user_id)

    def start(self, user_id: str, text: str, tz: tzinfo) -> WizardReply:
        session = EventCreationSession(user_id=user_id)
        logger.info("Event wizard started for user {}", user_id)
        return self.step(session, text, tz)

    def _extracted_fragment(self, text: str, tz: tzinfo) -> ParsedFragment:
        if self.extractor is None:
            return ParsedFragment()
        try:
            result = self.extractor.extract(text, tz)
        except Exception:
            logger.exception("Structured extraction failed inside the event wizard")
            return ParsedFragment()
        if result.status != "ok" or result.event is None:
            return ParsedFragment()
        event = result.event
        title = None
        if event.title:
            title = extract_title(event.title) or strip_create_command_phrases(event.title) or None
        return ParsedFragment(
            date=event.date,
            time=event.time,
            duration_minutes=event.duration_minutes,
            title=title[:TITLE_MAX_LEN] if title else None,
        )

    def step(self, session: EventCreationSession, text: str | None, tz: tzinfo) -> WizardReply:
        if is_cancel_request(text):
            self.store.delete(session.user_id)
            logger.info("Event wizard cancelled for user {}", session.user_id)
            return WizardReply(EVENT_CANCELLED, finished=True)

        source = (text or "").strip()
        if not source:
            return WizardReply(EVENT_BLANK_INPUT)

        current = session.step
        session = _session_from_fragment(session, self._extracted_fragment(source, tz))
        heuristic = parse_fragment(source, tz, with_title=is_event_trigger(source))
        session = _session_from_fragment(session, heuristic)

        if current is EventStep.WAIT_TITLE and not session.meeting_title:
            session.meeting_title = extract_title(source) or source[:TITLE_MAX_LEN]
        if current is EventStep.WAIT_DURATION and session.duration_minutes is None:
            session.duration_minutes = parse_duration_minutes(source, bare_hours=True)

        missing = next_missing_step(session)
        if missing is None:
            return self._commit(session, tz)

        session.step = missing
        session.updated_at = _now()
        self.store.save(session.user_id, session)
        logger.info("Event wizard for user {} waits for {}", session.user_id, missing.value)
        return WizardReply(EVENT_PROMPTS[missing])

    def _commit(self, session: EventCreationSession, tz: tzinfo) -> WizardReply:
        title = session.meeting_title or EVENT_FALLBACK_TITLE
        starts_at = at_zone(session.meeting_date, session.meeting_time, tz)
        action = CreateMeeting(
            title=title,
            starts_at=starts_at,
            ends_at=starts_at + timedelta(minutes=session.duration_minutes),
        )
        self.store.delete(session.user_id)
        logger.info("Event wizard committed for user {}: {}", session.user_id, title)
        text = f"✅ Событие создано: {title}\n🕒 {starts_at.date().isoformat()} {starts_at.strftime('%H:%M')}"
        return WizardReply(text, finished=True, action=action)


class NoteEditWizard:
    """Two-step flow: pick a note by its list number, then send the new text."""

    def __init__(self, store: SessionStore[NoteEditSession], notes: NoteDirectory, limit: int = 20) -> None:
        self.store = store
        self.notes = notes
        self.limit = limit

    def active(self, user_id: str) -> Optional[NoteEditSession]:
        return self.store.load(user_id)

    def start(self, user_id: str, mode: NoteEditMode) -> WizardReply:
        session = NoteEditSession(user_id=user_id, mode=mode, updated_at=_now())
        self.store.save(user_id, session)
        logger.info("Note wizard started for user {} in {} mode", user_id, mode.value)
        heading = "Удаление заметки." if mode is NoteEditMode.DELETE else "Редактирование заметки."
        return WizardReply(f"{heading}\nШаг 1/2: отправьте номер заметки из списка (например: 3).")

    def _save(self, session: NoteEditSession) -> None:
        session.updated_at = _now()
        self.store.save(session.user_id, session)

    def step(self, session: NoteEditSession, text: str | None) -> WizardReply:
        if is_cancel_request(text):
            self.store.delete(session.user_id)
            return WizardReply(NOTE_EDIT_CANCELLED, finished=True)

        source = (text or "").strip()
        if not source:
            self._save(session)
            return WizardReply(NOTE_BLANK_INPUT)

        if session.step is NoteEditStep.WAIT_NEW_TEXT:
            return self._apply_new_text(session, source)
        return self._pick_note(session, source)

    def _pick_note(self, session: NoteEditSession, source: str) -> WizardReply:
        token = _NON_DIGITS_RE.sub("", source)
        if not token:
            self._save(session)
            return WizardReply("Нужен номер заметки, например: 3")

        number = int(token)
        recent = self.notes.list_recent_notes(session.user_id, self.limit)
        if number < 1 or number > len(recent):
            self._save(session)
            return WizardReply("Заметка с таким номером не найдена. Откройте 📝 Заметки и отправьте номер.")

        note = recent[number - 1]
        if session.mode is NoteEditMode.DELETE:
            self.store.delete(session.user_id)
            logger.info("Note wizard deletes note {} for user {}", note.id, session.user_id)
            return WizardReply(f"🗑 Заметка удалена: №{number}", finished=True, action=DeleteNote(note_ref=note.id))

        session.step = NoteEditStep.WAIT_NEW_TEXT
        session.target_note_id = note.id
        session.target_note_number = number
        self._save(session)
        return WizardReply(f"Шаг 2/2: отправьте новый текст для заметки №{number}.")

    def _apply_new_text(self, session: NoteEditSession, source: str) -> WizardReply:
        if not session.target_note_id:
            logger.warning("Note wizard for user {} lost its target note, asking again", session.user_id)
            session.step = NoteEditStep.WAIT_NOTE_NUMBER
            session.target_note_number = None
            self._save(session)
            return WizardReply("Потерял номер заметки. Отправьте номер ещё раз.")

        note = self.notes.get_note(session.user_id, session.target_note_id)
        if note is None or note.archived:
            self.store.delete(session.user_id)
            return WizardReply("Заметка не найдена. Запустите редактирование заново.", finished=True)

        number = session.target_note_number
        self.store.delete(session.user_id)
        action = EditNote(note_ref=note.id, content=source, title=note_title(source))
        return WizardReply(
            f"📝 Заметка обновлена: №{number if number is not None else '?'}",
            finished=True,
            action=action,
        )
