from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from typing import Optional

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from chatplanner.core.actions import (
    CommittedAction,
    CreateMeeting,
    CreateNote,
    CreateTask,
    DeleteNote,
    EditNote,
    note_title,
)
from chatplanner.core.intent import BotAction, Classification, Intent, decide
from chatplanner.core.ports import CalendarSync, NoteDirectory, SessionStore
from chatplanner.core.temporal import now_in, resolve_zone
from chatplanner.core.text_normalize import repair_mojibake, sanitize_recognized_text
from chatplanner.core.wizard import (
    EventCreationSession,
    EventCreationWizard,
    NoteEditMode,
    NoteEditSession,
    NoteEditWizard,
    WizardReply,
    is_event_trigger,
    is_note_delete_trigger,
    is_note_edit_trigger,
)
from chatplanner.db.repositories import calendar_repo, notes_repo
from chatplanner.db.session import get_session
from chatplanner.dispatch.render import (
    SYNC_WARNING,
    EventView,
    TaskView,
    render_notes,
    render_schedule,
    schedule_window,
    with_link,
)
from chatplanner.llm.types import StructuredExtractor


WELCOME_TEXT = (
    "AI Chief of Staff включен.\n"
    "Отправьте текст или голос, и я сам определю: задача, встреча или запрос расписания.\n"
    "Кнопки — только для просмотра и редактирования: Сегодня, Завтра, Неделя, Заметки."
)
APOLOGY_TEXT = "Что-то пошло не так. Попробуйте ещё раз чуть позже."
NOTE_NOT_FOUND = "Заметка не найдена. Проверьте номер в списке."


@dataclass(frozen=True, slots=True)
class InboundResult:
    reply_text: str
    committed_action: Optional[CommittedAction] = None


class Dispatcher:
    """Routes one inbound message through the wizards or the intent engine and persists the outcome."""

    def __init__(
        self,
        notes_store: NoteDirectory,
        event_store: SessionStore[EventCreationSession],
        note_session_store: SessionStore[NoteEditSession],
        extractor: StructuredExtractor | None = None,
        calendar_sync: CalendarSync | None = None,
        session_factory: sessionmaker[Session] | None = None,
        recent_notes_limit: int = 20,
    ) -> None:
        self.notes = notes_store
        self.extractor = extractor
        self.calendar_sync = calendar_sync
        self.session_factory = session_factory
        self.recent_notes_limit = recent_notes_limit
        self.event_wizard = EventCreationWizard(event_store, extractor)
        self.note_wizard = NoteEditWizard(note_session_store, notes_store, recent_notes_limit)

    def handle_inbound_text(
        self,
        user_id: str,
        text: str | None,
        tz: tzinfo | str | None = None,
        source: str = "text",
    ) -> InboundResult:
        zone = tz if isinstance(tz, tzinfo) else resolve_zone(tz)
        try:
            return self._handle(str(user_id), text or "", zone, source)
        except Exception:
            logger.exception("Inbound message from user {} failed", user_id)
            return InboundResult(APOLOGY_TEXT)

    def _clean(self, text: str, source: str) -> str:
        cleaned = repair_mojibake(text)
        if source == "voice":
            cleaned = sanitize_recognized_text(cleaned) or cleaned.strip()
        return cleaned

    def _handle(self, user_id: str, raw_text: str, tz: tzinfo, source: str) -> InboundResult:
        text = self._clean(raw_text, source)
        logger.info("Inbound {} message from user {} ({} chars)", source, user_id, len(text))

        if text.strip().lower() == "/start":
            return InboundResult(WELCOME_TEXT)

        note_session = self.note_wizard.active(user_id)
        if note_session is not None:
            return self._finish_wizard(user_id, self.note_wizard.step(note_session, text), tz)

        if is_note_edit_trigger(text):
            return InboundResult(self.note_wizard.start(user_id, NoteEditMode.EDIT).text)
        if is_note_delete_trigger(text):
            return InboundResult(self.note_wizard.start(user_id, NoteEditMode.DELETE).text)

        event_session = self.event_wizard.active(user_id)
        if event_session is not None:
            return self._finish_wizard(user_id, self.event_wizard.step(event_session, text, tz), tz)

        if is_event_trigger(text):
            return self._finish_wizard(user_id, self.event_wizard.start(user_id, text, tz), tz)

        intent = decide(text, tz, extractor=self.extractor)
        logger.info("User {} intent {} ({})", user_id, intent.action.value, intent.classification.value)
        return self._apply_intent(user_id, intent, tz)

    def _finish_wizard(self, user_id: str, reply: WizardReply, tz: tzinfo) -> InboundResult:
        if reply.action is None:
            return InboundResult(reply.text)
        outcome = self._apply_action(user_id, reply.action)
        if outcome is None:
            return InboundResult(NOTE_NOT_FOUND)
        return InboundResult(reply.text + outcome, committed_action=reply.action)

    def _apply_action(self, user_id: str, action: CommittedAction) -> Optional[str]:
        """Persist a committed action. Returns a reply suffix, or None when the target note is gone."""
        if isinstance(action, CreateMeeting):
            with get_session(self.session_factory) as session:
                calendar_repo.create_meeting(
                    session,
                    user_id=user_id,
                    title=action.title,
                    starts_at=action.starts_at,
                    ends_at=action.ends_at,
                    external_link=action.external_link,
                )
            return self._sync_meeting(user_id, action)

        if isinstance(action, CreateTask):
            with get_session(self.session_factory) as session:
                calendar_repo.create_task(
                    session,
                    user_id=user_id,
                    title=action.title,
                    due_at=action.due_at,
                    priority=action.priority,
                    external_link=action.external_link,
                )
            return ""

        if isinstance(action, CreateNote):
            with get_session(self.session_factory) as session:
                notes_repo.create_note(session, user_id=user_id, content=action.content, title=action.title)
            return ""

        if isinstance(action, (EditNote, DeleteNote)):
            return "" if self._apply_note_change(user_id, action) is not None else None

        raise TypeError(f"Unsupported action: {type(action).__name__}")

    def _apply_note_change(self, user_id: str, action: EditNote | DeleteNote) -> Optional[int]:
        with get_session(self.session_factory) as session:
            found = notes_repo.resolve_note_token(session, user_id, action.note_ref, self.recent_notes_limit)
            if found is None:
                logger.warning("User {} referenced missing note {}", user_id, action.note_ref)
                return None
            note, number = found
            if isinstance(action, EditNote):
                notes_repo.update_note(session, note, content=action.content, title=action.title)
            else:
                notes_repo.archive_note(session, note)
            return number

    def _sync_meeting(self, user_id: str, meeting: CreateMeeting) -> str:
        if self.calendar_sync is None or not self.calendar_sync.is_connected(user_id):
            return ""
        try:
            pushed = self.calendar_sync.push_meeting(user_id, meeting)
        except Exception:
            logger.exception("Calendar sync failed for user {}", user_id)
            pushed = False
        return "" if pushed else SYNC_WARNING

    def _apply_intent(self, user_id: str, intent: Intent, tz: tzinfo) -> InboundResult:
        if intent.action is BotAction.SHOW_SCHEDULE:
            return InboundResult(self._render_schedule(user_id, intent, tz))

        if intent.action is BotAction.SHOW_NOTES:
            return InboundResult(render_notes(self.notes.list_recent_notes(user_id, self.recent_notes_limit)))

        if intent.action is BotAction.CREATE_NOTE:
            content = intent.note_content or ""
            action = CreateNote(content=content, title=intent.title or note_title(content))
            self._apply_action(user_id, action)
            return InboundResult(intent.response_text, committed_action=action)

        if intent.action in (BotAction.EDIT_NOTE, BotAction.DELETE_NOTE):
            return self._apply_note_intent(user_id, intent)

        if intent.classification is Classification.MEETING and intent.starts_at and intent.ends_at:
            meeting = CreateMeeting(
                title=intent.title,
                starts_at=intent.starts_at,
                ends_at=intent.ends_at,
                external_link=intent.external_link,
            )
            suffix = self._apply_action(user_id, meeting) or ""
            return InboundResult(with_link(intent.response_text, meeting.external_link) + suffix, meeting)

        if intent.classification is Classification.TASK and intent.due_at is not None:
            task = CreateTask(
                title=intent.title,
                due_at=intent.due_at,
                priority=intent.priority.value,
                external_link=intent.external_link,
            )
            self._apply_action(user_id, task)
            return InboundResult(intent.response_text, task)

        return InboundResult(intent.response_text)

    def _apply_note_intent(self, user_id: str, intent: Intent) -> InboundResult:
        if not intent.note_ref:
            return InboundResult(NOTE_NOT_FOUND)
        action: EditNote | DeleteNote
        if intent.action is BotAction.EDIT_NOTE:
            content = intent.note_content or ""
            action = EditNote(note_ref=intent.note_ref, content=content, title=note_title(content))
        else:
            action = DeleteNote(note_ref=intent.note_ref)
        number = self._apply_note_change(user_id, action)
        if number is None:
            return InboundResult(NOTE_NOT_FOUND)
        if isinstance(action, EditNote):
            return InboundResult(f"📝 Заметка обновлена: №{number}", action)
        return InboundResult(f"🗑 Заметка удалена: №{number}", action)

    def _render_schedule(self, user_id: str, intent: Intent, tz: tzinfo) -> str:
        window = schedule_window(intent.schedule_range, tz, now_in(tz).date())
        with get_session(self.session_factory) as session:
            events = [
                EventView(
                    title=item.title,
                    starts_at=calendar_repo.from_db(item.starts_at),
                    ends_at=calendar_repo.from_db(item.ends_at),
                    link=item.external_link,
                )
                for item in calendar_repo.list_meetings_between(session, user_id, window.start, window.end)
            ]
            tasks = [
                TaskView(title=item.title, due_at=calendar_repo.from_db(item.due_at))
                for item in calendar_repo.list_tasks_due_between(session, user_id, window.start, window.end)
            ]
        return render_schedule(window, events, tasks, tz)
