from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from chatplanner.core.actions import note_title
from chatplanner.core.fragments import ParsedFragment, merge_missing
from chatplanner.core.temporal import (
    DEFAULT_DURATION_MINUTES,
    DEFAULT_MEETING_TIME,
    at_zone,
    infer_meeting_start,
    infer_task_due,
    now_in,
    parse_duration_minutes,
    parse_fragment,
)
from chatplanner.core.text_normalize import matches_phrase, normalize_command_text
from chatplanner.core.titles import cleanup_title, extract_title, strip_create_command_phrases
from chatplanner.core.vocabulary import Vocabulary, contains_any, load_vocabulary
from chatplanner.llm.types import ExtractionResult, StructuredExtractor


class BotAction(str, Enum):
    CREATE_MEETING = "CREATE_MEETING"
    CREATE_TASK = "CREATE_TASK"
    CREATE_NOTE = "CREATE_NOTE"
    EDIT_NOTE = "EDIT_NOTE"
    DELETE_NOTE = "DELETE_NOTE"
    SHOW_NOTES = "SHOW_NOTES"
    SHOW_SCHEDULE = "SHOW_SCHEDULE"
    INFO = "INFO"
    IGNORE = "IGNORE"
    ASK_CLARIFICATION = "ASK_CLARIFICATION"


class Classification(str, Enum):
    MEETING = "MEETING"
    TASK = "TASK"
    INFO_ONLY = "INFO_ONLY"
    IGNORE = "IGNORE"
    ASK_CLARIFICATION = "ASK_CLARIFICATION"


class InboundStatus(str, Enum):
    PROCESSED = "PROCESSED"
    IGNORED = "IGNORED"
    NEEDS_CLARIFICATION = "NEEDS_CLARIFICATION"


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ScheduleRange(str, Enum):
    TODAY = "TODAY"
    TOMORROW = "TOMORROW"
    WEEK = "WEEK"


@dataclass(frozen=True, slots=True)
class Intent:
    action: BotAction
    classification: Classification
    status: InboundStatus
    title: str
    priority: Priority
    response_text: str
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    schedule_range: Optional[ScheduleRange] = None
    note_ref: Optional[str] = None
    note_content: Optional[str] = None
    external_link: Optional[str] = None


CLARIFICATION_TEXT = "Не вижу текста запроса. Отправьте, пожалуйста, задачу или встречу текстом."
MEETING_FALLBACK_TITLE = "Встреча"
TASK_FALLBACK_TITLE = "Задача"
NOTE_FALLBACK_TITLE = "Заметка"

_URL_RE = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
_EDIT_EMOJI_RE = re.compile(r"^\s*✏️?\s*")
_DELETE_EMOJI_RE = re.compile(r"^\s*🗑️?\s*")
_EDIT_COMMAND_RE = re.compile(r"^\s*(?:редактировать\s+заметку|/edit_note)\b\s*", re.IGNORECASE)
_DELETE_COMMAND_RE = re.compile(r"^\s*(?:удалить\s+заметку|/delete_note)\b\s*", re.IGNORECASE)
_NOTE_PREFIX_RE = re.compile(r"^\s*(?:заметка|note)\s*:", re.IGNORECASE)


def clarification_intent() -> Intent:
    return Intent(
        action=BotAction.ASK_CLARIFICATION,
        classification=Classification.ASK_CLARIFICATION,
        status=InboundStatus.NEEDS_CLARIFICATION,
        title="Уточнить запрос",
        priority=Priority.MEDIUM,
        response_text=CLARIFICATION_TEXT,
    )


def _info(title: str, text: str) -> Intent:
    return Intent(
        action=BotAction.INFO,
        classification=Classification.INFO_ONLY,
        status=InboundStatus.PROCESSED,
        title=title,
        priority=Priority.LOW,
        response_text=text,
    )


def meeting_reply(title: str, starts_at: datetime) -> str:
    return f"✅ Встреча добавлена: {title}\n🕒 {starts_at.date().isoformat()} {starts_at.strftime('%H:%M')}"


def find_link(text: str) -> Optional[str]:
    match = _URL_RE.search(text or "")
    if match is None:
        return None
    return match.group(0).rstrip(").,;!?")


@dataclass(slots=True)
class RuleContext:
    """Everything a rule may look at for one message."""

    text: str
    lowered: str
    tz: tzinfo
    vocabulary: Vocabulary
    extractor: Optional[StructuredExtractor] = None
    link: Optional[str] = None
    _extraction: Optional[ExtractionResult] = field(default=None, repr=False)

    def extraction(self) -> ExtractionResult:
        if self._extraction is None:
            if self.extractor is None:
                self._extraction = ExtractionResult.absent()
            else:
                self._extraction = self.extractor.extract(self.text, self.tz)
        return self._extraction

    @property
    def has_task_hint(self) -> bool:
        return contains_any(self.lowered, self.vocabulary.task_hints)

    @property
    def has_meeting_hint(self) -> bool:
        if contains_any(self.lowered, self.vocabulary.meeting_hints):
            return True
        # a shared link without task words is an invitation to a call
        return self.link is not None and not self.has_task_hint


@dataclass(frozen=True, slots=True)
class Rule:
    name: str
    matches: Callable[[RuleContext], bool]
    build: Callable[[RuleContext], Intent]


# note edit / delete


def _is_note_edit(ctx: RuleContext) -> bool:
    return ctx.text.lstrip().startswith("✏") or bool(_EDIT_COMMAND_RE.match(ctx.text))


def _build_note_edit(ctx: RuleContext) -> Intent:
    if ctx.text.lstrip().startswith("✏"):
        payload = _EDIT_EMOJI_RE.sub("", ctx.text, count=1).strip()
    else:
        payload = _EDIT_COMMAND_RE.sub("", ctx.text, count=1).strip()
    tokens = payload.split(None, 1)
    if len(tokens) < 2 or not tokens[1].strip():
        return clarification_intent()
    return Intent(
        action=BotAction.EDIT_NOTE,
        classification=Classification.INFO_ONLY,
        status=InboundStatus.PROCESSED,
        title="Редактирование заметки",
        priority=Priority.LOW,
        response_text="📝 Заметка обновлена.",
        note_ref=tokens[0].strip(),
        note_content=tokens[1].strip(),
    )


def _is_note_delete(ctx: RuleContext) -> bool:
    return ctx.text.lstrip().startswith("🗑") or bool(_DELETE_COMMAND_RE.match(ctx.text))


def _build_note_delete(ctx: RuleContext) -> Intent:
    if ctx.text.lstrip().startswith("🗑"):
        payload = _DELETE_EMOJI_RE.sub("", ctx.text, count=1).strip()
    else:
        payload = _DELETE_COMMAND_RE.sub("", ctx.text, count=1).strip()
    if not payload:
        return clarification_intent()
    return Intent(
        action=BotAction.DELETE_NOTE,
        classification=Classification.INFO_ONLY,
        status=InboundStatus.PROCESSED,
        title="Удаление заметки",
        priority=Priority.LOW,
        response_text="🗑 Заметка удалена.",
        note_ref=payload.split()[0],
    )


def _is_note_create(ctx: RuleContext) -> bool:
    return bool(_NOTE_PREFIX_RE.match(ctx.text))


def _build_note_create(ctx: RuleContext) -> Intent:
    content = _NOTE_PREFIX_RE.sub("", ctx.text, count=1).strip()
    if not content:
        return clarification_intent()
    return Intent(
        action=BotAction.CREATE_NOTE,
        classification=Classification.INFO_ONLY,
        status=InboundStatus.PROCESSED,
        title=note_title(content),
        priority=Priority.LOW,
        response_text="📝 Заметка сохранена.",
        note_content=content,
    )


# informational requests


def _is_show_notes(ctx: RuleContext) -> bool:
    return contains_any(ctx.lowered, ctx.vocabulary.show_notes)


def _build_show_notes(ctx: RuleContext) -> Intent:
    return Intent(
        action=BotAction.SHOW_NOTES,
        classification=Classification.INFO_ONLY,
        status=InboundStatus.PROCESSED,
        title="Мои заметки",
        priority=Priority.LOW,
        response_text="Показываю ваши заметки.",
    )


def _is_google_connect(ctx: RuleContext) -> bool:
    vocab = ctx.vocabulary
    if contains_any(ctx.lowered, vocab.google_connect_labels):
        return True
    return contains_any(ctx.lowered, vocab.google_words) and contains_any(ctx.lowered, vocab.google_connect_words)


def _build_google_connect(ctx: RuleContext) -> Intent:
    return _info("Google connect", "Чтобы синхронизировать Google Calendar, нажмите кнопку подключения.")


def _is_schedule(ctx: RuleContext) -> bool:
    vocab = ctx.vocabulary
    labels = vocab.schedule_today + vocab.schedule_tomorrow + vocab.schedule_week
    if matches_phrase(ctx.text, labels):
        return True
    return contains_any(ctx.lowered, vocab.schedule_phrases)


def schedule_range_of(lowered: str, vocabulary: Vocabulary) -> ScheduleRange:
    if contains_any(lowered, vocabulary.schedule_tomorrow_words):
        return ScheduleRange.TOMORROW
    if contains_any(lowered, vocabulary.schedule_week_words):
        return ScheduleRange.WEEK
    return ScheduleRange.TODAY


def _build_schedule(ctx: RuleContext) -> Intent:
    return Intent(
        action=BotAction.SHOW_SCHEDULE,
        classification=Classification.INFO_ONLY,
        status=InboundStatus.PROCESSED,
        title="Расписание",
        priority=Priority.LOW,
        response_text="Показываю расписание.",
        schedule_range=schedule_range_of(ctx.lowered, ctx.vocabulary),
    )


def _is_ui_action(ctx: RuleContext) -> bool:
    vocab = ctx.vocabulary
    return matches_phrase(ctx.text, vocab.ui_edit_note_labels + vocab.ui_delete_note_labels)


def _build_ui_action(ctx: RuleContext) -> Intent:
    if matches_phrase(ctx.text, ctx.vocabulary.ui_edit_note_labels):
        return _info("Редактирование заметки", "Введите: `✏️ <номер> новый текст`")
    return _info("Удаление заметки", "Введите: `🗑 <номер>`")


# meetings and tasks


def _meeting_intent(ctx: RuleContext, title: str, starts_at: datetime, duration: int) -> Intent:
    return Intent(
        action=BotAction.CREATE_MEETING,
        classification=Classification.MEETING,
        status=InboundStatus.PROCESSED,
        title=title,
        priority=Priority.HIGH,
        response_text=meeting_reply(title, starts_at),
        starts_at=starts_at,
        ends_at=starts_at + timedelta(minutes=duration),
        external_link=ctx.link,
    )


def _is_structured_meeting(ctx: RuleContext) -> bool:
    return ctx.extraction().is_create_meeting


def _build_structured_meeting(ctx: RuleContext) -> Intent:
    event = ctx.extraction().event
    if event is None:
        return _build_hinted_meeting(ctx)
    llm_title = cleanup_title(strip_create_command_phrases(event.title), "") if event.title else None
    extracted = ParsedFragment(
        date=event.date,
        time=event.time,
        duration_minutes=event.duration_minutes,
        title=llm_title or None,
    )
    fragment = merge_missing(extracted, parse_fragment(ctx.text, ctx.tz, with_title=True))
    day = fragment.date or now_in(ctx.tz).date()
    starts_at = at_zone(day, fragment.time or DEFAULT_MEETING_TIME, ctx.tz)
    title = cleanup_title(fragment.title, MEETING_FALLBACK_TITLE)
    return _meeting_intent(ctx, title, starts_at, fragment.duration_minutes or DEFAULT_DURATION_MINUTES)


def is_noise(text: str, vocabulary: Vocabulary) -> bool:
    stripped = text.strip()
    if len(stripped) <= 2:
        return True
    words = normalize_command_text(stripped).split()
    return bool(words) and all(word in vocabulary.noise_words for word in words)


def _is_noise(ctx: RuleContext) -> bool:
    return is_noise(ctx.text, ctx.vocabulary)


def _build_noise(ctx: RuleContext) -> Intent:
    return Intent(
        action=BotAction.IGNORE,
        classification=Classification.IGNORE,
        status=InboundStatus.IGNORED,
        title="Игнор",
        priority=Priority.LOW,
        response_text="Принял.",
    )


def _build_hinted_meeting(ctx: RuleContext) -> Intent:
    starts_at = infer_meeting_start(ctx.text, ctx.tz)
    duration = parse_duration_minutes(ctx.text) or DEFAULT_DURATION_MINUTES
    title = extract_title(ctx.text, MEETING_FALLBACK_TITLE) or MEETING_FALLBACK_TITLE
    return _meeting_intent(ctx, title, starts_at, duration)


def _build_task(ctx: RuleContext) -> Intent:
    title = cleanup_title(ctx.text, TASK_FALLBACK_TITLE)
    return Intent(
        action=BotAction.CREATE_TASK,
        classification=Classification.TASK,
        status=InboundStatus.PROCESSED,
        title=title,
        priority=Priority.MEDIUM,
        response_text=f"✅ Задача добавлена: {title}",
        due_at=infer_task_due(ctx.text, ctx.tz),
        external_link=ctx.link,
    )


def _build_default_note(ctx: RuleContext) -> Intent:
    return Intent(
        action=BotAction.CREATE_NOTE,
        classification=Classification.INFO_ONLY,
        status=InboundStatus.PROCESSED,
        title=cleanup_title(ctx.text, NOTE_FALLBACK_TITLE),
        priority=Priority.LOW,
        response_text="📝 Сохранил как заметку.",
        note_content=ctx.text,
        external_link=ctx.link,
    )


RULES: tuple[Rule, ...] = (
    Rule("ui_action", _is_ui_action, _build_ui_action),
    Rule("note_edit", _is_note_edit, _build_note_edit),
    Rule("note_delete", _is_note_delete, _build_note_delete),
    Rule("note_create", _is_note_create, _build_note_create),
    Rule("show_notes", _is_show_notes, _build_show_notes),
    Rule("google_connect", _is_google_connect, _build_google_connect),
    Rule("schedule", _is_schedule, _build_schedule),
    Rule("structured_extraction", _is_structured_meeting, _build_structured_meeting),
    Rule("noise", _is_noise, _build_noise),
    Rule("meeting_hint", lambda ctx: ctx.has_meeting_hint, _build_hinted_meeting),
    Rule("task_hint", lambda ctx: ctx.has_task_hint, _build_task),
    Rule("note_default", lambda ctx: True, _build_default_note),
)


def decide(
    text: str | None,
    tz: tzinfo,
    *,
    extractor: StructuredExtractor | None = None,
    rules: tuple[Rule, ...] = RULES,
) -> Intent:
    if text is None or not text.strip():
        return clarification_intent()

    source = text.strip()
    ctx = RuleContext(
        text=source,
        lowered=source.lower(),
        tz=tz,
        vocabulary=load_vocabulary(),
        extractor=extractor,
        link=find_link(source),
    )
    for rule in rules:
        try:
            if rule.matches(ctx):
                intent = rule.build(ctx)
                logger.debug("Intent rule {} -> {}", rule.name, intent.action.value)
                return intent
        except Exception:
            logger.exception("Intent rule {} failed, trying the next one", rule.name)
    return clarification_intent()
