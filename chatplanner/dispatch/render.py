from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional, Sequence

from chatplanner.core.intent import ScheduleRange
from chatplanner.core.ports import NoteRef


NOTES_HINT = "\n\nДействия:\n✏️ Редактировать: `✏️ <номер> новый текст`\n🗑 Удалить: `🗑 <номер>`"
NO_NOTES = "📝 Заметок пока нет.\nСоздайте: заметка: текст"
SYNC_WARNING = (
    "\n⚠️ Не удалось записать событие в Google Calendar. "
    "Проверьте подключение Google и включение Calendar API."
)

_RANGE_LABELS = {
    ScheduleRange.TODAY: "сегодня",
    ScheduleRange.TOMORROW: "завтра",
    ScheduleRange.WEEK: "неделю",
}
_STAMP = "%d.%m %H:%M"


@dataclass(frozen=True, slots=True)
class ScheduleWindow:
    start: datetime
    end: datetime
    label: str


@dataclass(frozen=True, slots=True)
class EventView:
    title: str
    starts_at: datetime
    ends_at: datetime
    link: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TaskView:
    title: str
    due_at: Optional[datetime] = None


def truncate(text: str | None, limit: int) -> str:
    if not text or not text.strip():
        return "-"
    cleaned = re.sub(r"\s+", " ", text).strip()
    if len(cleaned) <= limit:
        return cleaned
    return cleaned[: max(0, limit - 1)] + "…"


def with_link(base: str, link: str | None) -> str:
    if not link or not link.strip():
        return base
    return f"{base}\n🔗 {link}"


def schedule_window(schedule_range: ScheduleRange | None, tz: tzinfo, today: date) -> ScheduleWindow:
    """Whole local days: today, tomorrow, or today plus the next six days."""
    selected = schedule_range or ScheduleRange.TODAY
    first = today
    last = today
    if selected is ScheduleRange.TOMORROW:
        first = last = today + timedelta(days=1)
    elif selected is ScheduleRange.WEEK:
        last = today + timedelta(days=6)
    start = datetime.combine(first, time.min, tzinfo=tz)
    end = datetime.combine(last + timedelta(days=1), time.min, tzinfo=tz)
    return ScheduleWindow(start=start, end=end, label=_RANGE_LABELS[selected])


def render_notes(notes: Sequence[NoteRef]) -> str:
    if not notes:
        return NO_NOTES
    lines = ["📝 Ваши заметки:\n"]
    for number, note in enumerate(notes, start=1):
        lines.append(f"\n[{number}] {truncate(note.title, 60)}")
    return "".join(lines) + NOTES_HINT


def render_schedule(window: ScheduleWindow, events: Sequence[EventView], tasks: Sequence[TaskView], tz: tzinfo) -> str:
    if not events and not tasks:
        return f"📭 На {window.label} событий и задач не найдено."

    parts = [f"📅 Расписание на {window.label}:\n"]
    for event in sorted(events, key=lambda item: item.starts_at):
        starts = event.starts_at.astimezone(tz).strftime(_STAMP)
        ends = event.ends_at.astimezone(tz).strftime(_STAMP)
        parts.append(f"\n• {event.title} ({starts} - {ends})")
        if event.link and event.link.strip():
            parts.append(f"\n  🔗 {event.link}")

    if tasks:
        parts.append("\n\n✅ Задачи:")
        for task in tasks:
            parts.append(f"\n• {task.title}")
            if task.due_at is not None:
                parts.append(f" (до {task.due_at.astimezone(tz).strftime(_STAMP)})")
    return "".join(parts)
