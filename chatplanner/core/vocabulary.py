from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable

import yaml


_VOCABULARY_PATH = Path(__file__).with_name("vocabulary.yml")


@dataclass(frozen=True, slots=True)
class Vocabulary:
    meeting_hints: tuple[str, ...]
    task_hints: tuple[str, ...]
    noise_words: frozenset[str]
    show_notes: tuple[str, ...]
    google_connect_labels: tuple[str, ...]
    google_words: tuple[str, ...]
    google_connect_words: tuple[str, ...]
    schedule_today: tuple[str, ...]
    schedule_tomorrow: tuple[str, ...]
    schedule_week: tuple[str, ...]
    schedule_phrases: tuple[str, ...]
    schedule_tomorrow_words: tuple[str, ...]
    schedule_week_words: tuple[str, ...]
    ui_edit_note_labels: tuple[str, ...]
    ui_delete_note_labels: tuple[str, ...]
    cancel_exact: tuple[str, ...]
    cancel_contains: tuple[str, ...]
    event_triggers: tuple[str, ...]
    note_edit_triggers: tuple[str, ...]
    note_delete_triggers: tuple[str, ...]


def _words(data: dict[str, Any], key: str) -> tuple[str, ...]:
    raw = data.get(key) or []
    if not isinstance(raw, list):
        raise ValueError(f"vocabulary entry {key!r} must be a list")
    return tuple(str(item).strip().lower() for item in raw if str(item).strip())


@lru_cache(maxsize=1)
def load_vocabulary(path: str | None = None) -> Vocabulary:
    source = Path(path) if path else _VOCABULARY_PATH
    with source.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{source.name} must be a mapping")
    schedule = data.get("schedule") or {}
    cancel = data.get("cancel") or {}
    return Vocabulary(
        meeting_hints=_words(data, "meeting_hints"),
        task_hints=_words(data, "task_hints"),
        noise_words=frozenset(_words(data, "noise_words")),
        show_notes=_words(data, "show_notes"),
        google_connect_labels=_words(data, "google_connect_labels"),
        google_words=_words(data, "google_words"),
        google_connect_words=_words(data, "google_connect_words"),
        schedule_today=_words(schedule, "today_labels"),
        schedule_tomorrow=_words(schedule, "tomorrow_labels"),
        schedule_week=_words(schedule, "week_labels"),
        schedule_phrases=_words(schedule, "phrases"),
        schedule_tomorrow_words=_words(schedule, "tomorrow_words"),
        schedule_week_words=_words(schedule, "week_words"),
        ui_edit_note_labels=_words(data, "ui_edit_note_labels"),
        ui_delete_note_labels=_words(data, "ui_delete_note_labels"),
        cancel_exact=_words(cancel, "exact"),
        cancel_contains=_words(cancel, "contains"),
        event_triggers=_words(data, "event_triggers"),
        note_edit_triggers=_words(data, "note_edit_triggers"),
        note_delete_triggers=_words(data, "note_delete_triggers"),
    )


def contains_any(text: str, needles: Iterable[str]) -> bool:
    return any(needle in text for needle in needles)
