from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from chatplanner.core.fragments import ParsedFragment
from chatplanner.core.lexicon import MONTH_WORD_PATTERN, NUMBER_WORDS, resolve_month
from chatplanner.core.titles import extract_title


DEFAULT_ZONE = "Europe/Moscow"
DEFAULT_MEETING_TIME = time(11, 0)
DEFAULT_DURATION_MINUTES = 60
TASK_DUE_TODAY = time(20, 0)
TASK_DUE_OTHER = time(12, 0)

_RELATIVE_DAYS: tuple[tuple[re.Pattern[str], int], ...] = (
    (re.compile(r"\b(?:сегодня|today)\b"), 0),
    (re.compile(r"\bпослезавтра\b"), 2),
    (re.compile(r"\b(?:завтра|tomorrow)\b"), 1),
)
_DATE_NUMERIC_RE = re.compile(
    r"(?<![\d.,])(\d{1,2})[./](\d{1,2})(?:[./](\d{2,4}))?(?!\d)(?!\s*(?:ч\b|час|мин))"
)
_DATE_TEXT_RE = re.compile(rf"\b(\d{{1,2}})\s+({MONTH_WORD_PATTERN})(?:\s+(\d{{4}}))?\b")
_DATE_WORDS_RE = re.compile(
    rf"(?<![а-я])([а-я\-]+(?:\s+[а-я\-]+)?)\s+({MONTH_WORD_PATTERN})"
    r"(?:\s+([а-я\s\-]+?)\s+г(?:ода|од)?)?(?![а-я])"
)
_DATE_DOT_TOKEN_RE = re.compile(r"(?<![\d.,])(\d{1,2})\.(\d{1,2})(?:\.(\d{2,4}))?(?!\d)")

_TIME_CLOCK_RE = re.compile(r"(?<![\d.,:/])(\d{1,2})[:.](\d{2})(?!\d)")
_TIME_HOURS_MIN_RE = re.compile(
    r"(?<![\d.,])\b(\d{1,2})\s*(?:час|часа|часов|ч)\s*(\d{1,2})\s*(?:мин(?:ут[аы]?)?)\b"
)
_TIME_HOURS_RE = re.compile(r"(?<![\d.,])\b(\d{1,2})\s*(?:час|часа|часов)\b")
_TIME_HOUR_PART_RE = re.compile(r"\bв\s+(\d{1,2})\s+(утра|дня|вечера|ночи)\b")
_TIME_HOUR_WORDS_RE = re.compile(r"(?<![а-я])(?:в\s+)?([а-я\-]+(?:\s+[а-я\-]+)?)\s+час(?:а|ов)?(?![а-я])")
_DAY_PART_AFTER_RE = re.compile(r"^\s*(утра|дня|вечера|ночи)\b")
_QUALITATIVE_TIMES: tuple[tuple[re.Pattern[str], time], ...] = (
    (re.compile(r"\bутром\b"), time(10, 0)),
    (re.compile(r"\bднем\b"), time(14, 0)),
    (re.compile(r"\bвечером\b"), time(18, 0)),
)

_DURATION_MIN_RE = re.compile(r"(?<![\d.,])\b(\d{1,3})\s*мин(?:ут[аы]?)?\b")
_DURATION_MIN_WORDS_RE = re.compile(r"(?<![а-я])([а-я\-]+(?:\s+[а-я\-]+)?)\s+минут[аы]?(?![а-я])")
_DURATION_HOUR_DECIMAL_RE = re.compile(r"(?<![\d.,])\b(\d{1,2})[,.](\d)\s*час")
_DURATION_HOUR_RE = re.compile(r"(?<![\d.,])\b(\d{1,2})\s*час(?:а|ов)?\b")
_DURATION_HOUR_WORDS_RE = re.compile(r"\bна\s+([а-я\-]+(?:\s+[а-я\-]+)?)\s+час(?:а|ов)?(?![а-я])")
_DURATION_ONE_HOUR_RE = re.compile(r"(?:^|\bна\s+)(?:1\s+|один\s+)?час$|\bна\s+час\b")

_INTRODUCED_BY_AT_RE = re.compile(r"(?:^|[\s,(])в\s*$")
_INTRODUCED_BY_FOR_RE = re.compile(r"(?:^|[\s,(])(?:на|через|за)\s*$")
_AFTER_HOURS_RE = re.compile(r"час\w*\s*$")
_NOT_AN_HOUR_WORDS = {"на", "через", "за", "пол", "полтора", "полторы"}


def _normalize(text: str | None) -> str:
    if not text:
        return ""
    return " ".join(text.strip().lower().replace("ё", "е").split())


def resolve_zone(name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(name or DEFAULT_ZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(DEFAULT_ZONE)


def now_in(tz: tzinfo) -> datetime:
    return datetime.now(tz)


def _today(tz: tzinfo, today: date | None) -> date:
    return today if today is not None else now_in(tz).date()


def parse_words_number(source: str | None) -> int | None:
    """Russian number words to int: "две тысячи двадцать шестого" -> 2026."""
    text = _normalize(source).replace("-", " ")
    if not text:
        return None
    if re.fullmatch(r"\d{1,4}", text):
        return int(text)
    total = 0
    current = 0
    seen = False
    for token in text.split():
        value = NUMBER_WORDS.get(token)
        if value is None:
            continue
        seen = True
        if value == 1000:
            total += (current or 1) * 1000
            current = 0
        elif value == 100:
            current = current * 100 if current else 100
        else:
            current += value
    if not seen:
        return None
    return total + current


def _roll_forward(candidate: date, today: date) -> date:
    if candidate < today - timedelta(days=1):
        try:
            return candidate.replace(year=candidate.year + 1)
        except ValueError:
            return candidate + timedelta(days=365)
    return candidate


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _introduced_by_at(text: str, pos: int) -> bool:
    return bool(_INTRODUCED_BY_AT_RE.search(text[:pos]))


def _relative_date(text: str, today: date) -> date | None:
    for pattern, offset in _RELATIVE_DAYS:
        if pattern.search(text):
            return today + timedelta(days=offset)
    return None


def _numeric_date(text: str, today: date) -> date | None:
    for match in _DATE_NUMERIC_RE.finditer(text):
        day, month, year_raw = int(match.group(1)), int(match.group(2)), match.group(3)
        if year_raw is None and "." in match.group(0) and _introduced_by_at(text, match.start()):
            # "в 10.05" is a clock time
            continue
        year = today.year
        if year_raw is not None:
            year = int(year_raw)
            if year < 100:
                year += 2000
        candidate = _safe_date(year, month, day)
        if candidate is None:
            continue
        return candidate if year_raw is not None else _roll_forward(candidate, today)
    return None


def _text_month_date(text: str, today: date) -> date | None:
    for match in _DATE_TEXT_RE.finditer(text):
        month = resolve_month(match.group(2))
        if month is None:
            continue
        year_raw = match.group(3)
        candidate = _safe_date(int(year_raw) if year_raw else today.year, month, int(match.group(1)))
        if candidate is None:
            continue
        return candidate if year_raw else _roll_forward(candidate, today)
    return None


def _worded_date(text: str, today: date) -> date | None:
    for match in _DATE_WORDS_RE.finditer(text):
        day = parse_words_number(match.group(1))
        month = resolve_month(match.group(2))
        if day is None or month is None or not 1 <= day <= 31:
            continue
        parsed_year = parse_words_number(match.group(3))
        has_year = parsed_year is not None and 1900 <= parsed_year <= 2200
        candidate = _safe_date(parsed_year if has_year else today.year, month, day)
        if candidate is None:
            continue
        return candidate if has_year else _roll_forward(candidate, today)
    return None


_DATE_PASSES: tuple[Callable[[str, date], Optional[date]], ...] = (
    _relative_date,
    _numeric_date,
    _text_month_date,
    _worded_date,
)


def parse_date(text: str | None, tz: tzinfo, today: date | None = None) -> date | None:
    normalized = _normalize(text)
    if not normalized:
        return None
    base = _today(tz, today)
    for date_pass in _DATE_PASSES:
        found = date_pass(normalized, base)
        if found is not None:
            return found
    return None


def _mask_numeric_dates(text: str) -> str:
    def _mask(match: re.Match[str]) -> str:
        if match.group(3):
            return " "
        if _introduced_by_at(text, match.start()) or int(match.group(2)) > 12:
            return match.group(0)
        return " "

    return _DATE_DOT_TOKEN_RE.sub(_mask, text)


def _day_part_shift(hour: int, tail: str) -> int:
    part = _DAY_PART_AFTER_RE.match(tail)
    if part is None:
        return hour
    word = part.group(1)
    if word == "дня" and 1 <= hour <= 6:
        return hour + 12
    if word == "вечера" and 1 <= hour <= 11:
        return hour + 12
    return hour


def _safe_time(hour: int, minute: int = 0) -> time | None:
    if 0 <= hour <= 23 and 0 <= minute <= 59:
        return time(hour, minute)
    return None


def _clock_time(text: str) -> time | None:
    for match in _TIME_CLOCK_RE.finditer(text):
        found = _safe_time(int(match.group(1)), int(match.group(2)))
        if found is not None:
            return found
    return None


def _hours_minutes_time(text: str) -> time | None:
    for match in _TIME_HOURS_MIN_RE.finditer(text):
        found = _safe_time(int(match.group(1)), int(match.group(2)))
        if found is not None:
            return found
    return None


def _hours_time(text: str) -> time | None:
    for match in _TIME_HOURS_RE.finditer(text):
        if _INTRODUCED_BY_FOR_RE.search(text[: match.start()]):
            continue
        hour = _day_part_shift(int(match.group(1)), text[match.end():])
        found = _safe_time(hour)
        if found is not None:
            return found
    return None


def _hour_day_part_time(text: str) -> time | None:
    for match in _TIME_HOUR_PART_RE.finditer(text):
        hour = _day_part_shift(int(match.group(1)), text[match.start(2):])
        found = _safe_time(hour)
        if found is not None:
            return found
    return None


def _worded_hours_time(text: str) -> time | None:
    for match in _TIME_HOUR_WORDS_RE.finditer(text):
        words = match.group(1).split()
        if words[0] in _NOT_AN_HOUR_WORDS or _INTRODUCED_BY_FOR_RE.search(text[: match.start()]):
            continue
        hour = parse_words_number(match.group(1))
        if hour is None:
            continue
        found = _safe_time(_day_part_shift(hour, text[match.end():]))
        if found is not None:
            return found
    return None


def _qualitative_time(text: str) -> time | None:
    for pattern, value in _QUALITATIVE_TIMES:
        if pattern.search(text):
            return value
    return None


_TIME_PASSES: tuple[Callable[[str], Optional[time]], ...] = (
    _clock_time,
    _hours_minutes_time,
    _hours_time,
    _hour_day_part_time,
    _worded_hours_time,
    _qualitative_time,
)


def parse_time(text: str | None) -> time | None:
    normalized = _normalize(text)
    if not normalized:
        return None
    masked = _mask_numeric_dates(normalized)
    for time_pass in _TIME_PASSES:
        found = time_pass(masked)
        if found is not None:
            return found
    return None


def _positive(minutes: int) -> int | None:
    return minutes if minutes > 0 else None


def _introduced_by_for(text: str, pos: int) -> bool:
    return bool(_INTRODUCED_BY_FOR_RE.search(text[:pos]))


def _hours_minutes_duration(text: str, bare: bool = False) -> int | None:
    for match in _TIME_HOURS_MIN_RE.finditer(text):
        if not (bare or _introduced_by_for(text, match.start())) or _introduced_by_at(text, match.start()):
            continue
        return _positive(int(match.group(1)) * 60 + int(match.group(2)))
    return None


def _minutes_duration(text: str) -> int | None:
    for match in _DURATION_MIN_RE.finditer(text):
        if _AFTER_HOURS_RE.search(text[: match.start()]):
            # "14 часов 30 минут" is a clock time
            continue
        return _positive(int(match.group(1)))
    return None


def _worded_minutes_duration(text: str) -> int | None:
    for match in _DURATION_MIN_WORDS_RE.finditer(text):
        if "час" in match.group(1) or _AFTER_HOURS_RE.search(text[: match.start()]):
            continue
        value = parse_words_number(match.group(1))
        if value is not None:
            return _positive(value)
    return None


def _decimal_hours_duration(text: str) -> int | None:
    match = _DURATION_HOUR_DECIMAL_RE.search(text)
    if match is None:
        return None
    return _positive(int(match.group(1)) * 60 + round(int(match.group(2)) * 6.0))


def _hours_duration(text: str, bare: bool = False) -> int | None:
    # without "на/через/за" the same token is a clock hour
    for match in _DURATION_HOUR_RE.finditer(text):
        if not (bare or _introduced_by_for(text, match.start())) or _introduced_by_at(text, match.start()):
            continue
        return _positive(int(match.group(1)) * 60)
    return None


def _worded_hours_duration(text: str) -> int | None:
    if "полчаса" in text:
        return 30
    if re.search(r"\bполтора\s+час", text):
        return 90
    match = _DURATION_HOUR_WORDS_RE.search(text)
    if match is not None:
        value = parse_words_number(match.group(1))
        if value is not None:
            return _positive(value * 60)
    if _DURATION_ONE_HOUR_RE.search(text):
        return 60
    return None


_DURATION_PASSES: tuple[Callable[[str], Optional[int]], ...] = (
    _hours_minutes_duration,
    _minutes_duration,
    _worded_minutes_duration,
    _decimal_hours_duration,
    _hours_duration,
    _worded_hours_duration,
)


def parse_duration_minutes(text: str | None, *, bare_hours: bool = False) -> int | None:
    """Duration in minutes, or None.

    A bare "2 часа" reads as a clock hour unless ``bare_hours`` is set,
    which callers do when the text answers a duration question.
    """
    normalized = _normalize(text)
    if not normalized:
        return None
    if normalized in {"пропустить", "skip"}:
        return DEFAULT_DURATION_MINUTES
    for duration_pass in _DURATION_PASSES:
        found = duration_pass(normalized)
        if found is not None:
            return found
    if bare_hours:
        return _hours_minutes_duration(normalized, bare=True) or _hours_duration(normalized, bare=True)
    return None


def parse_fragment(text: str | None, tz: tzinfo, *, with_title: bool = False) -> ParsedFragment:
    return ParsedFragment(
        date=parse_date(text, tz),
        time=parse_time(text),
        duration_minutes=parse_duration_minutes(text),
        title=extract_title(text or "") if with_title else None,
    )


def at_zone(day: date, at: time, tz: tzinfo) -> datetime:
    return datetime.combine(day, at.replace(second=0, microsecond=0), tzinfo=tz)


def infer_meeting_start(text: str | None, tz: tzinfo) -> datetime:
    day = parse_date(text, tz) or now_in(tz).date()
    at = parse_time(text) or DEFAULT_MEETING_TIME
    return at_zone(day, at, tz)


def infer_task_due(text: str | None, tz: tzinfo) -> datetime:
    normalized = _normalize(text)
    day = parse_date(normalized, tz) or now_in(tz).date()
    at = TASK_DUE_TODAY if re.search(r"\b(?:сегодня|today)\b", normalized) else TASK_DUE_OTHER
    return at_zone(day, at, tz)
