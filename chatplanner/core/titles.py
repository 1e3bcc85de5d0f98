from __future__ import annotations

import re
from typing import Callable, Union

from chatplanner.core.lexicon import MONTH_WORD_PATTERN, NUMBER_WORDS


TITLE_MAX_LEN = 180

_I = re.IGNORECASE
_L = r"[а-яё\-]"
_NUMBER_WORD = "(?:" + "|".join(sorted(NUMBER_WORDS, key=len, reverse=True)) + ")"
_NUMBER_PHRASE = rf"{_NUMBER_WORD}(?:[\s\-]+{_NUMBER_WORD})?"
_DAY_PART = r"(?:утра|дня|вечера|ночи)"

_CREATE_VERB = r"(?:созда(?:й|ть)|добав(?:ь|ить)|запланиру(?:й|йте|ю)|сдела(?:й|ть)|поставь)"
_BARE_VERB = r"(?:созда(?:й|ть)|добав(?:ь|ить)|запланиру(?:й|йте|ю)|сделай|поставь)"
_OBJECT = r"(?:событи\w*|встреч\w*|митинг\w*|задач\w*)"

_LEADING_FILLER_RE = re.compile(
    r"^\s*(?:ну\s*,?\s+)?(?:(?:хорошо|окей|ладно)\s*,?\s*)?(?:пожалуйста\s*,?\s*)?", _I
)
_LEADING_COMMAND_RE = re.compile(
    rf"^\s*(?:ну\s+)?(?:пожалуйста\s+)?{_CREATE_VERB}\s+(?:мне\s+)?{_OBJECT}\s*", _I
)
_INLINE_COMMAND_RE = re.compile(rf"\b{_CREATE_VERB}\s+(?:мне\s+)?{_OBJECT}\b", _I)
_LEADING_VERB_RE = re.compile(rf"^\s*{_BARE_VERB}\b\s*", _I)
_LEADING_OBJECT_RE = re.compile(r"^\s*событи[еяю]\b\s*", _I)

_WORDED_DATE_RE = re.compile(
    rf"(?<![а-яё])({_L}+(?:\s+{_L}+)?)\s+{MONTH_WORD_PATTERN}"
    rf"(?:\s+[а-яё\s\-]+?\s+г(?:ода|од)?)?(?![а-яё])",
    _I,
)
_WORDED_HOURS_RE = re.compile(
    rf"(?<![а-яё])(?:(?:в|на)\s+)?({_L}+(?:\s+{_L}+)?)\s+час(?:а|ов)?(?![а-яё])(?:\s+{_DAY_PART}\b)?",
    _I,
)
_WORDED_MINUTES_RE = re.compile(rf"(?<![а-яё])(?:на\s+)?({_L}+(?:\s+{_L}+)?)\s+минут[аы]?(?![а-яё])", _I)

Replacement = Union[str, Callable[[re.Match[str]], str]]


def _is_number_word(word: str) -> bool:
    parts = [p for p in word.lower().replace("ё", "е").split("-") if p]
    return bool(parts) and all(p in NUMBER_WORDS for p in parts)


def _drop_number_words(match: re.Match[str]) -> str:
    """Remove the number words of a temporal phrase, keep the leading plain words."""
    words = match.group(1).split()
    keep = list(words)
    while keep and not _is_number_word(keep[-1]):
        keep.pop()
    if not keep:
        # no number in the phrase: "до конца марта" is not a date
        if not any(_is_number_word(w) for w in words) and not words[0].lower().startswith("пол"):
            return match.group(0)
        return " "
    while keep and _is_number_word(keep[-1]):
        keep.pop()
    return " " + " ".join(keep) + " "


_TEMPORAL_SUBS: tuple[tuple[re.Pattern[str], Replacement], ...] = (
    (re.compile(r"\b(?:сегодня|завтра|послезавтра|today|tomorrow)\b", _I), " "),
    (re.compile(r"(?:\bна\s+)?(?<![\d.,])\b\d{1,2}[,.]\d\s*час(?:а|ов)?\b", _I), " "),
    (re.compile(rf"(?:\b(?:в|на)\s+)?\b\d{{1,2}}\s*(?:час|часа|часов|ч)\s*\d{{1,2}}\s*мин(?:ут[аы]?)?\b", _I), " "),
    (re.compile(r"(?:\b(?:на|до|к)\s+)?(?<![\d.,])\b\d{1,2}[./]\d{1,2}[./]\d{2,4}(?:\s*г(?:ода|од)?\.?)?(?!\d)", _I), " "),
    (re.compile(r"(?:\b(?:в|на|к|до)\s+)?(?<![\d.,])\b\d{1,2}[:.]\d{2}\b", _I), " "),
    (re.compile(r"(?:\b(?:на|до|к)\s+)?(?<![\d.,])\b\d{1,2}[./]\d{1,2}\b", _I), " "),
    (re.compile(rf"(?:\b(?:в|на|к)\s+)?\b\d{{1,2}}\s*(?:час|часа|часов)\b(?:\s+{_DAY_PART}\b)?", _I), " "),
    (re.compile(r"(?:\bна\s+)?\b\d{1,3}\s*мин(?:ут[аы]?)?\b", _I), " "),
    (re.compile(rf"\bв\s+\d{{1,2}}\s+{_DAY_PART}\b", _I), " "),
    (re.compile(rf"(?:\b(?:на|до|к)\s+)?\b\d{{1,2}}\s+{MONTH_WORD_PATTERN}(?:\s+\d{{4}})?(?:\s+г(?:ода|од)?\.?)?(?![а-яё])", _I), " "),
    (_WORDED_DATE_RE, _drop_number_words),
    (re.compile(r"\bдве\s+тысячи(?:\s+[а-яё\-]+)?\b", _I), " "),
    (re.compile(r"\b(?:на\s+)?(?:полчаса|полтора\s+часа)\b", _I), " "),
    (_WORDED_HOURS_RE, _drop_number_words),
    (_WORDED_MINUTES_RE, _drop_number_words),
    (re.compile(rf"\bв\s+{_NUMBER_PHRASE}\s+{_DAY_PART}\b", _I), " "),
    (re.compile(r"\b(?:длительност|продолжительност)\w*\s+[а-яё0-9\s.,\-]+$", _I), " "),
    (re.compile(r"\b(?:длительност|продолжительност)\w*\b", _I), " "),
    (re.compile(r"\b(?:19|20)\d{2}\s*(?:года|год|г\.)", _I), " "),
    (re.compile(r"\b(?:утром|днем|днём|вечером|ночью)\b", _I), " "),
)

_TAIL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(?:длительност|продолжительност)\w*\b", _I),
    re.compile(r"\b\d{1,2}[./]\d{1,2}(?:[./]\d{2,4})?\b"),
    re.compile(rf"\b\d{{1,2}}\s+{MONTH_WORD_PATTERN}\b", _I),
    re.compile(rf"\b{_NUMBER_PHRASE}\s+{MONTH_WORD_PATTERN}\b", _I),
    re.compile(r"\bв\s+\d{1,2}(?::\d{2})?\b", _I),
    re.compile(rf"\bв\s+{_NUMBER_PHRASE}\s+{_DAY_PART}\b", _I),
)

_DANGLING_TAIL_RE = re.compile(r"(?:\s+|^)(?:в|на|к|с|со|до|по|и|от|для|о|об)$", _I)
_EDGE_PUNCT = " \t,.;:-–—"


def _squash(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def cleanup_title(text: str | None, fallback: str) -> str:
    title = _squash(text or "")
    if not title:
        return fallback
    return title[:TITLE_MAX_LEN]


def strip_create_command_phrases(source: str | None) -> str:
    if not source:
        return ""
    cleaned = source.replace(" ", " ").strip()
    match = _LEADING_COMMAND_RE.match(cleaned)
    while match and match.end() > 0:
        cleaned = cleaned[match.end():].strip()
        match = _LEADING_COMMAND_RE.match(cleaned)
    cleaned = _INLINE_COMMAND_RE.sub(" ", cleaned)
    cleaned = _LEADING_VERB_RE.sub(" ", cleaned)
    return _squash(cleaned)


def cut_at_temporal_tail(source: str) -> str:
    if not source or not source.strip():
        return source or ""
    cut = len(source)
    for pattern in _TAIL_PATTERNS:
        match = pattern.search(source)
        if match is not None:
            cut = min(cut, match.start())
    if cut <= 0 or cut >= len(source):
        return source
    return source[:cut].strip()


def _trim_edges(text: str) -> str:
    previous = None
    while previous != text:
        previous = text
        text = text.strip(_EDGE_PUNCT)
        text = _DANGLING_TAIL_RE.sub("", text)
    return text


def extract_title(text: str | None, fallback: str | None = None) -> str | None:
    if not text or not text.strip():
        return fallback
    title = _LEADING_FILLER_RE.sub("", text.replace(" ", " "), count=1)
    title = strip_create_command_phrases(title)
    title = _LEADING_OBJECT_RE.sub("", title)
    for pattern, replacement in _TEMPORAL_SUBS:
        title = pattern.sub(replacement, title)
    title = _squash(title)
    title = strip_create_command_phrases(title)
    title = cut_at_temporal_tail(title)
    title = _trim_edges(_squash(title))
    if not title:
        return fallback
    return title[:TITLE_MAX_LEN]
