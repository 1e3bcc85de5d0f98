from __future__ import annotations

import re
from typing import Iterable

from loguru import logger


_MOJIBAKE_MARKERS = ("Р°", "Рё", "Рѕ", "Рµ", "С‚", "СЊ", "СЏ", "СЂ", "РЅ", "РІ", "Р»", "Рї")
_COMMAND_JUNK_RE = re.compile(r"[^0-9a-zа-я/]+")
_SPACES_RE = re.compile(r"\s+")
_DASHES_RE = re.compile(r"[‐‑‒–—―]")
_QUOTES_RE = re.compile(r"[«»„“”‟‘’`]")
# speech engines hear "создай" as "знай сам"/"зай сам"
_MISHEARD_CREATE_RE = re.compile(r"^(?:знай|зай)\s+сам\b", re.IGNORECASE)
_EDGE_PUNCT = " \t.,;:!?-"


def _mojibake_score(text: str) -> int:
    return sum(text.count(marker) for marker in _MOJIBAKE_MARKERS)


def repair_mojibake(text: str | None) -> str:
    """Recover UTF-8 text that was decoded as cp1251 somewhere upstream."""
    if not text:
        return ""
    score = _mojibake_score(text)
    if score < 2:
        return text
    try:
        repaired = text.encode("cp1251").decode("utf-8")
    except UnicodeError:
        logger.warning("Mojibake suspected but cp1251 round-trip failed: {}", text[:80])
        return text
    if _mojibake_score(repaired) >= score:
        return text
    logger.info("Recovered cp1251 mojibake in inbound text")
    return repaired


def normalize_command_text(text: str | None) -> str:
    if not text:
        return ""
    lowered = text.lower().replace("ё", "е")
    return _SPACES_RE.sub(" ", _COMMAND_JUNK_RE.sub(" ", lowered)).strip()


def sanitize_recognized_text(text: str | None) -> str:
    """Clean a voice transcript before it enters the intent pipeline."""
    if not text:
        return ""
    cleaned = text.replace(" ", " ").replace("\r", " ").replace("\n", " ")
    cleaned = _DASHES_RE.sub("-", cleaned)
    cleaned = _QUOTES_RE.sub('"', cleaned)
    cleaned = cleaned.replace("ё", "е").replace("Ё", "Е")
    cleaned = _SPACES_RE.sub(" ", cleaned).strip()
    cleaned = _MISHEARD_CREATE_RE.sub("создай", cleaned)
    return cleaned.strip(_EDGE_PUNCT)


def matches_phrase(text: str | None, phrases: Iterable[str]) -> bool:
    """True when the message equals one of the phrases, raw or command-normalized.

    Emoji-only phrases normalize to nothing, so they only match the raw form.
    """
    if not text:
        return False
    raw = text.strip().lower()
    normalized = normalize_command_text(text)
    for phrase in phrases:
        if raw == phrase:
            return True
        candidate = normalize_command_text(phrase)
        if candidate and normalized == candidate:
            return True
    return False
