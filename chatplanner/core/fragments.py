from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import date, time
from typing import Any, TypeVar


T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ParsedFragment:
    date: date | None = None
    time: time | None = None
    duration_minutes: int | None = None
    title: str | None = None

    def is_empty(self) -> bool:
        return all(_is_missing(getattr(self, f.name)) for f in fields(self))


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def coalesce(*values: Any) -> Any:
    for value in values:
        if not _is_missing(value):
            return value
    return None


def merge_missing(base: T, *incoming: Any) -> T:
    """Fill every unset field of ``base`` from the first fragment that has it.

    Fields already set on ``base`` are never overwritten. Works for any dataclass
    whose field names overlap with ``ParsedFragment``.
    """
    patch: dict[str, Any] = {}
    for f in fields(base):  # type: ignore[arg-type]
        current = getattr(base, f.name)
        if not _is_missing(current):
            continue
        candidates = [getattr(item, f.name, None) for item in incoming if item is not None]
        value = coalesce(*candidates)
        if value is not None:
            patch[f.name] = value
    if not patch:
        return base
    return replace(base, **patch)  # type: ignore[type-var]
