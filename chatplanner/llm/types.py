from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time, tzinfo
from typing import Literal, Optional, Protocol


CREATE_MEETING = "create_meeting"
CREATE_TASK = "create_task"
OTHER = "other"

ExtractionStatus = Literal["ok", "absent", "error"]


@dataclass(frozen=True, slots=True)
class ExtractedEvent:
    intent: str
    title: Optional[str] = None
    date: Optional[date] = None
    time: Optional[time] = None
    duration_minutes: Optional[int] = None

    @property
    def is_create_meeting(self) -> bool:
        return self.intent == CREATE_MEETING


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    status: ExtractionStatus
    event: Optional[ExtractedEvent] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, event: ExtractedEvent) -> "ExtractionResult":
        return cls(status="ok", event=event)

    @classmethod
    def absent(cls) -> "ExtractionResult":
        return cls(status="absent")

    @classmethod
    def failed(cls, error: str) -> "ExtractionResult":
        return cls(status="error", error=error)

    @property
    def is_create_meeting(self) -> bool:
        return self.status == "ok" and self.event is not None and self.event.is_create_meeting


class StructuredExtractor(Protocol):
    def extract(self, text: str, tz: tzinfo) -> ExtractionResult: ...
