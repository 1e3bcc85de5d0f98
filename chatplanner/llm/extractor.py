from __future__ import annotations

import json
import os
from datetime import date, datetime, time, tzinfo
from functools import lru_cache
from typing import Any, Optional

import httpx
import jsonschema
from jsonschema import ValidationError
from loguru import logger

from chatplanner.core.temporal import now_in
from chatplanner.llm.types import OTHER, ExtractedEvent, ExtractionResult


EXTRACTION_PROMPT = """Извлеки структуру календарного запроса.
Верни строго JSON, без markdown и комментариев.
today={today}
Схема:
{{
  "intent":"create_meeting|create_task|other",
  "title":"string|null",
  "date":"YYYY-MM-DD|null",
  "time":"HH:mm|null",
  "duration_minutes": integer|null
}}
Правила:
- "двенадцать часов дня" => "12:00"
- title это только название события без даты, времени, длительности и без командных слов ("создай событие", "добавь встречу").
- Если нет данных, ставь null.
Текст: {text}
"""


def _schema_path() -> str:
    here = os.path.abspath(os.path.dirname(__file__))
    return os.path.join(here, "event.schema.json")


@lru_cache(maxsize=1)
def _load_schema() -> dict[str, Any]:
    with open(_schema_path(), "r", encoding="utf-8") as handle:
        return json.load(handle)


def _parse_json(text: str) -> tuple[Optional[dict[str, Any]], Optional[str]]:
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed, None
        return None, "Response JSON must be an object"
    except json.JSONDecodeError as exc:
        return None, str(exc)


def _validate_payload(payload: dict[str, Any]) -> tuple[bool, Optional[str]]:
    try:
        jsonschema.validate(instance=payload, schema=_load_schema())
    except ValidationError as exc:
        return False, exc.message
    return True, None


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == "null":
        return None
    return text


def _normalize_payload(payload: dict[str, Any]) -> dict[str, Any]:
    normalized = {key: _text_or_none(payload.get(key)) for key in ("intent", "title", "date", "time")}
    normalized["intent"] = (normalized["intent"] or OTHER).lower()
    duration = payload.get("duration_minutes")
    if isinstance(duration, str):
        duration = _text_or_none(duration)
        if duration is not None:
            try:
                duration = int(float(duration))
            except (ValueError, OverflowError):
                duration = None
    elif isinstance(duration, float):
        try:
            duration = int(duration)
        except (ValueError, OverflowError):
            duration = None
    normalized["duration_minutes"] = duration
    return normalized


def _parse_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    for fmt in ("%Y-%m-%d", "%d.%m.%Y"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def _parse_time(value: Optional[str]) -> Optional[time]:
    if value is None:
        return None
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    return None


class OllamaStructuredExtractor:
    """Asks a local Ollama model to pull meeting fields out of free text."""

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 20.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.model = model
        self.timeout = timeout
        self.enabled = bool(self.base_url and self.model)
        self._client = client or httpx.Client(timeout=timeout)

    def extract(self, text: str, tz: tzinfo) -> ExtractionResult:
        if not self.enabled or not text or not text.strip():
            return ExtractionResult.absent()
        try:
            return self._extract(text, tz)
        except Exception as exc:
            logger.exception("Ollama structured parse crashed")
            return ExtractionResult.failed(str(exc) or type(exc).__name__)

    def _extract(self, text: str, tz: tzinfo) -> ExtractionResult:
        today = now_in(tz).date().isoformat()
        body = {
            "model": self.model,
            "stream": False,
            "format": "json",
            "prompt": EXTRACTION_PROMPT.format(today=today, text=text),
            "options": {"temperature": 0},
        }
        try:
            response = self._client.post(f"{self.base_url}/api/generate", json=body, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Ollama structured parse failed: {}", exc)
            return ExtractionResult.failed(str(exc))

        raw = data.get("response") if isinstance(data, dict) else None
        if not isinstance(raw, str) or not raw.strip():
            logger.warning("Ollama returned no response text")
            return ExtractionResult.failed("empty response")

        payload, error = _parse_json(raw)
        if payload is None:
            logger.warning("Ollama returned invalid JSON: {}", error)
            return ExtractionResult.failed(error or "invalid json")

        payload = _normalize_payload(payload)
        valid, error = _validate_payload(payload)
        if not valid:
            logger.warning("Ollama payload failed validation: {}", error)
            return ExtractionResult.failed(error or "invalid payload")

        duration = payload["duration_minutes"]
        event = ExtractedEvent(
            intent=payload["intent"],
            title=payload["title"],
            date=_parse_date(payload["date"]),
            time=_parse_time(payload["time"]),
            duration_minutes=duration if duration and duration > 0 else None,
        )
        return ExtractionResult.ok(event)

    def close(self) -> None:
        self._client.close()
