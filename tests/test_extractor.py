import json
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import httpx
import pytest

from chatplanner.llm import extractor as extractor_mod
from chatplanner.llm.extractor import OllamaStructuredExtractor


TZ = ZoneInfo("Europe/Moscow")


@pytest.fixture(autouse=True)
def frozen_now(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(extractor_mod, "now_in", lambda tz: datetime(2026, 3, 10, 9, 0, tzinfo=tz))


def _client(payload=None, *, status_code: int = 200, raw: str | None = None, seen: list | None = None) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if raw is not None:
            return httpx.Response(status_code, text=raw)
        return httpx.Response(status_code, json={"response": json.dumps(payload, ensure_ascii=False)})

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_extracts_meeting_fields() -> None:
    seen: list[httpx.Request] = []
    client = _client(
        {"intent": "create_meeting", "title": "Планёрка", "date": "2026-03-12", "time": "09:30", "duration_minutes": 45},
        seen=seen,
    )
    extractor = OllamaStructuredExtractor("http://ollama:11434/", "qwen2.5:3b", client=client)

    result = extractor.extract("планерка в четверг в 9:30 на 45 минут", TZ)

    assert result.status == "ok"
    assert result.is_create_meeting
    assert result.event.title == "Планёрка"
    assert result.event.date == date(2026, 3, 12)
    assert result.event.time == time(9, 30)
    assert result.event.duration_minutes == 45

    request = seen[0]
    assert str(request.url) == "http://ollama:11434/api/generate"
    body = json.loads(request.content)
    assert body["model"] == "qwen2.5:3b"
    assert body["stream"] is False
    assert body["format"] == "json"
    assert body["options"] == {"temperature": 0}
    assert "today=2026-03-10" in body["prompt"]


def test_null_like_values_are_dropped() -> None:
    client = _client({"intent": "CREATE_MEETING", "title": "null", "date": "null", "time": None, "duration_minutes": "null"})

    result = OllamaStructuredExtractor("http://ollama", "m", client=client).extract("встреча", TZ)

    assert result.status == "ok"
    assert result.event.intent == "create_meeting"
    assert result.event.title is None
    assert result.event.date is None
    assert result.event.time is None
    assert result.event.duration_minutes is None


def test_alternate_formats_and_bad_duration() -> None:
    client = _client({"intent": "create_meeting", "date": "12.03.2026", "time": "09:30:00", "duration_minutes": -5})

    event = OllamaStructuredExtractor("http://ollama", "m", client=client).extract("встреча", TZ).event

    assert event.date == date(2026, 3, 12)
    assert event.time == time(9, 30)
    assert event.duration_minutes is None


def test_http_error_is_reported_not_raised() -> None:
    client = _client(raw="boom", status_code=500)

    result = OllamaStructuredExtractor("http://ollama", "m", client=client).extract("встреча", TZ)

    assert result.status == "error"
    assert not result.is_create_meeting


def test_invalid_json_and_schema_violations() -> None:
    broken = httpx.Client(
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"response": "not json"}))
    )
    assert OllamaStructuredExtractor("http://ollama", "m", client=broken).extract("x", TZ).status == "error"

    empty = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"response": ""})))
    assert OllamaStructuredExtractor("http://ollama", "m", client=empty).extract("x", TZ).status == "error"

    wrong_intent = _client({"intent": "dance"})
    assert OllamaStructuredExtractor("http://ollama", "m", client=wrong_intent).extract("x", TZ).status == "error"


def test_disabled_extractor_never_calls_out() -> None:
    seen: list[httpx.Request] = []
    extractor = OllamaStructuredExtractor("", "m", client=_client({"intent": "other"}, seen=seen))

    assert extractor.extract("встреча завтра", TZ).status == "absent"
    assert seen == []


def test_overflowing_duration_is_dropped() -> None:
    for raw in ('{"intent":"create_meeting","duration_minutes":"1e400"}', '{"intent":"create_meeting","duration_minutes":1e400}'):
        client = httpx.Client(transport=httpx.MockTransport(lambda request, raw=raw: httpx.Response(200, json={"response": raw})))

        result = OllamaStructuredExtractor("http://ollama", "m", client=client).extract("встреча", TZ)

        assert result.status == "ok"
        assert result.event.duration_minutes is None


def test_unexpected_transport_failure_is_reported_not_raised() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("socket exploded")

    client = httpx.Client(transport=httpx.MockTransport(handler))

    result = OllamaStructuredExtractor("http://ollama", "m", client=client).extract("встреча", TZ)

    assert result.status == "error"
    assert "socket exploded" in result.error
