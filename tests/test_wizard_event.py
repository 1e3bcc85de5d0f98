from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from chatplanner.core import temporal
from chatplanner.core.actions import CreateMeeting
from chatplanner.core.wizard import (
    EVENT_BLANK_INPUT,
    EVENT_CANCELLED,
    EVENT_PROMPTS,
    EventCreationSession,
    EventCreationWizard,
    EventStep,
    is_cancel_request,
    is_event_trigger,
    next_missing_step,
)
from chatplanner.db.repositories.sessions_repo import InMemorySessionStore
from chatplanner.llm.types import ExtractedEvent, ExtractionResult


TZ = ZoneInfo("Europe/Moscow")
USER = "42"


@pytest.fixture(autouse=True)
def frozen_now(monkeypatch: pytest.MonkeyPatch) -> datetime:
    now = datetime(2026, 3, 10, 9, 0, tzinfo=TZ)
    monkeypatch.setattr(temporal, "now_in", lambda tz: now.astimezone(tz))
    return now


@pytest.fixture
def store() -> InMemorySessionStore[EventCreationSession]:
    return InMemorySessionStore()


@pytest.fixture
def wizard(store: InMemorySessionStore[EventCreationSession]) -> EventCreationWizard:
    return EventCreationWizard(store)


def _step(wizard: EventCreationWizard, text: str):
    session = wizard.active(USER)
    assert session is not None
    return wizard.step(session, text, TZ)


def test_triggers_and_cancel_words() -> None:
    assert is_event_trigger("Создай событие")
    assert is_event_trigger("добавь встречу завтра")
    assert is_event_trigger("запланируй встречу с Олегом")
    assert not is_event_trigger("Созвон завтра")
    assert is_cancel_request("❌ Отмена")
    assert is_cancel_request("/cancel")
    assert is_cancel_request("отменить всё")
    assert not is_cancel_request("завтра")


def test_full_dialog_asks_for_each_slot(wizard: EventCreationWizard, store: InMemorySessionStore) -> None:
    first = wizard.start(USER, "создай событие", TZ)
    assert first.text == EVENT_PROMPTS[EventStep.WAIT_DATE]
    assert store.load(USER).step is EventStep.WAIT_DATE

    assert _step(wizard, "завтра").text == EVENT_PROMPTS[EventStep.WAIT_TIME]
    assert _step(wizard, "в 15:00").text == EVENT_PROMPTS[EventStep.WAIT_TITLE]
    assert _step(wizard, "Планёрка").text == EVENT_PROMPTS[EventStep.WAIT_DURATION]

    done = _step(wizard, "30 минут")

    assert done.finished
    assert done.text == "✅ Событие создано: Планёрка\n🕒 2026-03-11 15:00"
    assert done.action == CreateMeeting(
        title="Планёрка",
        starts_at=datetime(2026, 3, 11, 15, 0, tzinfo=TZ),
        ends_at=datetime(2026, 3, 11, 15, 30, tzinfo=TZ),
    )
    assert store.load(USER) is None


def test_trigger_with_every_slot_commits_at_once(wizard: EventCreationWizard, store: InMemorySessionStore) -> None:
    reply = wizard.start(USER, "создай встречу завтра в 15:00 Планёрка на 30 минут", TZ)

    assert reply.finished
    assert isinstance(reply.action, CreateMeeting)
    assert reply.action.title == "Планёрка"
    assert reply.action.starts_at == datetime(2026, 3, 11, 15, 0, tzinfo=TZ)
    assert reply.action.ends_at == datetime(2026, 3, 11, 15, 30, tzinfo=TZ)
    assert store.load(USER) is None


def test_unparseable_answer_repeats_the_prompt(wizard: EventCreationWizard, store: InMemorySessionStore) -> None:
    wizard.start(USER, "создай событие", TZ)

    reply = _step(wizard, "непонятно")

    assert not reply.finished
    assert reply.text == EVENT_PROMPTS[EventStep.WAIT_DATE]
    assert store.load(USER).step is EventStep.WAIT_DATE


def test_filled_slots_are_never_overwritten(wizard: EventCreationWizard, store: InMemorySessionStore) -> None:
    wizard.start(USER, "создай событие завтра", TZ)
    assert store.load(USER).step is EventStep.WAIT_TIME

    _step(wizard, "послезавтра в 9:00")

    session = store.load(USER)
    assert session.meeting_date == date(2026, 3, 11)
    assert session.meeting_time == time(9, 0)


def test_blank_answer_keeps_the_session(wizard: EventCreationWizard, store: InMemorySessionStore) -> None:
    wizard.start(USER, "создай событие завтра", TZ)

    reply = _step(wizard, "   ")

    assert reply.text == EVENT_BLANK_INPUT
    assert not reply.finished
    assert store.load(USER).step is EventStep.WAIT_TIME


def test_cancel_drops_the_session(wizard: EventCreationWizard, store: InMemorySessionStore) -> None:
    wizard.start(USER, "создай событие", TZ)

    reply = _step(wizard, "❌ Отмена")

    assert reply.finished
    assert reply.text == EVENT_CANCELLED
    assert reply.action is None
    assert store.load(USER) is None


def test_skip_uses_default_duration(wizard: EventCreationWizard) -> None:
    wizard.start(USER, "создай событие завтра в 10:00 Обед", TZ)

    done = _step(wizard, "пропустить")

    assert done.finished
    assert done.action.ends_at == datetime(2026, 3, 11, 11, 0, tzinfo=TZ)


def test_extractor_prefills_slots(store: InMemorySessionStore) -> None:
    class Extractor:
        def extract(self, text, tz):
            return ExtractionResult.ok(
                ExtractedEvent(intent="create_meeting", title="Ретро", date=date(2026, 3, 13), time=time(17, 0))
            )

    wizard = EventCreationWizard(store, Extractor())

    reply = wizard.start(USER, "создай событие ретро в пятницу в пять вечера", TZ)

    assert reply.text == EVENT_PROMPTS[EventStep.WAIT_DURATION]
    session = store.load(USER)
    assert session.meeting_title == "Ретро"
    assert session.meeting_date == date(2026, 3, 13)
    assert session.meeting_time == time(17, 0)


def test_hours_answer_fills_only_the_time(wizard: EventCreationWizard, store: InMemorySessionStore) -> None:
    wizard.start(USER, "создай событие завтра", TZ)

    assert _step(wizard, "14 часов").text == EVENT_PROMPTS[EventStep.WAIT_TITLE]
    session = store.load(USER)
    assert session.meeting_time == time(14, 0)
    assert session.duration_minutes is None

    assert _step(wizard, "Планёрка").text == EVENT_PROMPTS[EventStep.WAIT_DURATION]

    done = _step(wizard, "2 часа")

    assert done.finished
    assert done.action.starts_at == datetime(2026, 3, 11, 14, 0, tzinfo=TZ)
    assert done.action.ends_at == datetime(2026, 3, 11, 16, 0, tzinfo=TZ)


def test_failing_extractor_does_not_break_the_dialog(store: InMemorySessionStore) -> None:
    class Extractor:
        def extract(self, text, tz):
            raise OverflowError("cannot convert float infinity to integer")

    wizard = EventCreationWizard(store, Extractor())

    reply = wizard.start(USER, "создай событие завтра в 10:00 Обед", TZ)

    assert reply.text == EVENT_PROMPTS[EventStep.WAIT_DURATION]
    assert _step(wizard, "на 45 минут").finished


def test_next_missing_step_order() -> None:
    session = EventCreationSession(user_id=USER)
    assert next_missing_step(session) is EventStep.WAIT_DATE
    session.meeting_date = date(2026, 3, 11)
    session.meeting_time = time(9, 0)
    session.meeting_title = "  "
    assert next_missing_step(session) is EventStep.WAIT_TITLE
    session.meeting_title = "Обед"
    session.duration_minutes = 30
    assert next_missing_step(session) is None
