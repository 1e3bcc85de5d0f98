from datetime import date, time
from pathlib import Path

import pytest
from sqlalchemy import update

from chatplanner.core.wizard import (
    EventCreationSession,
    EventStep,
    NoteEditMode,
    NoteEditSession,
    NoteEditStep,
)
from chatplanner.db.models import Base, EventCreationSessionRow
from chatplanner.db.repositories.sessions_repo import (
    InMemorySessionStore,
    SqlEventSessionStore,
    SqlNoteEditSessionStore,
)
from chatplanner.db.session import get_session, make_engine, make_session_factory


@pytest.fixture
def factory(tmp_path: Path):
    engine = make_engine(f"sqlite+pysqlite:///{(tmp_path / 'sessions.db').as_posix()}")
    Base.metadata.create_all(engine)
    yield make_session_factory(engine)
    engine.dispose()


def test_in_memory_store_hands_out_copies() -> None:
    store: InMemorySessionStore[EventCreationSession] = InMemorySessionStore()
    session = EventCreationSession(user_id="1")
    store.save("1", session)

    loaded = store.load("1")
    loaded.meeting_title = "changed"

    assert store.load("1").meeting_title is None
    store.delete("1")
    store.delete("1")
    assert store.load("1") is None


def test_event_session_round_trip(factory) -> None:
    store = SqlEventSessionStore(factory)
    state = EventCreationSession(
        user_id="1",
        step=EventStep.WAIT_DURATION,
        meeting_date=date(2026, 3, 11),
        meeting_time=time(15, 0),
        meeting_title="Планёрка",
    )

    store.save("1", state)
    state.step = EventStep.WAIT_TITLE
    store.save("1", state)
    loaded = store.load("1")

    assert loaded.step is EventStep.WAIT_TITLE
    assert loaded.meeting_date == date(2026, 3, 11)
    assert loaded.meeting_time == time(15, 0)
    assert loaded.meeting_title == "Планёрка"
    assert loaded.duration_minutes is None
    assert loaded.updated_at is not None and loaded.updated_at.tzinfo is not None

    store.delete("1")
    assert store.load("1") is None


def test_note_session_round_trip(factory) -> None:
    store = SqlNoteEditSessionStore(factory)
    store.save(
        "9",
        NoteEditSession(
            user_id="9",
            step=NoteEditStep.WAIT_NEW_TEXT,
            mode=NoteEditMode.DELETE,
            target_note_id="abc",
            target_note_number=4,
        ),
    )

    loaded = store.load("9")

    assert loaded.step is NoteEditStep.WAIT_NEW_TEXT
    assert loaded.mode is NoteEditMode.DELETE
    assert loaded.target_note_id == "abc"
    assert loaded.target_note_number == 4
    assert store.load("other") is None


def test_unknown_stored_step_restarts_the_flow(factory) -> None:
    store = SqlEventSessionStore(factory)
    store.save("1", EventCreationSession(user_id="1", step=EventStep.WAIT_TIME, meeting_date=date(2026, 3, 11)))
    with get_session(factory) as session:
        session.execute(update(EventCreationSessionRow).values(step="WAIT_MOOD"))

    loaded = store.load("1")

    assert loaded.step is EventStep.WAIT_DATE
    assert loaded.meeting_date == date(2026, 3, 11)
