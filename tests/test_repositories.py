from datetime import datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from chatplanner.db.models import Base
from chatplanner.db.repositories import calendar_repo, notes_repo
from chatplanner.db.repositories.notes_repo import SqlNoteDirectory
from chatplanner.db.session import get_session, make_engine, make_session_factory


TZ = ZoneInfo("Europe/Moscow")


@pytest.fixture
def factory(tmp_path: Path):
    engine = make_engine(f"sqlite+pysqlite:///{(tmp_path / 'repo.db').as_posix()}")
    Base.metadata.create_all(engine)
    yield make_session_factory(engine)
    engine.dispose()


def test_note_tokens_resolve_by_number_and_id(factory) -> None:
    with get_session(factory) as session:
        older = notes_repo.create_note(session, user_id="u", content="старая")
        newer = notes_repo.create_note(session, user_id="u", content="новая")
        newer.updated_at = older.updated_at + timedelta(seconds=1)
        older_id, newer_id = older.id, newer.id

    with get_session(factory) as session:
        note, number = notes_repo.resolve_note_token(session, "u", "1")
        assert (note.id, number) == (newer_id, 1)
        note, number = notes_repo.resolve_note_token(session, "u", "№2")
        assert (note.id, number) == (older_id, 2)
        note, number = notes_repo.resolve_note_token(session, "u", older_id)
        assert (note.id, number) == (older_id, 2)
        assert notes_repo.resolve_note_token(session, "u", "3") is None
        assert notes_repo.resolve_note_token(session, "u", "0") is None
        assert notes_repo.resolve_note_token(session, "u", "abc") is None
        assert notes_repo.resolve_note_token(session, "other", "1") is None


def test_archived_notes_disappear(factory) -> None:
    with get_session(factory) as session:
        note = notes_repo.create_note(session, user_id="u", content="x" * 100)
        assert note.title == "x" * 70
        notes_repo.archive_note(session, note)
        note_id = note.id

    directory = SqlNoteDirectory(factory)
    assert directory.list_recent_notes("u") == []
    ref = directory.get_note("u", note_id)
    assert ref is not None and ref.archived
    with get_session(factory) as session:
        assert notes_repo.resolve_note_token(session, "u", note_id) is None


def test_update_note_moves_it_to_the_top(factory) -> None:
    with get_session(factory) as session:
        first = notes_repo.create_note(session, user_id="u", content="первая")
        notes_repo.create_note(session, user_id="u", content="вторая")
        notes_repo.update_note(session, first, content="первая, исправлено")

    titles = [ref.title for ref in SqlNoteDirectory(factory).list_recent_notes("u")]
    assert titles == ["первая, исправлено", "вторая"]


def test_list_limit(factory) -> None:
    with get_session(factory) as session:
        for index in range(5):
            notes_repo.create_note(session, user_id="u", content=f"n{index}")

    assert len(SqlNoteDirectory(factory).list_recent_notes("u", limit=3)) == 3


def test_meetings_and_tasks_window_is_half_open(factory) -> None:
    start = datetime(2026, 3, 11, 0, 0, tzinfo=TZ)
    end = start + timedelta(days=1)
    with get_session(factory) as session:
        calendar_repo.create_meeting(
            session, user_id="u", title="в окне", starts_at=start, ends_at=start + timedelta(hours=1)
        )
        calendar_repo.create_meeting(
            session, user_id="u", title="на границе", starts_at=end, ends_at=end + timedelta(hours=1)
        )
        calendar_repo.create_task(session, user_id="u", title="задача", due_at=start + timedelta(hours=12))
        calendar_repo.create_task(session, user_id="u", title="без срока", due_at=None)

    with get_session(factory) as session:
        meetings = calendar_repo.list_meetings_between(session, "u", start, end)
        tasks = calendar_repo.list_tasks_due_between(session, "u", start, end)
        assert [m.title for m in meetings] == ["в окне"]
        assert calendar_repo.from_db(meetings[0].starts_at) == start
        assert [t.title for t in tasks] == ["задача"]
        assert tasks[0].status == "OPEN"


def test_utc_helpers() -> None:
    naive = datetime(2026, 3, 11, 7, 0)
    assert calendar_repo.to_utc(naive) == datetime(2026, 3, 11, 7, 0, tzinfo=timezone.utc)
    assert calendar_repo.to_utc(datetime(2026, 3, 11, 10, 0, tzinfo=TZ)).hour == 7
    assert calendar_repo.from_db(None) is None
    assert calendar_repo.from_db(naive).tzinfo is timezone.utc
