from pathlib import Path

from sqlalchemy import create_engine, inspect

from chatplanner.main import run_migrations


def test_upgrade_creates_every_table(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "app.db"
    url = f"sqlite+pysqlite:///{db_path.as_posix()}"

    run_migrations(url)

    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        tables = set(inspector.get_table_names())
        assert {"notes", "meetings", "tasks", "event_creation_sessions", "note_edit_sessions"} <= tables
        assert "alembic_version" in tables
        note_columns = {column["name"] for column in inspector.get_columns("notes")}
        assert {"id", "user_id", "title", "content", "archived", "updated_at"} <= note_columns
    finally:
        engine.dispose()

    # running again is a no-op
    run_migrations(url)
