from pathlib import Path

import pytest

from chatplanner.config import Settings
from chatplanner.db.session import build_database_url, ensure_sqlite_dir


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TIMEZONE", "Asia/Yekaterinburg")
    monkeypatch.setenv("WORKER_POOL_SIZE", "3")
    monkeypatch.setenv("OLLAMA_BASE_URL", "http://localhost:11434")

    settings = Settings(_env_file=None)

    assert settings.timezone == "Asia/Yekaterinburg"
    assert settings.worker_pool_size == 3
    assert settings.ollama_base_url == "http://localhost:11434"
    assert settings.recent_notes_limit == 20


def test_database_url_is_absolute(tmp_path: Path) -> None:
    url = build_database_url(str(tmp_path / "db" / "app.db"))

    assert url == f"sqlite+pysqlite:///{(tmp_path / 'db' / 'app.db').resolve().as_posix()}"
    ensure_sqlite_dir(url)
    assert (tmp_path / "db").is_dir()
