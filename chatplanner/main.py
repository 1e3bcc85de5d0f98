import asyncio
import sys
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from loguru import logger

from chatplanner.logging_setup import setup_logging


MIGRATIONS_DIR = Path(__file__).resolve().parent / "db" / "migrations"


def _load_env() -> None:
    env_path = find_dotenv(usecwd=True)
    if not env_path:
        candidate = Path(__file__).resolve().parents[1] / ".env"
        if candidate.exists():
            env_path = str(candidate)
    if env_path:
        logger.info("Loaded .env from {}", env_path)
        load_dotenv(env_path, override=True)
    else:
        logger.warning("No .env found")


def run_migrations(database_url: str | None = None) -> None:
    from alembic import command
    from alembic.config import Config

    from chatplanner.db.session import build_database_url, ensure_sqlite_dir

    config_path = Path(__file__).resolve().parents[1] / "alembic.ini"
    alembic_cfg = Config(str(config_path)) if config_path.exists() else Config()
    alembic_cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    url = database_url or build_database_url()
    ensure_sqlite_dir(url)
    alembic_cfg.set_main_option("sqlalchemy.url", url)
    command.upgrade(alembic_cfg, "head")


def build_dispatcher():
    from chatplanner.config import settings
    from chatplanner.db.repositories.notes_repo import SqlNoteDirectory
    from chatplanner.db.repositories.sessions_repo import SqlEventSessionStore, SqlNoteEditSessionStore
    from chatplanner.dispatch.dispatcher import Dispatcher
    from chatplanner.llm.extractor import OllamaStructuredExtractor

    extractor = None
    if settings.ollama_base_url:
        extractor = OllamaStructuredExtractor(
            settings.ollama_base_url,
            settings.ollama_model,
            timeout=settings.ollama_timeout_sec,
        )
        logger.info("Structured extraction via Ollama at {} ({})", settings.ollama_base_url, settings.ollama_model)
    else:
        logger.info("Structured extraction disabled, heuristics only")

    return Dispatcher(
        notes_store=SqlNoteDirectory(),
        event_store=SqlEventSessionStore(),
        note_session_store=SqlNoteEditSessionStore(),
        extractor=extractor,
        recent_notes_limit=settings.recent_notes_limit,
    )


async def _console_loop() -> None:
    from chatplanner.config import settings
    from chatplanner.dispatch.pool import InboundWorkerPool

    pool = InboundWorkerPool(build_dispatcher(), settings.worker_pool_size)
    logger.info("Console ready, user={} timezone={}", settings.console_user_id, settings.timezone)
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            break
        text = line.rstrip("\n")
        if not text.strip():
            continue
        result = await pool.submit(settings.console_user_id, text, settings.timezone)
        print(result.reply_text, flush=True)


def main() -> None:
    _load_env()
    setup_logging()
    run_migrations()
    try:
        asyncio.run(_console_loop())
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    main()
