from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timezone: str = "Europe/Moscow"
    sqlite_path: str = "data/app.db"
    log_path: str = "logs/app.log"
    ollama_base_url: str = ""
    ollama_model: str = "qwen2.5:3b"
    ollama_timeout_sec: float = 20.0
    worker_pool_size: int = 8
    recent_notes_limit: int = 20
    console_user_id: str = "console"


settings = Settings()
