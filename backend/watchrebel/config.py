"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """All configuration loaded from environment / .env file."""

    # ── Application ──────────────────────────────────────────────
    app_name: str = "watchRebel"
    app_url: str = "http://localhost:3000"
    debug: bool = False
    log_level: str = "info"

    # ── Database ─────────────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./rebel.db"

    # ── TMDB ─────────────────────────────────────────────────────
    tmdb_api_key: Optional[str] = None
    tmdb_base_url: str = "https://api.themoviedb.org/3"
    tmdb_language: str = "ru-RU"
    tmdb_min_request_interval_ms: int = 25

    # ── Telegram ─────────────────────────────────────────────────
    telegram_bot_token: Optional[str] = None
    telegram_admin_id: Optional[str] = None

    # ── Wall / Feed ──────────────────────────────────────────────
    wall_edit_window_minutes: int = 60
    feed_limit: int = 10

    # ── Server ───────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 3001

    @property
    def has_tmdb(self) -> bool:
        return bool(self.tmdb_api_key)

    @property
    def has_telegram(self) -> bool:
        return bool(self.telegram_bot_token)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
