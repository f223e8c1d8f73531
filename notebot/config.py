"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Notebot configuration. All values come from environment variables."""

    # Telegram
    telegram_bot_token: str = Field(default="")
    telegram_webhook_secret: str = Field(default="")

    # Provider webhooks
    github_webhook_secret: str = Field(default="")
    slack_signing_secret: str = Field(default="")

    # Shared secret for the manual /api/process-notes trigger
    webhook_secret: str = Field(default="")
    webhook_port: int = Field(default=8443)

    # Anthropic
    anthropic_api_key: str = Field(default="")
    claude_model: str = Field(default="claude-sonnet-4-5-20250929")

    # Database (cron jobs + suspended workflow runs)
    database_path: Path = Field(default=Path("data/notebot.db"))

    # Markdown vault
    notes_root: Path = Field(default=Path("notes"))

    # Scheduler
    scheduler_timezone: str = Field(default="UTC")
    cron_job_timeout_seconds: float | None = Field(default=None)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def resolved_notes_root(self) -> Path:
        """Return NOTES_ROOT with ``~`` expanded."""
        return self.notes_root.expanduser()


settings = Settings()
