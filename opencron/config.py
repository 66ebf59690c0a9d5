"""Application settings loaded from environment variables."""

import os
from datetime import timedelta
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Opencron configuration. All values come from environment variables."""

    # Storage (database + logs live under this directory)
    data_dir: Path = Field(default=Path("."))

    # Log janitor
    log_retention_hours: int = Field(default=48)

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    api_key: str = Field(default="")

    # Scheduler
    scheduler_timezone: str = Field(default="")
    # Overlapping scheduled runs allowed per task before firings are skipped
    scheduler_max_instances: int = Field(default=1000)

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

    @property
    def database_path(self) -> Path:
        return self.data_dir / "opencron.db"

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / "logs"

    @property
    def log_retention(self) -> timedelta:
        return timedelta(hours=self.log_retention_hours)


settings = Settings()
