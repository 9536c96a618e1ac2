"""Runtime configuration for the DPC activity dashboard."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DPC_", env_file=".env", extra="ignore")

    APP_NAME: str = "DPC Activity Dashboard API"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"
    SERVICE_HOST: str = "127.0.0.1"
    SERVICE_PORT: int = 8000

    # Storage
    STORAGE_DIR: Path = ROOT_DIR / ".storage"
    STORAGE_KEY: str = "dpc_visits"
    DATA_DIR: Path = ROOT_DIR / "data"

    # Business rules
    REQUIRED_MONTHLY_VISITS: int = 20
    RECENT_VISITS_LIMIT: int = 10

    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
