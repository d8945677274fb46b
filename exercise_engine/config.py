"""Engine settings: catalog storage, search tuning and logging."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PACKAGE_DIR = Path(__file__).resolve().parent

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Centralised engine settings derived from environment variables."""

    database_url: str = Field(
        default="sqlite:///./data/exercises.db",
        description="SQLAlchemy-compatible database URL for the exercise catalog.",
    )
    exercise_data_path: Path = Field(
        default=PACKAGE_DIR / "data" / "exercises.json",
        description="JSON dataset loaded into an empty catalog.",
    )
    presets_path: Path = Field(default=PACKAGE_DIR / "data" / "presets.yaml")

    catalog_batch_size: int = Field(default=100, ge=1)
    search_result_limit: int = Field(default=50, ge=1)
    hybrid_fuzzy_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    search_cache_max_age_seconds: float = Field(default=5.0, ge=0.0)

    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_dir: Path = Field(default=Path("logs"))
    catalog_lock_file: Path = Field(
        default=Path("data/catalog.lock"),
        description="Lock file preventing two loaders from seeding the catalog at once.",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("exercise_data_path", "presets_path", "log_dir", "catalog_lock_file")
    @classmethod
    def expand_user(cls, value: Path) -> Path:
        return value.expanduser()


@lru_cache()
def get_settings() -> Settings:
    """Settings are read once per process; tests reset with ``get_settings.cache_clear()``."""
    settings = Settings()
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    return settings
