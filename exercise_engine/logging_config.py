"""Logging setup shared by the API and the command-line scripts."""
from __future__ import annotations

from logging.config import dictConfig
from pathlib import Path

from pydantic import ValidationError

from exercise_engine.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_FILENAME = "exercise_engine.log"

# Third-party loggers that drown out catalog and resolver output at DEBUG.
NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "asyncio")

_configured = False


def build_logging_config(log_dir: Path, level: str) -> dict:
    """Return a ``dictConfig`` mapping writing to stderr and a rotating log file."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": LOG_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "level": level,
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": str(log_dir / LOG_FILENAME),
                "maxBytes": 5 * 1024 * 1024,
                "backupCount": 3,
                "encoding": "utf-8",
                "formatter": "standard",
                "level": level,
            },
        },
        "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS},
        "root": {
            "level": level,
            "handlers": ["console", "file"],
        },
    }


def configure_logging(level: str | None = None, force: bool = False) -> None:
    """
    Configure logging once per process.

    Args:
        level: Overrides LOG_LEVEL, e.g. ``"DEBUG"`` for a script's --verbose flag
        force: Reconfigure even if logging was already set up
    """
    global _configured
    if _configured and not force:
        return

    try:
        settings = get_settings()
        log_dir = settings.log_dir
        configured_level = settings.log_level
    except ValidationError:
        log_dir = Path("logs")
        configured_level = "INFO"
    log_dir.mkdir(parents=True, exist_ok=True)

    dictConfig(build_logging_config(log_dir, (level or configured_level).upper()))
    _configured = True
