"""
Runtime configuration.

Values come from environment variables (optionally loaded from .env by
env.load_env) with defaults suitable for local use.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_DB_PATH = "data/jobs.db"
DEFAULT_CANDIDATE_WINDOW = 500
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
DEFAULT_DB_TIMEOUT = 15.0

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _float_env(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _log_level_env(key: str) -> str:
    level = os.getenv(key, "").strip().upper()
    return level if level in LOG_LEVELS else "INFO"


@dataclass(frozen=True)
class Settings:
    db_path: Path = Path(DEFAULT_DB_PATH)
    candidate_window: int = DEFAULT_CANDIDATE_WINDOW
    default_limit: int = DEFAULT_LIMIT
    db_timeout: float = DEFAULT_DB_TIMEOUT
    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "Settings":
        log_dir = os.getenv("JOBNEST_LOG_DIR", "").strip()
        return cls(
            db_path=Path(os.getenv("JOBNEST_DB_PATH", "").strip() or DEFAULT_DB_PATH),
            candidate_window=_int_env("JOBNEST_CANDIDATE_WINDOW", DEFAULT_CANDIDATE_WINDOW),
            default_limit=_int_env("JOBNEST_DEFAULT_LIMIT", DEFAULT_LIMIT),
            db_timeout=_float_env("JOBNEST_DB_TIMEOUT", DEFAULT_DB_TIMEOUT),
            log_level=_log_level_env("JOBNEST_LOG_LEVEL"),
            log_dir=Path(log_dir) if log_dir else None,
        )
