# src/glance/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

- One Settings object for the whole app.
- Everything local lives under data_dir (gitignored).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "GLANCE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv() -> None:
    # Real environment wins over .env.
    load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    app_version: str
    log_level: str

    # ---- Console ----
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    log_dir: Path

    # ---- Tuning ----
    history_window_days: int
    maintenance_interval_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        _load_dotenv()

        app_name = _env(_k("APP_NAME"), "glance") or "glance"
        app_version = _env(_k("APP_VERSION"), "0.1.0")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/glance"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "glance.sqlite3")
        log_dir = _env_path(_k("LOG_DIR"), data_dir)

        history_window_days = max(1, _env_int(_k("HISTORY_WINDOW_DAYS"), 180))
        maintenance_interval_seconds = _env_float(_k("MAINTENANCE_INTERVAL_SECONDS"), 60.0)

        return Settings(
            app_name=app_name,
            app_version=app_version,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            db_path=db_path,
            log_dir=log_dir,
            history_window_days=history_window_days,
            maintenance_interval_seconds=maintenance_interval_seconds,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
