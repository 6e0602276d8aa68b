# src/tasklines/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Every value has a working default; nothing is required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKLINES"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


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
    log_level: str

    # ---- Local data (logs) ----
    data_dir: Path

    # ---- Vault ----
    vault_dir: Path
    default_path: str
    default_heading: str

    # ---- Sync ----
    fetch_interval_seconds: float
    max_sync_retries: int
    retry_delay_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            app_name=_env(_k("APP_NAME"), "tasklines").strip() or "tasklines",
            log_level=_env(_k("LOG_LEVEL"), "INFO").strip().upper() or "INFO",
            data_dir=_env_path(_k("DATA_DIR"), Path(".local/tasklines")),
            vault_dir=_env_path(_k("VAULT_DIR"), Path(".")),
            default_path=_env(_k("DEFAULT_PATH"), "Tasks.md").strip() or "Tasks.md",
            default_heading=_env(_k("DEFAULT_HEADING"), "# Tasks").strip() or "# Tasks",
            fetch_interval_seconds=_env_float(_k("FETCH_INTERVAL_SECONDS"), 5.0),
            max_sync_retries=_env_int(_k("MAX_SYNC_RETRIES"), 3),
            retry_delay_seconds=_env_float(_k("RETRY_DELAY_SECONDS"), 1.0),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
