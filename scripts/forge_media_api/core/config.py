"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv


ENV_PREFIX = "FORGE_MEDIA_"


@dataclass(frozen=True)
class Settings:
    poll_interval: float = 0.1
    poll_attempts: int = 600
    request_timeout: float = 30.0
    download_timeout: float = 60.0
    chat_model: str = "gemini-2.5-flash"
    news_dir: Path = Path("data")
    log_level: str = "INFO"


def _float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(ENV_PREFIX + key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{key} must be a number, got {raw!r}.") from exc
    if value < 0:
        raise ValueError(f"{ENV_PREFIX}{key} must not be negative.")
    return value


def _int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(ENV_PREFIX + key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{key} must be an integer, got {raw!r}.") from exc
    if value < 1:
        raise ValueError(f"{ENV_PREFIX}{key} must be at least 1.")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    return Settings(
        poll_interval=_float(env, "POLL_INTERVAL", 0.1),
        poll_attempts=_int(env, "POLL_ATTEMPTS", 600),
        request_timeout=_float(env, "REQUEST_TIMEOUT", 30.0),
        download_timeout=_float(env, "DOWNLOAD_TIMEOUT", 60.0),
        chat_model=env.get(ENV_PREFIX + "CHAT_MODEL") or "gemini-2.5-flash",
        news_dir=Path(env.get(ENV_PREFIX + "NEWS_DIR") or "data"),
        log_level=(env.get(ENV_PREFIX + "LOG_LEVEL") or "INFO").upper(),
    )


def find_dotenv_path(start: Optional[Path] = None) -> Path | None:
    current = (start or Path(__file__)).resolve()
    for parent in (current.parent, *current.parents):
        dotenv_path = parent / ".env"
        if dotenv_path.exists():
            return dotenv_path
    return None


def load_env(start: Optional[Path] = None) -> Path | None:
    """Load the nearest ``.env`` without overriding variables already set."""
    dotenv_path = find_dotenv_path(start)
    if dotenv_path is not None:
        load_dotenv(dotenv_path=dotenv_path, override=False)
        return dotenv_path
    load_dotenv(override=False)
    return None
