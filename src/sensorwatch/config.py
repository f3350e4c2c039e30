"""Client configuration loaded from the environment and .env files."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from sensorwatch.errors import ConfigError

ENV_PREFIX = "SENSORWATCH_"
DEFAULT_BASE_URL = "https://servicoldingenieria.com/back-end"
DEFAULT_STATE_PATH = "~/.sensorwatch/state.db"


@dataclass
class ClientConfig:
    """Settings for a sensorwatch client."""

    # Backend
    base_url: str = DEFAULT_BASE_URL
    # Site root for history and threshold pages; derived from base_url when unset
    site_url: str | None = None
    request_timeout: float = 30.0
    server_timezone: tzinfo = timezone.utc

    # Local state
    state_path: Path = field(default_factory=lambda: Path(DEFAULT_STATE_PATH).expanduser())

    # Monitoring
    offline_after_minutes: float = 15.0
    page_size: int = 15

    # "log" or "remote"
    presenter: str = "log"


def _env(name: str) -> str | None:
    value = os.environ.get(ENV_PREFIX + name)
    return value if value not in (None, "") else None


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from None


def _parse_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ConfigError(f"{ENV_PREFIX}{name} must be positive, got {value}")
    return value


def _parse_timezone(raw: str) -> tzinfo:
    if raw.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(raw)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"{ENV_PREFIX}SERVER_TIMEZONE is not a known timezone: {raw!r}") from None


def load_env_file() -> Path | None:
    """Load the first .env file found. Returns its path."""
    env_locations = [
        Path.cwd() / ".env",
        Path.home() / ".sensorwatch" / ".env",
    ]
    for env_path in env_locations:
        if env_path.exists():
            load_dotenv(env_path)
            return env_path
    return None


def load_config(use_env_file: bool = True) -> ClientConfig:
    """Build a ClientConfig from SENSORWATCH_* variables."""
    if use_env_file:
        load_env_file()

    config = ClientConfig()

    if raw := _env("BASE_URL"):
        config.base_url = raw.rstrip("/")
    if raw := _env("SITE_URL"):
        config.site_url = raw.rstrip("/")
    if raw := _env("STATE_PATH"):
        config.state_path = Path(raw).expanduser()
    if raw := _env("REQUEST_TIMEOUT"):
        config.request_timeout = _parse_float("REQUEST_TIMEOUT", raw)
    if raw := _env("OFFLINE_AFTER_MINUTES"):
        config.offline_after_minutes = _parse_float("OFFLINE_AFTER_MINUTES", raw)
    if raw := _env("PAGE_SIZE"):
        config.page_size = _parse_int("PAGE_SIZE", raw)
    if raw := _env("SERVER_TIMEZONE"):
        config.server_timezone = _parse_timezone(raw)
    if raw := _env("PRESENTER"):
        if raw not in ("log", "remote"):
            raise ConfigError(f"{ENV_PREFIX}PRESENTER must be 'log' or 'remote', got {raw!r}")
        config.presenter = raw

    return config
