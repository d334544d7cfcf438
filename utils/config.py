"""
Configuration
=============

Settings for the pulse monitor, read from the environment (a local .env file
is loaded first when present).
"""

import os
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from monitor.errors import ConfigError

DEFAULT_TARGET_URL = "https://whop.com/pulse/"
DEFAULT_USER_AGENT = ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
                      "AppleWebKit/537.36 (KHTML, like Gecko) "
                      "Chrome/120.0.0.0 Safari/537.36")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _get(env: Mapping[str, str], name: str) -> Optional[str]:
    val = env.get(name)
    if val is None or not val.strip():
        return None
    return val.strip()


def _seconds(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _get(env, name)
    if raw is None:
        return default
    try:
        val = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number of seconds, got {raw!r}")
    if val < 0:
        raise ConfigError(f"{name} must not be negative")
    return val


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = _get(env, name)
    if raw is None:
        return default
    try:
        val = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if val < minimum:
        raise ConfigError(f"{name} must be >= {minimum}")
    return val


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = _get(env, name)
    if raw is None:
        return default
    if raw.lower() in _TRUE:
        return True
    if raw.lower() in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Runtime configuration. Durations are in seconds."""

    supabase_url: str
    supabase_key: str
    target_url: str = DEFAULT_TARGET_URL
    user_agent: str = DEFAULT_USER_AGENT
    monitoring_seconds: float = 45.0
    check_interval_seconds: float = 5.0
    settle_seconds: float = 10.0
    cycle_delay_seconds: float = 60.0
    max_retries: int = 3
    retry_delay_seconds: float = 5.0
    page_timeout_seconds: float = 30.0
    seen_limit: int = 500
    max_items: int = 20
    block_resources: bool = True
    respect_robots: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def page_timeout_ms(self) -> float:
        return self.page_timeout_seconds * 1000

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, load_dotenv_file: bool = True) -> "Settings":
        if env is None:
            if load_dotenv_file:
                load_dotenv()
            env = os.environ

        url = _get(env, "SUPABASE_URL")
        key = _get(env, "SUPABASE_KEY")
        if not url or not key:
            raise ConfigError("SUPABASE_URL and SUPABASE_KEY must be set")

        interval = _seconds(env, "CHECK_INTERVAL_SECONDS", 5.0)
        if interval <= 0:
            raise ConfigError("CHECK_INTERVAL_SECONDS must be positive")

        return cls(
            supabase_url=url.rstrip("/"),
            supabase_key=key,
            target_url=_get(env, "TARGET_URL") or DEFAULT_TARGET_URL,
            user_agent=_get(env, "USER_AGENT") or DEFAULT_USER_AGENT,
            monitoring_seconds=_seconds(env, "MONITORING_SECONDS", 45.0),
            check_interval_seconds=interval,
            settle_seconds=_seconds(env, "SETTLE_SECONDS", 10.0),
            cycle_delay_seconds=_seconds(env, "CYCLE_DELAY_SECONDS", 60.0),
            max_retries=_int(env, "MAX_RETRIES", 3, minimum=1),
            retry_delay_seconds=_seconds(env, "RETRY_DELAY_SECONDS", 5.0),
            page_timeout_seconds=_seconds(env, "PAGE_TIMEOUT_SECONDS", 30.0),
            seen_limit=_int(env, "SEEN_LIMIT", 500, minimum=1),
            max_items=_int(env, "MAX_ITEMS", 20, minimum=1),
            block_resources=_flag(env, "BLOCK_RESOURCES", True),
            respect_robots=_flag(env, "RESPECT_ROBOTS", False),
            log_level=(_get(env, "LOG_LEVEL") or "INFO").upper(),
            log_file=_get(env, "LOG_FILE"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Settings for the startup banner; the storage key is masked."""
        data = asdict(self)
        data["supabase_key"] = "***"
        return data
