"""
Presence configuration loader.

Reads the bot's settings from the process environment (optionally seeded by a
.env file through python-dotenv at the entrypoint) and normalizes them into
immutable dataclasses.

Design rules:
- Import-safe (no side effects, does not read the environment on import)
- Only the Discord token is required; every other setting has a default
- Invalid optional values fall back to defaults with a warning
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from shared.logging.logger import get_logger

log = get_logger("shared.config.presence")


PRESENCE_STATES = ("online", "idle", "dnd", "invisible")
ACTIVITY_KINDS = ("Playing", "Streaming", "Listening", "Watching", "Competing")

DEFAULT_PRESENCE = "online"
DEFAULT_ACTIVITY_NAME = "Bitcraft Network's Server"
DEFAULT_ACTIVITY_KIND = "Watching"
DEFAULT_UPDATE_INTERVAL_MS = 30000
DEFAULT_RETRY_DELAY_MS = 5000
DEFAULT_HTTP_HOST = "0.0.0.0"
DEFAULT_HTTP_PORT = 3000
DEFAULT_ENVIRONMENT = "development"

TOKEN_ENV = "DISCORD_TOKEN"


class ConfigError(RuntimeError):
    """Raised when the runtime cannot start with the given configuration."""


class MissingTokenError(ConfigError):
    def __init__(self, env_name: str = TOKEN_ENV):
        super().__init__(f"{env_name} environment variable is required")
        self.env_name = env_name


@dataclass(frozen=True)
class ActivityConfig:
    name: str = DEFAULT_ACTIVITY_NAME
    kind: str = DEFAULT_ACTIVITY_KIND
    url: Optional[str] = None

    def snapshot(self) -> Dict[str, Any]:
        return {"name": self.name, "kind": self.kind, "url": self.url}


@dataclass(frozen=True)
class PresenceConfig:
    token: str = field(repr=False)
    presence: str = DEFAULT_PRESENCE
    activity: ActivityConfig = field(default_factory=ActivityConfig)
    update_interval_ms: int = DEFAULT_UPDATE_INTERVAL_MS
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    http_host: str = DEFAULT_HTTP_HOST
    http_port: int = DEFAULT_HTTP_PORT
    http_enabled: bool = True
    environment: str = DEFAULT_ENVIRONMENT

    def __post_init__(self):
        if not self.token or not self.token.strip():
            raise MissingTokenError()

    @property
    def update_interval(self) -> float:
        """Publish interval in seconds."""
        return self.update_interval_ms / 1000.0

    @property
    def retry_delay(self) -> float:
        """Login retry delay in seconds."""
        return self.retry_delay_ms / 1000.0

    def snapshot(self) -> Dict[str, Any]:
        """
        Return the configuration with the token redacted.
        """
        return {
            "token": "***",
            "presence": self.presence,
            "activity": self.activity.snapshot(),
            "update_interval_ms": self.update_interval_ms,
            "retry_delay_ms": self.retry_delay_ms,
            "http_host": self.http_host,
            "http_port": self.http_port,
            "http_enabled": self.http_enabled,
            "environment": self.environment,
        }


# ----------------------------------------------------------------------
# Normalizers
# ----------------------------------------------------------------------

def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    raw = str(value).strip()
    return raw or None


def _normalize_presence(value: Any) -> Optional[str]:
    raw = _clean(value)
    if raw is None:
        return DEFAULT_PRESENCE
    lowered = raw.lower()
    if lowered in PRESENCE_STATES:
        return lowered
    return None


def _normalize_activity_kind(value: Any) -> Optional[str]:
    raw = _clean(value)
    if raw is None:
        return DEFAULT_ACTIVITY_KIND
    for kind in ACTIVITY_KINDS:
        if kind.lower() == raw.lower():
            return kind
    return None


def _parse_positive_int(value: Any) -> Optional[int]:
    raw = _clean(value)
    if raw is None:
        return None
    try:
        parsed = int(raw)
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def _parse_port(value: Any) -> Optional[int]:
    raw = _clean(value)
    if raw is None:
        return None
    try:
        parsed = int(raw)
    except ValueError:
        return None
    return parsed if 0 <= parsed <= 65535 else None


def _parse_bool(value: Any, default: bool) -> bool:
    raw = _clean(value)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    return default


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def validate_presence_env(env: Optional[Mapping[str, str]] = None) -> List[str]:
    """
    Return every problem found in the environment without raising.

    An empty list means load_presence_config() will succeed without falling
    back to any default for a value that was provided.
    """
    env = os.environ if env is None else env
    problems: List[str] = []

    if _clean(env.get(TOKEN_ENV)) is None:
        problems.append(f"{TOKEN_ENV} is required")

    if _normalize_presence(env.get("BOT_PRESENCE")) is None:
        problems.append(
            f"BOT_PRESENCE must be one of {', '.join(PRESENCE_STATES)}"
        )

    if _normalize_activity_kind(env.get("BOT_ACTIVITY_TYPE")) is None:
        problems.append(
            f"BOT_ACTIVITY_TYPE must be one of {', '.join(ACTIVITY_KINDS)}"
        )

    for name in ("UPDATE_INTERVAL", "RETRY_DELAY"):
        if _clean(env.get(name)) is not None and _parse_positive_int(env.get(name)) is None:
            problems.append(f"{name} must be a positive integer (milliseconds)")

    if _clean(env.get("PORT")) is not None and _parse_port(env.get("PORT")) is None:
        problems.append("PORT must be an integer between 0 and 65535")

    return problems


def load_presence_config(env: Optional[Mapping[str, str]] = None) -> PresenceConfig:
    """
    Build a PresenceConfig from the environment.

    Raises MissingTokenError when DISCORD_TOKEN is absent or blank.
    """
    env = os.environ if env is None else env

    token = _clean(env.get(TOKEN_ENV))
    if token is None:
        raise MissingTokenError()

    presence = _normalize_presence(env.get("BOT_PRESENCE"))
    if presence is None:
        log.warning(
            f"Unknown BOT_PRESENCE {env.get('BOT_PRESENCE')!r}; "
            f"using {DEFAULT_PRESENCE!r}"
        )
        presence = DEFAULT_PRESENCE

    kind = _normalize_activity_kind(env.get("BOT_ACTIVITY_TYPE"))
    if kind is None:
        log.warning(
            f"Unknown BOT_ACTIVITY_TYPE {env.get('BOT_ACTIVITY_TYPE')!r}; "
            f"using {DEFAULT_ACTIVITY_KIND!r}"
        )
        kind = DEFAULT_ACTIVITY_KIND

    activity = ActivityConfig(
        name=_clean(env.get("BOT_ACTIVITY_NAME")) or DEFAULT_ACTIVITY_NAME,
        kind=kind,
        url=_clean(env.get("BOT_ACTIVITY_URL")),
    )

    interval = _parse_positive_int(env.get("UPDATE_INTERVAL"))
    if interval is None:
        if _clean(env.get("UPDATE_INTERVAL")) is not None:
            log.warning("Invalid UPDATE_INTERVAL; using default")
        interval = DEFAULT_UPDATE_INTERVAL_MS

    retry_delay = _parse_positive_int(env.get("RETRY_DELAY"))
    if retry_delay is None:
        if _clean(env.get("RETRY_DELAY")) is not None:
            log.warning("Invalid RETRY_DELAY; using default")
        retry_delay = DEFAULT_RETRY_DELAY_MS

    port = _parse_port(env.get("PORT"))
    if port is None:
        if _clean(env.get("PORT")) is not None:
            log.warning("Invalid PORT; using default")
        port = DEFAULT_HTTP_PORT

    environment = (
        _clean(env.get("APP_ENV"))
        or _clean(env.get("NODE_ENV"))
        or DEFAULT_ENVIRONMENT
    )

    return PresenceConfig(
        token=token,
        presence=presence,
        activity=activity,
        update_interval_ms=interval,
        retry_delay_ms=retry_delay,
        http_host=_clean(env.get("HTTP_HOST")) or DEFAULT_HTTP_HOST,
        http_port=port,
        http_enabled=_parse_bool(env.get("HTTP_ENABLED"), True),
        environment=environment,
    )
