"""Configuration loading for chat-sync.

Reads settings from environment variables (with .env support via python-dotenv).
Timing knobs have defaults; the publisher credentials are only required when
the caller intends to push batches to the remote message broker.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        api_url: Base URL of the message broker (``None`` when not publishing).
        pairing_code: Pairing code of the subscriber device.
        device_token: Bearer token used to authenticate pushes.
        log_level: Logging level (default ``"INFO"``).
        sync_interval: Seconds between periodic sync ticks.
        poll_interval: Seconds between stabilization polls.
        max_wait: Hard upper bound, in seconds, of one stabilization run.
        stable_threshold: Consecutive unchanged polls that count as "done".
        initial_delay: Seconds to wait before the first stabilization poll.
        recent_messages: How many trailing messages a periodic sync pushes.
        capture_timeout: Seconds before a single capture call is abandoned.
        publish_timeout: Seconds before an HTTP push is abandoned.
    """

    api_url: str | None = None
    pairing_code: str | None = None
    device_token: str | None = None
    log_level: str = "INFO"
    sync_interval: float = 5.0
    poll_interval: float = 0.8
    max_wait: float = 15.0
    stable_threshold: int = 2
    initial_delay: float = 2.0
    recent_messages: int = 15
    capture_timeout: float = 10.0
    publish_timeout: float = 10.0

    def __repr__(self) -> str:
        token = "'***'" if self.device_token else "None"
        return (
            f"Settings(api_url={self.api_url!r}, "
            f"pairing_code={self.pairing_code!r}, "
            f"device_token={token}, "
            f"log_level={self.log_level!r}, "
            f"sync_interval={self.sync_interval!r}, "
            f"poll_interval={self.poll_interval!r}, "
            f"max_wait={self.max_wait!r}, "
            f"stable_threshold={self.stable_threshold!r})"
        )


_PUBLISHER_VARS = {
    "SYNC_API_URL": "api_url",
    "SYNC_PAIRING_CODE": "pairing_code",
    "SYNC_DEVICE_TOKEN": "device_token",
}

_FLOAT_VARS = {
    "SYNC_INTERVAL": "sync_interval",
    "POLL_INTERVAL": "poll_interval",
    "MAX_WAIT": "max_wait",
    "CAPTURE_TIMEOUT": "capture_timeout",
    "PUBLISH_TIMEOUT": "publish_timeout",
}

# Zero disables the warm-up.
_NON_NEGATIVE_FLOAT_VARS = {
    "INITIAL_DELAY": "initial_delay",
}

_INT_VARS = {
    "STABLE_THRESHOLD": "stable_threshold",
    "RECENT_MESSAGES": "recent_messages",
}


def load_settings(require_publisher: bool = False) -> Settings:
    """Load and validate settings from environment variables.

    Calls :func:`dotenv.load_dotenv` so a ``.env`` file in the working
    directory is picked up automatically.

    Args:
        require_publisher: When ``True``, ``SYNC_API_URL``,
            ``SYNC_PAIRING_CODE`` and ``SYNC_DEVICE_TOKEN`` must all be set.

    Returns:
        A validated :class:`Settings` instance.

    Raises:
        ConfigError: If a required variable is missing, empty, or
            whitespace-only (the message names **all** of them), or if a
            numeric variable is malformed or out of range.
    """
    load_dotenv()

    values: dict[str, object] = {}
    missing: list[str] = []

    for env_var, field_name in _PUBLISHER_VARS.items():
        raw = os.environ.get(env_var, "").strip()
        if raw:
            values[field_name] = raw
        elif require_publisher:
            missing.append(env_var)

    if missing:
        names = ", ".join(missing)
        raise ConfigError(f"Missing required environment variables: {names}")

    log_level = os.environ.get("LOG_LEVEL", "").strip()
    if log_level:
        values["log_level"] = log_level

    for env_var, field_name in _FLOAT_VARS.items():
        parsed = _parse_number(env_var, float)
        if parsed is not None:
            values[field_name] = parsed

    for env_var, field_name in _NON_NEGATIVE_FLOAT_VARS.items():
        parsed = _parse_number(env_var, float, allow_zero=True)
        if parsed is not None:
            values[field_name] = parsed

    for env_var, field_name in _INT_VARS.items():
        parsed = _parse_number(env_var, int)
        if parsed is not None:
            values[field_name] = parsed

    return Settings(**values)  # type: ignore[arg-type]


def _parse_number(
    env_var: str,
    kind: type[float] | type[int],
    allow_zero: bool = False,
) -> float | int | None:
    """Parse an optional numeric environment variable.

    The value must be positive, or non-negative when *allow_zero* is set.
    Returns ``None`` when the variable is unset or blank so the dataclass
    default applies.
    """
    raw = os.environ.get(env_var, "").strip()
    if not raw:
        return None
    try:
        value = kind(raw)
    except ValueError:
        raise ConfigError(f"{env_var} must be a number, got {raw!r}") from None
    if value < 0 or (value == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        raise ConfigError(f"{env_var} must be {qualifier}, got {raw!r}")
    return value
