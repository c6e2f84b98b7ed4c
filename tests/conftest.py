"""Shared fixtures for chat-sync tests."""

from __future__ import annotations

import logging
from collections.abc import Generator

import pytest

_ALL_VARS = (
    "SYNC_API_URL",
    "SYNC_PAIRING_CODE",
    "SYNC_DEVICE_TOKEN",
    "LOG_LEVEL",
    "SYNC_INTERVAL",
    "POLL_INTERVAL",
    "MAX_WAIT",
    "STABLE_THRESHOLD",
    "INITIAL_DELAY",
    "RECENT_MESSAGES",
    "CAPTURE_TIMEOUT",
    "PUBLISH_TIMEOUT",
)


@pytest.fixture()
def monkeypatch_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set the publisher environment variables to valid defaults.

    Also patches ``load_dotenv`` so that a real ``.env`` file on disk does not
    override the test values.

    Returns the dict of variables so tests can inspect or override values.
    """
    monkeypatch.setattr("chat_sync.config.load_dotenv", lambda *_a, **_kw: None)
    for key in _ALL_VARS:
        monkeypatch.delenv(key, raising=False)
    env_vars = {
        "SYNC_API_URL": "https://broker.example.com",
        "SYNC_PAIRING_CODE": "PAIR-1234",
        "SYNC_DEVICE_TOKEN": "test-device-token-12345",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove all chat-sync-related environment variables.

    Patches ``load_dotenv`` so a real ``.env`` file cannot re-inject values
    that the test explicitly removed.
    """
    monkeypatch.setattr("chat_sync.config.load_dotenv", lambda *_a, **_kw: None)
    for key in _ALL_VARS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _reset_root_logger() -> Generator[None, None, None]:
    """Reset the root logger after each test to prevent handler leaks."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.NOTSET)
