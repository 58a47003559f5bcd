"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

import pytest

# Ensure src/ is on the import path (for local imports without installing as package)
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from mail_skill.store import InMemoryMailboxStore, SQLiteMailboxStore  # noqa: E402

# 2026-10-19 09:05 UTC == 12:05 in Moscow
FIXED_NOW = datetime(2026, 10, 19, 9, 5, tzinfo=timezone.utc)


class FakeClock:
    """Clock that returns ``now`` and can be moved forward by tests."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="function")
def memory_store(clock: FakeClock) -> InMemoryMailboxStore:
    return InMemoryMailboxStore(clock=clock)


@pytest.fixture(scope="function")
def sqlite_store(tmp_path: Path, clock: FakeClock):
    store = SQLiteMailboxStore(str(tmp_path / "data" / "mailbox.db"), clock=clock)
    store.bootstrap()
    yield store
    store.close()


@pytest.fixture(scope="function", params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest):
    """Every store backend, so the contract tests run against both."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture(scope="function")
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Ensure tests run with a clean environment (no leftover vars)."""
    import os

    for var in list(os.environ):
        if var == "MAIL_SKILL_CONFIG" or var.startswith("MAIL_SKILL__"):
            monkeypatch.delenv(var, raising=False)
    yield


def make_request(
    command: str,
    *,
    user_id: str = "bob-id",
    new: bool = False,
    timezone: str = "Europe/Moscow",
    type: str = "SimpleUtterance",
) -> Dict[str, Any]:
    """Build a webhook request body the way the assistant platform sends it."""
    return {
        "meta": {"locale": "ru-RU", "timezone": timezone},
        "timezone": timezone,
        "request": {"type": type, "command": command, "original_utterance": command},
        "session": {
            "new": new,
            "message_id": 0,
            "session_id": "session-1",
            "user": {"user_id": user_id},
        },
        "version": "1.0",
    }


def encode(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")
