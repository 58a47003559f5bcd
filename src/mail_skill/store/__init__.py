"""Mailbox persistence: the store contract plus in-memory and SQLite backends."""
from __future__ import annotations

from typing import Any, Dict, Optional, Union

from .base import (
    Clock,
    ErrorKind,
    MailboxStore,
    Message,
    MessageSummary,
    StoreError,
)
from .memory import InMemoryMailboxStore
from .sqlite import SQLiteMailboxStore

__all__ = [
    "Clock",
    "ErrorKind",
    "InMemoryMailboxStore",
    "MailboxStore",
    "Message",
    "MessageSummary",
    "SQLiteMailboxStore",
    "StoreError",
    "create_store",
]

AnyStore = Union[InMemoryMailboxStore, SQLiteMailboxStore]


def create_store(cfg: Dict[str, Any], *, clock: Optional[Clock] = None) -> AnyStore:
    """Build (but do not bootstrap) the store described by ``cfg["store"]``."""
    store_cfg = cfg.get("store", {}) or {}
    backend = str(store_cfg.get("backend", "sqlite")).lower()
    if backend == "memory":
        return InMemoryMailboxStore(clock=clock)
    if backend == "sqlite":
        return SQLiteMailboxStore(str(store_cfg.get("path") or "data/mailbox.db"), clock=clock)
    raise ValueError(f"Unknown store backend: {backend!r} (expected 'sqlite' or 'memory')")
