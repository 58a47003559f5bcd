"""SQLite-backed mailbox store."""
from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .base import (
    Clock,
    ErrorKind,
    Message,
    MessageSummary,
    StoreError,
    utc_now,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id VARCHAR(128) PRIMARY KEY,
    username VARCHAR(128) NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS username_idx ON users (username);

CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sender VARCHAR(128) NOT NULL REFERENCES users (id),
    recipient VARCHAR(128) NOT NULL REFERENCES users (id),
    payload TEXT NOT NULL,
    sent_at TEXT NOT NULL,
    read_at TEXT DEFAULT NULL
);
CREATE INDEX IF NOT EXISTS recipient_idx ON messages (recipient);
"""


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value)


class SQLiteMailboxStore:
    """Single shared connection, serialized by a lock.

    The connection is opened with ``check_same_thread=False`` so request
    handlers running in the server's thread pool can all use it.
    """

    def __init__(self, path: str, *, clock: Optional[Clock] = None) -> None:
        self.path = path
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock or utc_now
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False)
            if path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as e:
            raise StoreError.failure(f"cannot open database {path}: {e}") from e

    # --------- lifecycle ----------
    def bootstrap(self) -> None:
        """Create tables and indexes (idempotent)."""
        with self._lock:
            try:
                self._conn.executescript(SCHEMA)
                self._conn.commit()
            except sqlite3.Error as e:
                raise StoreError.failure(f"cannot bootstrap schema: {e}") from e
        logger.info("Mailbox schema ready at %s", self.path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # --------- core API ----------
    def find_recipient_id(self, username: str) -> str:
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT id FROM users WHERE username = ?", (username,)
                ).fetchone()
            except sqlite3.Error as e:
                raise StoreError.failure(str(e)) from e
        if row is None:
            raise StoreError.not_found(f"no user named {username!r}")
        return row[0]

    def list_unread_message_summaries(self, user_id: str) -> List[MessageSummary]:
        # payload is deliberately left out of the projection
        with self._lock:
            try:
                rows = self._conn.execute(
                    """
                    SELECT m.id, m.sender, u.username, m.sent_at
                    FROM messages m
                    LEFT JOIN users u ON m.sender = u.id
                    WHERE m.recipient = ? AND m.read_at IS NULL
                    ORDER BY m.id ASC
                    """,
                    (user_id,),
                ).fetchall()
            except sqlite3.Error as e:
                raise StoreError.failure(str(e)) from e
        return [
            MessageSummary(id=mid, sender=sender, sender_name=name, sent_at=_parse_ts(sent_at))
            for mid, sender, name, sent_at in rows
        ]

    def get_message(self, message_id: int) -> Message:
        with self._lock:
            try:
                row = self._conn.execute(
                    """
                    SELECT m.id, m.sender, u.username, m.payload, m.sent_at
                    FROM messages m
                    LEFT JOIN users u ON m.sender = u.id
                    WHERE m.id = ?
                    """,
                    (message_id,),
                ).fetchone()
            except sqlite3.Error as e:
                raise StoreError.failure(str(e)) from e
        if row is None:
            raise StoreError.not_found(f"no message with id {message_id}")
        mid, sender, name, payload, sent_at = row
        return Message(
            id=mid,
            sender=sender,
            sender_name=name,
            payload=payload,
            sent_at=_parse_ts(sent_at),
        )

    def save_message(self, recipient_id: str, sender: str, payload: str) -> None:
        sent_at = self._clock().isoformat()
        with self._lock:
            try:
                with self._conn:
                    self._conn.execute(
                        """
                        INSERT INTO messages (sender, recipient, payload, sent_at)
                        VALUES (?, ?, ?, ?)
                        """,
                        (sender, recipient_id, payload, sent_at),
                    )
            except sqlite3.IntegrityError as e:
                # only the foreign keys can fail here
                raise StoreError.not_found(
                    f"sender {sender!r} or recipient {recipient_id!r} is not registered"
                ) from e
            except sqlite3.Error as e:
                raise StoreError.failure(str(e)) from e

    def register_user(self, user_id: str, username: str) -> None:
        with self._lock:
            try:
                owner = self._conn.execute(
                    "SELECT id FROM users WHERE username = ?", (username,)
                ).fetchone()
                if owner is not None:
                    if owner[0] == user_id:
                        return
                    raise StoreError(ErrorKind.CONFLICT, f"username {username!r} is taken")
                row = self._conn.execute(
                    "SELECT username FROM users WHERE id = ?", (user_id,)
                ).fetchone()
                if row is not None:
                    raise StoreError(
                        ErrorKind.ALREADY_REGISTERED,
                        f"user {user_id!r} is already registered as {row[0]!r}",
                    )
                with self._conn:
                    self._conn.execute(
                        "INSERT INTO users (id, username) VALUES (?, ?)",
                        (user_id, username),
                    )
            except sqlite3.IntegrityError as e:
                # both keys were checked above; only a concurrent writer gets here
                raise StoreError(ErrorKind.CONFLICT, f"username {username!r} is taken") from e
            except sqlite3.Error as e:
                raise StoreError.failure(str(e)) from e
