"""In-process mailbox store (thread-safe). Used by tests and local runs."""
from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from .base import (
    Clock,
    ErrorKind,
    Message,
    MessageSummary,
    StoreError,
    utc_now,
)


@dataclass
class _Row:
    id: int
    sender: str
    recipient: str
    payload: str
    sent_at: datetime
    read_at: Optional[datetime] = None


class InMemoryMailboxStore:
    """Dict-backed implementation of :class:`~mail_skill.store.base.MailboxStore`.

    Layout:
        users      user_id -> username
        usernames  username -> user_id   (unique index)
        messages   message_id -> row     (ids are handed out in increasing order)
    """

    def __init__(self, *, clock: Optional[Clock] = None) -> None:
        self._clock = clock or utc_now
        self._users: Dict[str, str] = {}
        self._usernames: Dict[str, str] = {}
        self._messages: Dict[int, _Row] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    # --------- lifecycle ----------
    def bootstrap(self) -> None:
        """Nothing to create; present for parity with the SQL backend."""

    def close(self) -> None:
        pass

    # --------- core API ----------
    def find_recipient_id(self, username: str) -> str:
        with self._lock:
            try:
                return self._usernames[username]
            except KeyError:
                raise StoreError.not_found(f"no user named {username!r}") from None

    def list_unread_message_summaries(self, user_id: str) -> List[MessageSummary]:
        with self._lock:
            rows = sorted(
                (r for r in self._messages.values() if r.recipient == user_id and r.read_at is None),
                key=lambda r: r.id,
            )
            return [
                MessageSummary(
                    id=r.id,
                    sender=r.sender,
                    sent_at=r.sent_at,
                    sender_name=self._users.get(r.sender),
                )
                for r in rows
            ]

    def get_message(self, message_id: int) -> Message:
        with self._lock:
            row = self._messages.get(message_id)
            if row is None:
                raise StoreError.not_found(f"no message with id {message_id}")
            return Message(
                id=row.id,
                sender=row.sender,
                payload=row.payload,
                sent_at=row.sent_at,
                sender_name=self._users.get(row.sender),
            )

    def save_message(self, recipient_id: str, sender: str, payload: str) -> None:
        with self._lock:
            for role, user_id in (("sender", sender), ("recipient", recipient_id)):
                if user_id not in self._users:
                    raise StoreError.not_found(f"{role} {user_id!r} is not registered")
            message_id = next(self._ids)
            self._messages[message_id] = _Row(
                id=message_id,
                sender=sender,
                recipient=recipient_id,
                payload=payload,
                sent_at=self._clock(),
            )

    def register_user(self, user_id: str, username: str) -> None:
        with self._lock:
            current = self._users.get(user_id)
            if current == username:
                return
            owner = self._usernames.get(username)
            if owner is not None and owner != user_id:
                raise StoreError(ErrorKind.CONFLICT, f"username {username!r} is taken")
            if current is not None:
                raise StoreError(
                    ErrorKind.ALREADY_REGISTERED,
                    f"user {user_id!r} is already registered as {current!r}",
                )
            self._users[user_id] = username
            self._usernames[username] = user_id
