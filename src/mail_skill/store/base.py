"""Mailbox store contract shared by every persistence backend."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol, runtime_checkable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ErrorKind(enum.Enum):
    """What went wrong inside a store, independent of the storage engine."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"                      # username owned by another user id
    ALREADY_REGISTERED = "already_registered"  # user id already owns another username
    FAILURE = "failure"


class StoreError(Exception):
    """Raised by every store operation; ``kind`` tells callers how to react."""

    def __init__(self, kind: ErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind

    @classmethod
    def not_found(cls, message: str) -> "StoreError":
        return cls(ErrorKind.NOT_FOUND, message)

    @classmethod
    def failure(cls, message: str) -> "StoreError":
        return cls(ErrorKind.FAILURE, message)


@dataclass(frozen=True)
class MessageSummary:
    """A row of the unread list. Never carries the message text."""

    id: int
    sender: str                  # sender user id
    sent_at: datetime
    sender_name: Optional[str] = None


@dataclass(frozen=True)
class Message:
    id: int
    sender: str
    payload: str
    sent_at: datetime
    sender_name: Optional[str] = None


@runtime_checkable
class MailboxStore(Protocol):
    """Users and their mailboxes.

    Every operation is atomic from the caller's point of view and raises
    :class:`StoreError` on failure. Messages for a recipient are always
    returned in ascending id order.
    """

    def find_recipient_id(self, username: str) -> str: ...

    def list_unread_message_summaries(self, user_id: str) -> List[MessageSummary]: ...

    def get_message(self, message_id: int) -> Message: ...

    def save_message(self, recipient_id: str, sender: str, payload: str) -> None: ...

    def register_user(self, user_id: str, username: str) -> None: ...
