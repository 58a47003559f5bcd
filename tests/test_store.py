"""Contract tests run against every MailboxStore backend (see the ``store`` fixture)."""
from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from mail_skill.store import (
    ErrorKind,
    InMemoryMailboxStore,
    MailboxStore,
    SQLiteMailboxStore,
    StoreError,
    create_store,
)


def _register(store, **users):
    for user_id, username in users.items():
        store.register_user(user_id, username)


def test_backends_implement_protocol(store):
    assert isinstance(store, MailboxStore)


def test_register_and_find(store):
    _register(store, alice_id="alice")
    assert store.find_recipient_id("alice") == "alice_id"


def test_find_missing_user(store):
    with pytest.raises(StoreError) as exc:
        store.find_recipient_id("nobody")
    assert exc.value.kind is ErrorKind.NOT_FOUND


def test_register_same_name_twice_is_conflict(store):
    store.register_user("bob", "carol")
    with pytest.raises(StoreError) as exc:
        store.register_user("dave", "carol")
    assert exc.value.kind is ErrorKind.CONFLICT
    # first registration untouched, second user absent
    assert store.find_recipient_id("carol") == "bob"


def test_register_is_idempotent_for_same_pair(store):
    store.register_user("bob", "bob")
    store.register_user("bob", "bob")
    assert store.find_recipient_id("bob") == "bob"


def test_register_other_name_for_existing_user(store):
    store.register_user("bob", "bob")
    with pytest.raises(StoreError) as exc:
        store.register_user("bob", "robert")
    assert exc.value.kind is ErrorKind.ALREADY_REGISTERED
    with pytest.raises(StoreError):
        store.find_recipient_id("robert")


def test_registered_user_asking_for_taken_name_is_conflict(store):
    store.register_user("a", "anna")
    store.register_user("b", "boris")
    with pytest.raises(StoreError) as exc:
        store.register_user("a", "boris")
    assert exc.value.kind is ErrorKind.CONFLICT
    assert store.find_recipient_id("boris") == "b"
    assert store.find_recipient_id("anna") == "a"


def test_empty_mailbox(store):
    _register(store, r="r")
    assert store.list_unread_message_summaries("r") == []
    assert store.list_unread_message_summaries("never-registered") == []


def test_save_adds_one_summary(store, clock):
    _register(store, r="rita", s="sam")
    before = store.list_unread_message_summaries("r")
    store.save_message("r", "s", "hello")
    after = store.list_unread_message_summaries("r")

    assert len(after) == len(before) + 1
    summary = after[-1]
    assert summary.sender == "s"
    assert summary.sender_name == "sam"
    assert summary.sent_at == clock.now
    assert not hasattr(summary, "payload")


def test_summaries_are_in_id_order(store, clock):
    _register(store, r="rita", s="sam", t="tom")
    for i, sender in enumerate(["s", "t", "s"]):
        clock.now = clock.now + timedelta(minutes=i)
        store.save_message("r", sender, f"m{i}")

    summaries = store.list_unread_message_summaries("r")
    ids = [m.id for m in summaries]
    assert ids == sorted(ids)
    assert [m.sender for m in summaries] == ["s", "t", "s"]
    # stable across calls
    assert store.list_unread_message_summaries("r") == summaries


def test_messages_only_for_recipient(store):
    _register(store, r="rita", s="sam")
    store.save_message("r", "s", "to rita")
    store.save_message("s", "r", "to sam")
    assert len(store.list_unread_message_summaries("r")) == 1
    assert len(store.list_unread_message_summaries("s")) == 1


@pytest.mark.parametrize("payload", ["hello", "привет, как дела? 👋", "", "  spaced  "])
def test_get_message_roundtrips_payload(store, payload):
    _register(store, r="rita", s="sam")
    store.save_message("r", "s", payload)
    (summary,) = store.list_unread_message_summaries("r")
    message = store.get_message(summary.id)
    assert message.payload == payload
    assert message.payload.encode("utf-8") == payload.encode("utf-8")
    assert message.sender == "s"
    assert message.sender_name == "sam"
    assert message.id == summary.id


def test_get_missing_message(store):
    with pytest.raises(StoreError) as exc:
        store.get_message(12345)
    assert exc.value.kind is ErrorKind.NOT_FOUND


def test_save_requires_registered_users(store):
    _register(store, r="rita")
    with pytest.raises(StoreError) as exc:
        store.save_message("r", "ghost", "boo")
    assert exc.value.kind is ErrorKind.NOT_FOUND
    with pytest.raises(StoreError) as exc:
        store.save_message("ghost", "r", "boo")
    assert exc.value.kind is ErrorKind.NOT_FOUND
    assert store.list_unread_message_summaries("r") == []


def test_sqlite_persists_across_connections(tmp_path: Path, clock):
    path = str(tmp_path / "mailbox.db")
    first = SQLiteMailboxStore(path, clock=clock)
    first.bootstrap()
    first.register_user("r", "rita")
    first.register_user("s", "sam")
    first.save_message("r", "s", "still here")
    first.close()

    second = SQLiteMailboxStore(path, clock=clock)
    second.bootstrap()  # idempotent
    try:
        (summary,) = second.list_unread_message_summaries("r")
        assert second.get_message(summary.id).payload == "still here"
        assert summary.sent_at == clock.now
    finally:
        second.close()


def test_create_store_backends(tmp_path: Path):
    assert isinstance(create_store({"store": {"backend": "memory"}}), InMemoryMailboxStore)

    sqlite_store = create_store({"store": {"backend": "sqlite", "path": str(tmp_path / "x.db")}})
    try:
        assert isinstance(sqlite_store, SQLiteMailboxStore)
    finally:
        sqlite_store.close()

    with pytest.raises(ValueError):
        create_store({"store": {"backend": "postgres"}})
