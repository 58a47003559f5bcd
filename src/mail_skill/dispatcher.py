"""Per-request orchestration: decode, classify, run the command, compose a reply."""
from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError

from .errors import (
    BadRequest,
    DecodeFailure,
    InternalError,
    MethodNotAllowed,
    UnsupportedRequestType,
)
from .intents import Intent, ReadMessage, RegisterUser, SendMessage, classify
from .models import TYPE_SIMPLE_UTTERANCE, SkillRequest, SkillResponse, compose_response
from .store import Clock, ErrorKind, MailboxStore, StoreError
from .store.base import utc_now

logger = logging.getLogger(__name__)

# -----------------------------
# Spoken replies
# -----------------------------
TEXT_SENT = "Сообщение успешно отправлено."
TEXT_NOTHING_TO_SEND = "Что передать пользователю {name}?"
TEXT_NO_RECIPIENT_NAME = "Кому отправить сообщение? Скажите: Отправь, имя получателя и текст."
TEXT_UNKNOWN_RECIPIENT = "Не удалось найти пользователя {name}."
TEXT_SENDER_NOT_REGISTERED = "Чтобы отправлять сообщения, сначала зарегистрируйтесь."
TEXT_NO_SUCH_MESSAGE = "Такого сообщения не существует."
TEXT_MESSAGE = "Сообщение от {sender}, отправлено {sent_at}: {payload}"
TEXT_REGISTERED = "Вы успешно зарегистрированы под именем {name}."
TEXT_NAME_TAKEN = "Извините, такое имя уже занято. Попробуйте другое."
TEXT_ALREADY_REGISTERED = "Вы уже зарегистрированы."
TEXT_ASK_NAME = "Под каким именем вас зарегистрировать?"
TEXT_NO_NEW_MESSAGES = "Для вас нет новых сообщений."
TEXT_NEW_MESSAGES = "Для вас {count} {noun}."
TEXT_CLOCK = "Точное время {hour} часов, {minute} минут. "

SUPPORTED_METHOD = "POST"


def plural_new_messages(count: int) -> str:
    """Russian agreement for "N new messages"."""
    n100 = count % 100
    n10 = count % 10
    if 11 <= n100 <= 14:
        return "новых сообщений"
    if n10 == 1:
        return "новое сообщение"
    if 2 <= n10 <= 4:
        return "новых сообщения"
    return "новых сообщений"


def resolve_timezone(name: str) -> tzinfo:
    """IANA name -> tzinfo. An empty name means UTC.

    Raises ``LookupError`` when the name cannot be resolved.
    """
    if name == "":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise LookupError(f"unknown timezone {name!r}") from e


def format_sent_at(sent_at: datetime, tz: tzinfo) -> str:
    return sent_at.astimezone(tz).strftime("%d.%m.%Y в %H:%M")


class SkillDispatcher:
    """Handles one webhook call against an injected :class:`MailboxStore`.

    :meth:`handle` returns the response envelope or raises a
    :class:`~mail_skill.errors.SkillError` carrying the HTTP status.
    """

    def __init__(self, store: MailboxStore, *, clock: Optional[Clock] = None) -> None:
        self.store = store
        self._clock = clock or utc_now

    # --------- entry point ----------
    def handle(self, method: str, body: bytes) -> SkillResponse:
        if method.upper() != SUPPORTED_METHOD:
            logger.debug("got request with bad method: %s", method)
            raise MethodNotAllowed(method)

        logger.debug("decoding request")
        req = self.decode(body)

        if req.request.type != TYPE_SIMPLE_UTTERANCE:
            logger.debug("unsupported request type: %s", req.request.type)
            raise UnsupportedRequestType(req.request.type)

        text = self.reply(req)
        return compose_response(text)

    @staticmethod
    def decode(body: bytes) -> SkillRequest:
        try:
            return SkillRequest.model_validate_json(body)
        except ValidationError as e:
            logger.debug("cannot decode request JSON body: %s", e)
            raise DecodeFailure(str(e)) from e

    def reply(self, req: SkillRequest) -> str:
        """Reply text for a decoded SimpleUtterance request."""
        intent: Intent = classify(req.request.command)
        logger.debug("classified %r as %r", req.request.command, intent)
        try:
            if isinstance(intent, SendMessage):
                return self._send(req, intent)
            if isinstance(intent, ReadMessage):
                return self._read(req, intent)
            if isinstance(intent, RegisterUser):
                return self._register(req, intent)
            return self._summary(req)
        except StoreError as e:
            logger.error("store failure while handling %s: %s", type(intent).__name__, e)
            raise InternalError(str(e)) from e

    # --------- intents ----------
    def _send(self, req: SkillRequest, intent: SendMessage) -> str:
        if not intent.recipient_name:
            return TEXT_NO_RECIPIENT_NAME
        if not intent.body:
            return TEXT_NOTHING_TO_SEND.format(name=intent.recipient_name)

        try:
            recipient_id = self.store.find_recipient_id(intent.recipient_name)
        except StoreError as e:
            if e.kind is not ErrorKind.NOT_FOUND:
                raise
            logger.debug("cannot find recipient by username %r", intent.recipient_name)
            return TEXT_UNKNOWN_RECIPIENT.format(name=intent.recipient_name)

        try:
            self.store.save_message(recipient_id, req.caller_id, intent.body)
        except StoreError as e:
            if e.kind is not ErrorKind.NOT_FOUND:
                raise
            logger.debug("sender %r is not registered", req.caller_id)
            return TEXT_SENDER_NOT_REGISTERED
        return TEXT_SENT

    def _read(self, req: SkillRequest, intent: ReadMessage) -> str:
        summaries = self.store.list_unread_message_summaries(req.caller_id)
        if not 1 <= intent.ordinal <= len(summaries):
            logger.debug("message %d requested, %d available", intent.ordinal, len(summaries))
            return TEXT_NO_SUCH_MESSAGE

        message = self.store.get_message(summaries[intent.ordinal - 1].id)
        try:
            tz = resolve_timezone(req.timezone)
        except LookupError:
            tz = timezone.utc
        return TEXT_MESSAGE.format(
            sender=message.sender_name or message.sender,
            sent_at=format_sent_at(message.sent_at, tz),
            payload=message.payload,
        )

    def _register(self, req: SkillRequest, intent: RegisterUser) -> str:
        name = intent.desired_username
        if not name:
            return TEXT_ASK_NAME
        try:
            self.store.register_user(req.caller_id, name)
        except StoreError as e:
            if e.kind is ErrorKind.CONFLICT:
                return TEXT_NAME_TAKEN
            if e.kind is ErrorKind.ALREADY_REGISTERED:
                return TEXT_ALREADY_REGISTERED
            raise
        return TEXT_REGISTERED.format(name=name)

    def _summary(self, req: SkillRequest) -> str:
        summaries = self.store.list_unread_message_summaries(req.caller_id)
        text = TEXT_NO_NEW_MESSAGES
        if summaries:
            count = len(summaries)
            text = TEXT_NEW_MESSAGES.format(count=count, noun=plural_new_messages(count))

        if req.session.new:
            try:
                tz = resolve_timezone(req.timezone)
            except LookupError as e:
                logger.debug("cannot parse timezone: %s", e)
                raise BadRequest(str(e)) from e
            now = self._clock().astimezone(tz)
            text = TEXT_CLOCK.format(hour=now.hour, minute=now.minute) + text
        return text
