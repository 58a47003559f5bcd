"""Utterance classification.

Pure Python, no framework dependencies. :func:`classify` maps whatever the
user said onto one of a closed set of intents and never raises.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Union

SEND_TRIGGER = "Отправь"
READ_TRIGGER = "Прочитай"
REGISTER_TRIGGER = "Зарегистрируй"


@dataclass(frozen=True)
class SendMessage:
    recipient_name: str
    body: str


@dataclass(frozen=True)
class ReadMessage:
    ordinal: int  # one-based position in the caller's unread list


@dataclass(frozen=True)
class RegisterUser:
    desired_username: str


@dataclass(frozen=True)
class Unknown:
    pass


Intent = Union[SendMessage, ReadMessage, RegisterUser, Unknown]

# Spoken numbers up to ten; transcripts normally carry digits.
_NUMBER_WORDS: Dict[str, int] = {}
for _value, _forms in enumerate(
    (
        ("один", "одно", "одна", "первое", "первый", "первая", "первую"),
        ("два", "две", "второе", "второй", "вторая", "вторую"),
        ("три", "третье", "третий", "третья", "третью"),
        ("четыре", "четвертое", "четвёртое", "четвертый", "четвёртый"),
        ("пять", "пятое", "пятый"),
        ("шесть", "шестое", "шестой"),
        ("семь", "седьмое", "седьмой"),
        ("восемь", "восьмое", "восьмой"),
        ("девять", "девятое", "девятый"),
        ("десять", "десятое", "десятый"),
    ),
    start=1,
):
    for _form in _forms:
        _NUMBER_WORDS[_form] = _value

_INT_RE = re.compile(r"^[+-]?\d+$")
_NAME_TRAILER = ",:."
# longer numbers can never name a message; they are simply out of range
_MAX_ORDINAL_DIGITS = 9


def _remainder(utterance: str, trigger: str) -> Optional[str]:
    """Text after ``trigger`` if the utterance starts with it as a whole word."""
    if not utterance.startswith(trigger):
        return None
    rest = utterance[len(trigger):]
    if rest and not rest[0].isspace():
        return None
    return rest.strip()


def parse_send(rest: str) -> SendMessage:
    """First token is the recipient, the rest is the message body."""
    parts = rest.split(None, 1)
    if not parts:
        return SendMessage(recipient_name="", body="")
    name = parts[0].rstrip(_NAME_TRAILER)
    body = parts[1].strip() if len(parts) > 1 else ""
    return SendMessage(recipient_name=name, body=body)


def parse_ordinal(rest: str) -> int:
    """First numeric token wins; with none the first message is meant."""
    for token in rest.split():
        token = token.strip(_NAME_TRAILER).lower()
        if _INT_RE.match(token):
            if len(token.lstrip("+-")) > _MAX_ORDINAL_DIGITS:
                return 0
            return int(token)
        if token in _NUMBER_WORDS:
            return _NUMBER_WORDS[token]
    return 1


def classify(utterance: str) -> Intent:
    rest = _remainder(utterance, SEND_TRIGGER)
    if rest is not None:
        return parse_send(rest)

    rest = _remainder(utterance, READ_TRIGGER)
    if rest is not None:
        return ReadMessage(ordinal=parse_ordinal(rest))

    rest = _remainder(utterance, REGISTER_TRIGGER)
    if rest is not None:
        return RegisterUser(desired_username=rest)

    return Unknown()
