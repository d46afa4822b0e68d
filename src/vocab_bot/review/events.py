"""
Inbound review events and the opaque button tokens that carry answers.

Raw callback payloads are decoded once, here, into one of the event classes;
anything that does not fit the schema is rejected with MalformedEventError
before it reaches the session orchestrator.

An answer token only carries ids: the quizzed item, the item whose
translation was offered on the button, and the quizzed item's schedule
version (its next_review when the prompt was built, 0 if never scheduled).
The texts are looked up again when the answer arrives, so the token stays
within Telegram's 64-byte callback_data limit whatever the script.
"""
from dataclasses import dataclass
from typing import Union

from .errors import MalformedEventError

ANSWER_PREFIX = "review:"
LANGUAGE_PREFIX = "language:"

MAX_CALLBACK_BYTES = 64


@dataclass(frozen=True)
class StartReview:
    user_telegram_id: int


@dataclass(frozen=True)
class AnswerSubmitted:
    user_telegram_id: int
    item_id: int
    language: str
    chosen_item_id: int
    schedule_version: int = 0


@dataclass(frozen=True)
class SetLanguage:
    user_telegram_id: int
    language: str


ReviewEvent = Union[StartReview, AnswerSubmitted, SetLanguage]


def _checked(token: str) -> str:
    if len(token.encode('utf-8')) > MAX_CALLBACK_BYTES:
        raise MalformedEventError(f"Callback token exceeds {MAX_CALLBACK_BYTES} bytes: {token!r}")
    return token


def encode_answer_token(item_id: int, language: str, chosen_item_id: int, schedule_version: int = 0) -> str:
    return _checked(f"{ANSWER_PREFIX}{item_id}:{chosen_item_id}:{schedule_version}:{language}")


def encode_language_token(language: str) -> str:
    return _checked(LANGUAGE_PREFIX + language)


def _parse_int(value: str, name: str) -> int:
    if not (value.isascii() and value.isdigit()):
        raise MalformedEventError(f"Answer token has an invalid {name}: {value!r}")
    return int(value)


def _decode_answer(user_telegram_id: int, payload: str) -> AnswerSubmitted:
    fields = payload.split(':', 3)
    if len(fields) != 4:
        raise MalformedEventError(f"Answer token must have 4 fields: {payload!r}")

    item_id, chosen_item_id, schedule_version, language = fields
    if not language:
        raise MalformedEventError(f"Answer token has no language: {payload!r}")

    return AnswerSubmitted(
        user_telegram_id=user_telegram_id,
        item_id=_parse_int(item_id, 'item id'),
        language=language,
        chosen_item_id=_parse_int(chosen_item_id, 'chosen item id'),
        schedule_version=_parse_int(schedule_version, 'schedule version'),
    )


def decode_callback(user_telegram_id: int, data: str) -> ReviewEvent:
    """Turn inline-button callback data into a typed event."""
    if not isinstance(data, str):
        raise MalformedEventError(f"Callback data must be a string, got {type(data).__name__}")

    if data.startswith(ANSWER_PREFIX):
        return _decode_answer(user_telegram_id, data[len(ANSWER_PREFIX):])

    if data.startswith(LANGUAGE_PREFIX):
        language = data[len(LANGUAGE_PREFIX):].strip().lower()
        if not language:
            raise MalformedEventError("Language token without a language")
        return SetLanguage(user_telegram_id=user_telegram_id, language=language)

    raise MalformedEventError(f"Unrecognised callback data: {data!r}")
