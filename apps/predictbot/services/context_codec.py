"""Event-creation context and its flat string-map encoding.

The stored map has a fixed key set (see ``_FIXED_KEYS``) plus one
``option.<i>`` key per option. Unknown or missing keys are rejected so a
corrupted row is detected instead of being silently defaulted.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

FORMAT_VERSION = "1"
OPTION_PREFIX = "option."
MAX_OPTIONS_IN_MAP = 64

_INT_KEYS = (
    "group_id",
    "chat_id",
    "last_bot_message_id",
    "last_user_message_id",
    "last_error_message_id",
    "confirmation_message_id",
)
_MESSAGE_ID_KEYS = _INT_KEYS[2:]
_FIXED_KEYS = frozenset(("v", "question", "event_type", "options_count", "deadline") + _INT_KEYS)
_INT_RE = re.compile(r"-?[0-9]{1,19}")


class DecodeError(Exception):
    """Stored dialog context cannot be decoded."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class EventType(str, enum.Enum):
    BINARY = "binary"
    MULTI_OPTION = "multi_option"
    PROBABILITY = "probability"


@dataclass
class EventCreationContext:
    question: str = ""
    event_type: EventType | None = None
    options: list[str] = field(default_factory=list)
    deadline: datetime | None = None
    group_id: int = 0
    chat_id: int = 0
    last_bot_message_id: int = 0
    last_user_message_id: int = 0
    last_error_message_id: int = 0
    confirmation_message_id: int = 0


def _format_deadline(value: datetime | None) -> str:
    if value is None:
        return ""
    if value.tzinfo is None:
        raise ValueError("deadline must be timezone-aware")
    return value.astimezone(timezone.utc).isoformat()


def to_map(ctx: EventCreationContext) -> dict[str, str]:
    out = {
        "v": FORMAT_VERSION,
        "question": ctx.question,
        "event_type": ctx.event_type.value if ctx.event_type else "",
        "options_count": str(len(ctx.options)),
        "deadline": _format_deadline(ctx.deadline),
    }
    for key in _INT_KEYS:
        out[key] = str(int(getattr(ctx, key)))
    for i, opt in enumerate(ctx.options):
        out[f"{OPTION_PREFIX}{i}"] = opt
    return out


def _parse_int(data: dict[str, str], key: str) -> int:
    raw = data[key]
    if not _INT_RE.fullmatch(raw):
        raise DecodeError(f"malformed integer for {key}: {raw[:40]!r}", key)
    return int(raw)


def _parse_deadline(raw: str) -> datetime | None:
    if raw == "":
        return None
    try:
        value = datetime.fromisoformat(raw)
    except ValueError:
        raise DecodeError(f"malformed deadline: {raw[:40]!r}", "deadline") from None
    if value.tzinfo is None:
        raise DecodeError("deadline has no timezone offset", "deadline")
    try:
        return value.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        raise DecodeError(f"deadline out of range: {raw[:40]!r}", "deadline") from None


def from_map(data: Any) -> EventCreationContext:
    if not isinstance(data, dict):
        raise DecodeError("context is not a mapping")
    for k, v in data.items():
        if not isinstance(k, str) or not isinstance(v, str):
            raise DecodeError("context keys and values must be strings", str(k)[:40])

    missing = sorted(_FIXED_KEYS - data.keys())
    if missing:
        raise DecodeError(f"missing keys: {', '.join(missing)}", missing[0])
    if data["v"] != FORMAT_VERSION:
        raise DecodeError(f"unsupported context version: {data['v'][:10]!r}", "v")

    count = _parse_int(data, "options_count")
    if count < 0 or count > MAX_OPTIONS_IN_MAP:
        raise DecodeError(f"options_count out of range: {count}", "options_count")
    option_keys = {f"{OPTION_PREFIX}{i}" for i in range(count)}
    unknown = sorted(data.keys() - _FIXED_KEYS - option_keys)
    if unknown:
        raise DecodeError(f"unknown keys: {', '.join(k[:40] for k in unknown[:5])}", unknown[0])
    absent = [k for k in sorted(option_keys) if k not in data]
    if absent:
        raise DecodeError(f"missing option entries: {', '.join(absent[:5])}", absent[0])

    raw_type = data["event_type"]
    event_type = None
    if raw_type:
        try:
            event_type = EventType(raw_type)
        except ValueError:
            raise DecodeError(f"unknown event type: {raw_type[:40]!r}", "event_type") from None

    ints = {key: _parse_int(data, key) for key in _INT_KEYS}
    for key in _MESSAGE_ID_KEYS:
        if ints[key] < 0:
            raise DecodeError(f"negative message id for {key}", key)

    return EventCreationContext(
        question=data["question"],
        event_type=event_type,
        options=[data[f"{OPTION_PREFIX}{i}"] for i in range(count)],
        deadline=_parse_deadline(data["deadline"]),
        **ints,
    )
