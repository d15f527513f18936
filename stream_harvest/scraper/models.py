"""Message stream payload shapes and decoding."""
from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

from . import config
from .error_codes import ErrorCode, HarvestError

# Stream timestamps look like "Mon, 02 Jan 2006 15:04:05 -0000".
CREATED_AT_FORMAT = "%a, %d %b %Y %H:%M:%S %z"
BOUNDARY_DATE_FORMAT = "%Y-%m-%d"


def parse_created_at(raw: Any) -> datetime:
    """Parse a stream timestamp into an aware UTC datetime.

    Missing or malformed values raise ``HarvestError`` with
    ``ErrorCode.TIMESTAMP``; the time-boundary check depends on every message
    carrying a real timestamp.
    """

    if not isinstance(raw, str) or not raw.strip():
        raise HarvestError(ErrorCode.TIMESTAMP, f"Missing created_at value: {raw!r}")
    try:
        parsed = datetime.strptime(raw.strip(), CREATED_AT_FORMAT)
    except ValueError as exc:
        raise HarvestError(ErrorCode.TIMESTAMP, f"Unparseable created_at {raw!r}: {exc}") from exc
    return parsed.astimezone(timezone.utc)


def parse_boundary_date(raw: str) -> datetime:
    """Return UTC midnight of a ``YYYY-MM-DD`` boundary date."""

    parsed = datetime.strptime(raw.strip(), BOUNDARY_DATE_FORMAT)
    return parsed.replace(tzinfo=timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render ``value`` as an RFC 3339 UTC timestamp."""

    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class Message:
    id: int
    body: str
    created_at: datetime
    sentiment: str
    likes: int

    @classmethod
    def from_payload(cls, data: Any) -> "Message":
        if not isinstance(data, dict):
            raise HarvestError(ErrorCode.DECODE, f"Message entry is not an object: {data!r}")

        message_id = data.get("id")
        if isinstance(message_id, bool) or not isinstance(message_id, int):
            raise HarvestError(ErrorCode.DECODE, f"Message id is not an integer: {message_id!r}")

        body = data.get("body")
        if body is not None and not isinstance(body, str):
            raise HarvestError(ErrorCode.DECODE, f"Message {message_id} body is not a string")

        sentiment = data.get("sentiment") or {}
        if not isinstance(sentiment, dict):
            raise HarvestError(ErrorCode.DECODE, f"Message {message_id} sentiment is not an object")
        label = sentiment.get("name") or config.NEUTRAL_SENTIMENT

        likes = data.get("total_likes") or 0
        if isinstance(likes, bool) or not isinstance(likes, int) or likes < 0:
            raise HarvestError(ErrorCode.DECODE, f"Message {message_id} has invalid total_likes {likes!r}")

        return cls(
            id=message_id,
            body=body or "",
            created_at=parse_created_at(data.get("created_at")),
            sentiment=str(label),
            likes=likes,
        )


@dataclass
class Page:
    messages: List[Message] = field(default_factory=list)
    since: int = 0
    max: int = 0
    more: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.messages

    @property
    def oldest(self) -> Optional[Message]:
        return self.messages[-1] if self.messages else None

    def derive_bounds(self) -> None:
        """Fill ``since``/``max`` from the first and last message ids when absent."""

        if not self.messages:
            return
        if not self.since or not self.max:
            self.since = self.messages[0].id
            self.max = self.messages[-1].id


def _optional_id(data: dict, key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise HarvestError(ErrorCode.DECODE, f"Page field {key!r} is not an integer: {value!r}")
    return value


def decode_page(body: bytes | str) -> Page:
    """Decode one stream response body into a :class:`Page`."""

    try:
        data = json.loads(body)
    except (TypeError, ValueError) as exc:
        raise HarvestError(ErrorCode.DECODE, f"Malformed stream payload: {exc}") from exc

    if not isinstance(data, dict):
        raise HarvestError(ErrorCode.DECODE, "Stream payload is not a JSON object")

    raw_messages = data.get("messages")
    if raw_messages is None:
        raise HarvestError(ErrorCode.DECODE, "Stream payload has no 'messages' list")
    if not isinstance(raw_messages, list):
        raise HarvestError(ErrorCode.DECODE, "Stream payload 'messages' is not a list")

    return Page(
        messages=[Message.from_payload(entry) for entry in raw_messages],
        since=_optional_id(data, "since"),
        max=_optional_id(data, "max"),
        more=bool(data.get("more", False)),
    )


class Cursor:
    """Lowest ``max`` id seen so far; only ever moves back in time."""

    def __init__(self, start: int = 0) -> None:
        self._value = int(start or 0)
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def advance(self, max_id: int) -> int:
        with self._lock:
            if self._value and max_id >= self._value:
                raise HarvestError(
                    ErrorCode.PROTOCOL,
                    f"Cursor did not move backward: max={max_id} after {self._value}",
                )
            self._value = max_id
            return max_id


__all__ = [
    "CREATED_AT_FORMAT",
    "Cursor",
    "Message",
    "Page",
    "decode_page",
    "format_timestamp",
    "parse_boundary_date",
    "parse_created_at",
]
