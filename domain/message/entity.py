"""Domain entity representing a published notification."""
from __future__ import annotations

import re
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from domain.common.exceptions import InvalidPriorityException

ID_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
ID_LENGTH = 12

# 消息保留 12 小时
RETENTION_SECONDS = 12 * 3600

DEFAULT_PRIORITY = 3
MIN_PRIORITY = 1
MAX_PRIORITY = 5

EMPTY_BODY_PLACEHOLDER = "triggered"

TOPIC_PATTERN = re.compile(r"[A-Za-z0-9\-_]+")


def now_seconds() -> int:
    return int(time.time())


def new_message_id(length: int = ID_LENGTH) -> str:
    """Random id over the 62-symbol alphabet (each byte reduced modulo 62)."""
    raw = secrets.token_bytes(length)
    return "".join(ID_ALPHABET[b % len(ID_ALPHABET)] for b in raw)[:length]


def is_valid_topic(topic: Optional[str]) -> bool:
    return bool(topic) and TOPIC_PATTERN.fullmatch(topic) is not None


def parse_priority(value: Optional[str]) -> int:
    """Turn an X-Priority header value into a priority level.

    Absent or blank means the default level; anything that is not an integer
    in 1..5 is rejected.
    """
    if value is None or not str(value).strip():
        return DEFAULT_PRIORITY
    raw = str(value).strip()
    try:
        priority = int(raw)
    except ValueError:
        raise InvalidPriorityException(raw) from None
    if priority < MIN_PRIORITY or priority > MAX_PRIORITY:
        raise InvalidPriorityException(raw)
    return priority


@dataclass(frozen=True)
class Message:
    """Stored notification. Immutable once created; removed only by expiry."""

    id: str
    time: int
    expires: int
    topic: str
    priority: int
    message: str

    @classmethod
    def create(
        cls,
        *,
        topic: str,
        body: str,
        priority: int = DEFAULT_PRIORITY,
        now: Optional[int] = None,
        message_id: Optional[str] = None,
    ) -> "Message":
        if priority < MIN_PRIORITY or priority > MAX_PRIORITY:
            raise InvalidPriorityException(str(priority))
        ts = now_seconds() if now is None else int(now)
        return cls(
            id=message_id or new_message_id(),
            time=ts,
            expires=ts + RETENTION_SECONDS,
            topic=topic,
            priority=priority,
            message=body or EMPTY_BODY_PLACEHOLDER,
        )

    @property
    def has_default_priority(self) -> bool:
        return self.priority == DEFAULT_PRIORITY

    def is_expired(self, now: int) -> bool:
        return self.expires < now
