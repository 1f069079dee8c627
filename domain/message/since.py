"""Resolution of the replay `since` selector.

Rules are evaluated in order and the first match wins:

1. empty / ``all``            -> every stored message of the topic
2. exactly 10 characters      -> unix timestamp (seconds)
3. exactly 12 characters      -> message id; bound is that message's time
4. ``<n><unit>``, unit s/m/h/d -> relative duration back from now
5. anything else              -> nothing matches

Rule 2 and 3 are decided by length alone, so a 10-character id-looking string
is still treated as a timestamp and vice versa.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .entity import ID_LENGTH

TIMESTAMP_LENGTH = 10

DURATION_PATTERN = re.compile(r"([0-9]+)([smhd])", re.IGNORECASE)
INTEGER_PATTERN = re.compile(r"-?[0-9]+")

UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


class SinceKind(str, Enum):
    ALL = "all"
    TIME = "time"
    MESSAGE_ID = "message_id"
    NONE = "none"


@dataclass(frozen=True)
class SinceFilter:
    """Concrete lower bound handed to the message store."""

    kind: SinceKind
    time: Optional[int] = None
    message_id: Optional[str] = None

    @classmethod
    def all(cls) -> "SinceFilter":
        return cls(SinceKind.ALL)

    @classmethod
    def none(cls) -> "SinceFilter":
        return cls(SinceKind.NONE)

    @classmethod
    def from_time(cls, ts: int) -> "SinceFilter":
        return cls(SinceKind.TIME, time=ts)

    @classmethod
    def from_message_id(cls, message_id: str) -> "SinceFilter":
        return cls(SinceKind.MESSAGE_ID, message_id=message_id)


def resolve_since(since: Optional[str], now: int) -> SinceFilter:
    if not since or since == "all":
        return SinceFilter.all()

    if len(since) == TIMESTAMP_LENGTH:
        if not INTEGER_PATTERN.fullmatch(since):
            # the store never matches a non-numeric time
            return SinceFilter.none()
        return SinceFilter.from_time(int(since))

    if len(since) == ID_LENGTH:
        return SinceFilter.from_message_id(since)

    match = DURATION_PATTERN.fullmatch(since)
    if match:
        amount, unit = match.groups()
        bound = now - int(amount) * UNIT_SECONDS[unit.lower()]
        # reaching back before the epoch covers every stored message
        if bound < 0:
            return SinceFilter.all()
        return SinceFilter.from_time(bound)

    return SinceFilter.none()


__all__ = ["SinceKind", "SinceFilter", "resolve_since"]
