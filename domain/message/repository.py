"""Repository abstraction for the message log."""
from __future__ import annotations

from abc import ABC, abstractmethod

from .entity import Message
from .since import SinceFilter


class MessageRepository(ABC):
    """Append-only log keyed by (id, topic)."""

    @abstractmethod
    async def append(self, message: Message) -> Message:
        """Persist a new message; raises MessageConflictException on a duplicate key."""
        ...

    @abstractmethod
    async def delete_expired(self, now: int) -> int:
        """Remove every message with ``expires < now`` and return how many were removed."""
        ...

    @abstractmethod
    async def query_by_topic(self, topic: str, since: SinceFilter) -> list[Message]:
        """Messages of ``topic`` matching ``since``, oldest first."""
        ...
