"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输

Wire records sent to clients. Field order follows what ntfy clients receive;
`priority` is left out whenever it equals the default level.
"""
from typing import Literal

from pydantic import BaseModel, model_serializer

from domain.message import DEFAULT_PRIORITY, Message


class WireRecordBase(BaseModel):
    """Base wire record: drop the default priority from serialized output."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)
        if data.get("priority", DEFAULT_PRIORITY) == DEFAULT_PRIORITY:
            data.pop("priority", None)
        return data


class OpenEventDTO(BaseModel):
    """Sent once to a live subscriber right after it connects."""
    id: str
    time: int
    event: Literal["open"] = "open"
    topic: str


class MessageEventDTO(WireRecordBase):
    """Live delivery and publish acknowledgment."""
    id: str
    time: int
    expires: int
    event: Literal["message"] = "message"
    topic: str
    message: str
    priority: int = DEFAULT_PRIORITY

    @classmethod
    def from_entity(cls, message: Message) -> "MessageEventDTO":
        return cls(
            id=message.id,
            time=message.time,
            expires=message.expires,
            topic=message.topic,
            message=message.message,
            priority=message.priority,
        )


class ReplayRecordDTO(WireRecordBase):
    """One NDJSON line of a replay query response."""
    id: str
    time: int
    expires: int
    topic: str
    message: str
    priority: int = DEFAULT_PRIORITY
    event: Literal["message"] = "message"

    @classmethod
    def from_entity(cls, message: Message) -> "ReplayRecordDTO":
        return cls(
            id=message.id,
            time=message.time,
            expires=message.expires,
            topic=message.topic,
            message=message.message,
            priority=message.priority,
        )


class AuthProbeDTO(BaseModel):
    success: bool = True


__all__ = [
    "OpenEventDTO",
    "MessageEventDTO",
    "ReplayRecordDTO",
    "AuthProbeDTO",
]
