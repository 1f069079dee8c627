"""Message domain exports."""
from .entity import (
    DEFAULT_PRIORITY,
    RETENTION_SECONDS,
    Message,
    is_valid_topic,
    new_message_id,
    now_seconds,
    parse_priority,
)
from .repository import MessageRepository
from .since import SinceFilter, SinceKind, resolve_since

__all__ = [
    "DEFAULT_PRIORITY",
    "RETENTION_SECONDS",
    "Message",
    "MessageRepository",
    "SinceFilter",
    "SinceKind",
    "is_valid_topic",
    "new_message_id",
    "now_seconds",
    "parse_priority",
    "resolve_since",
]
