"""Infrastructure models package exports."""
from .base import Base
from .message import MessageModel

__all__ = [
    "Base",
    "MessageModel",
]
