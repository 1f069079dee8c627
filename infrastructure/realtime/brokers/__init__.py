"""Realtime brokers (in-process only)."""

from .inmemory import InMemoryRealtimeBroker

__all__ = [
    "InMemoryRealtimeBroker",
]
