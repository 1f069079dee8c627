"""
Realtime port and message DTOs (contracts-first).

This module defines the subscriber handle contract, the broker envelope and
the RealtimeBrokerPort protocol so the application layer stays decoupled
from the concrete connection/broadcast implementations (infrastructure).
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol, runtime_checkable
from pydantic import BaseModel, Field
from datetime import datetime, timezone


def _utc_now_z() -> str:
    ts = datetime.now(timezone.utc)
    s = ts.isoformat()
    return s.replace("+00:00", "Z")


@runtime_checkable
class SubscriberHandle(Protocol):
    """Opaque live connection. Starlette's WebSocket satisfies it as-is."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class Envelope(BaseModel):
    """Unit carried by the broker from the publish pipeline to fan-out.

    Fields:
      - type: event kind (currently always "message")
      - topic: topic the record was published to
      - data: wire record, already shaped for clients
      - ts: server-generated UTC timestamp (ISO8601 with Z), diagnostics only
    """

    type: str = "message"
    topic: str
    data: dict[str, Any] = Field(default_factory=dict)
    ts: str = Field(default_factory=_utc_now_z)


Handler = Callable[[Envelope], Awaitable[None]]


class RealtimeBrokerPort(Protocol):
    """Abstraction for handing published records to the live fan-out."""

    async def publish(self, topic: str, envelope: Envelope) -> None: ...

    async def subscribe(self, handler: Handler) -> None: ...

    async def aclose(self) -> None: ...  # pragma: no cover - optional


__all__ = ["Envelope", "RealtimeBrokerPort", "Handler", "SubscriberHandle"]
