"""Application service for live subscription workflows.

Keeps orchestration (subscribe/unsubscribe, handing published records to the
broker) separate from the concrete connection registry and transport.
"""
from __future__ import annotations

from typing import Sequence

from application.dto import MessageEventDTO, OpenEventDTO
from application.ports.realtime import Envelope, RealtimeBrokerPort, SubscriberHandle
from infrastructure.realtime.connection_manager import ConnectionManager
from core.logging_config import get_logger
from shared.serializers import json_serializer


logger = get_logger(__name__)


class RealtimeService:
    def __init__(self, *, broker: RealtimeBrokerPort, connections: ConnectionManager) -> None:
        self._broker = broker
        self._conn = connections

    # Connection lifecycle management
    async def subscribe(self, topics: Sequence[str], handle: SubscriberHandle) -> OpenEventDTO:
        """Register a live subscriber on every topic and greet it with the open event."""
        return await self._conn.subscribe(topics, handle)

    async def unsubscribe(self, handle: SubscriberHandle) -> None:
        """Disconnect notification from the transport; safe to call repeatedly."""
        await self._conn.unsubscribe(handle)

    # Publish side
    async def publish(self, topic: str, event: MessageEventDTO) -> None:
        await self._broker.publish(
            topic,
            Envelope(type=event.event, topic=topic, data=event.model_dump()),
        )

    # Broker callback (published records → in-process fan-out)
    async def on_broker_event(self, envelope: Envelope) -> None:
        delivered = await self._conn.fan_out(envelope.topic, json_serializer.dumps_line(envelope.data))
        logger.debug("realtime_event_dispatched", type=envelope.type, topic=envelope.topic, subscribers=delivered)

    # Expose for API convenience
    @property
    def connections(self) -> ConnectionManager:
        return self._conn
