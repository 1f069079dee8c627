"""Publish pipeline: stamp, persist, then fan out."""
from __future__ import annotations

import asyncio
from typing import Callable, Optional

from application.dto import MessageEventDTO
from application.services.realtime_service import RealtimeService
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.message import Message, new_message_id, now_seconds, parse_priority


logger = get_logger(__name__)


class PublishService:
    """Accepts a topic, priority and body and returns the committed record.

    Priority is validated before anything is written. Fan-out happens only
    after the append committed, so a live subscriber never sees a message the
    store does not have. Appends and fan-outs run under one lock, keeping
    per-topic delivery order equal to acceptance order.
    """

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        realtime: RealtimeService,
        *,
        clock: Callable[[], int] = now_seconds,
        id_factory: Callable[[], str] = new_message_id,
    ) -> None:
        self._uow_factory = uow_factory
        self._realtime = realtime
        self._clock = clock
        self._id_factory = id_factory
        self._lock = asyncio.Lock()

    async def publish(self, topic: str, body: str, priority: Optional[str] = None) -> MessageEventDTO:
        level = parse_priority(priority)

        async with self._lock:
            message = Message.create(
                topic=topic,
                body=body,
                priority=level,
                now=self._clock(),
                message_id=self._id_factory(),
            )
            async with self._uow_factory() as uow:
                await uow.message_repository.append(message)

            event = MessageEventDTO.from_entity(message)
            try:
                await self._realtime.publish(topic, event)
            except Exception as exc:
                # live delivery is best effort; the message is already stored
                logger.error("message_fan_out_failed", topic=topic, id=message.id, error=str(exc), exc_info=True)

        logger.info("message_published", topic=topic, id=message.id, priority=message.priority)
        return event
