"""In-memory implementation of RealtimeBrokerPort.

Envelopes are handed to the registered handlers on the publisher's own task,
one handler after another, so they reach fan-out in publish order.
"""
from __future__ import annotations

from typing import Tuple

from application.ports.realtime import Envelope, RealtimeBrokerPort, Handler
from core.logging_config import get_logger


logger = get_logger(__name__)


class InMemoryRealtimeBroker(RealtimeBrokerPort):
    def __init__(self) -> None:
        self._handlers: Tuple[Handler, ...] = ()
        self._closed = False

    async def publish(self, topic: str, envelope: Envelope) -> None:  # type: ignore[override]
        if self._closed:
            logger.warning("realtime_broker_closed", topic=topic)
            return
        for handler in self._handlers:
            try:
                await handler(envelope)
            except Exception as exc:
                # 单个处理器失败不影响其余处理器
                logger.error("realtime_handler_failed", topic=topic, error=str(exc), exc_info=True)

    async def subscribe(self, handler: Handler) -> None:  # type: ignore[override]
        self._handlers = self._handlers + (handler,)

    async def aclose(self) -> None:  # type: ignore[override]
        self._closed = True
        self._handlers = ()
