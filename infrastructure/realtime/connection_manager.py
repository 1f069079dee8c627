"""In-process live subscriber registry.

Maps topic names to the set of connected subscriber handles and fans records
out to them. A single instance is owned by the application (``app.state``);
tests build their own. Each handle gets a bounded send queue drained by a
dedicated sender task, so a slow subscriber never blocks the publisher.
"""
from __future__ import annotations

import asyncio
from typing import Dict, Optional, Sequence, Set, Tuple

from application.dto import OpenEventDTO
from application.ports.realtime import SubscriberHandle
from core.logging_config import get_logger
from core.config import settings
from domain.message import new_message_id, now_seconds
from shared.serializers import JsonSerializer, json_serializer


logger = get_logger(__name__)

OVERFLOW_POLICIES = {"drop_oldest", "drop_new", "disconnect"}


class ConnectionManager:
    """Manage per-process subscriber handles and topic memberships."""

    def __init__(
        self,
        *,
        queue_max: Optional[int] = None,
        overflow_policy: Optional[str] = None,
        serializer: JsonSerializer = json_serializer,
    ) -> None:
        # topic -> set[handle]
        self._by_topic: Dict[str, Set[SubscriberHandle]] = {}
        # handle -> topics as subscribed (for logging/introspection)
        self._topics_by_handle: Dict[SubscriberHandle, Tuple[str, ...]] = {}
        self._lock = asyncio.Lock()
        # per-connection send queues and sender tasks
        self._send_queues: Dict[SubscriberHandle, asyncio.Queue] = {}
        self._sender_tasks: Dict[SubscriberHandle, asyncio.Task] = {}
        self._queue_max = max(1, int(queue_max or settings.REALTIME_WS_SEND_QUEUE_MAX))
        self._overflow_policy = (overflow_policy or settings.REALTIME_WS_SEND_OVERFLOW_POLICY or "drop_oldest").lower()
        if self._overflow_policy not in OVERFLOW_POLICIES:
            logger.warning("ws_send_queue_policy_invalid", policy=self._overflow_policy, fallback="drop_oldest")
            self._overflow_policy = "drop_oldest"
        self._serializer = serializer

    async def subscribe(self, topics: Sequence[str], handle: SubscriberHandle) -> OpenEventDTO:
        """Register ``handle`` under every topic and send it the open event.

        The open event is written to the handle before this returns; records
        fanned out meanwhile wait in the handle's queue and follow it.
        """
        topics = tuple(topics)
        open_event = OpenEventDTO(id=new_message_id(), time=now_seconds(), topic=",".join(topics))
        start_sender = False
        async with self._lock:
            for topic in topics:
                self._by_topic.setdefault(topic, set()).add(handle)
            previous = self._topics_by_handle.get(handle, ())
            self._topics_by_handle[handle] = previous + tuple(t for t in topics if t not in previous)
            if handle not in self._send_queues:
                self._send_queues[handle] = asyncio.Queue(maxsize=self._queue_max)
                start_sender = True

        await handle.send_text(self._serializer.dumps(open_event.model_dump()))

        if start_sender:
            async with self._lock:
                q = self._send_queues.get(handle)
                if q is not None and handle not in self._sender_tasks:
                    self._sender_tasks[handle] = asyncio.create_task(self._sender_loop(handle, q))
        logger.info("ws_subscribed", topics=list(topics))
        return open_event

    async def unsubscribe(self, handle: SubscriberHandle) -> bool:
        """Drop ``handle`` from every topic; empty topics are removed.

        Returns whether the handle was registered. Calling it again is a no-op.
        """
        async with self._lock:
            for topic in list(self._by_topic):
                members = self._by_topic[topic]
                members.discard(handle)
                if not members:
                    del self._by_topic[topic]
            topics = self._topics_by_handle.pop(handle, None)
            task = self._sender_tasks.pop(handle, None)
            if task is not None:
                task.cancel()
            self._send_queues.pop(handle, None)
        if topics is None:
            return False
        logger.info("ws_unsubscribed", topics=list(topics))
        return True

    async def fan_out(self, topic: str, text: str) -> int:
        """Queue ``text`` for every handle subscribed to ``topic``; returns the count."""
        async with self._lock:
            targets = list(self._by_topic.get(topic, ()))
        for handle in targets:
            await self._enqueue(handle, text, context={"topic": topic})
        return len(targets)

    def topics(self) -> list[str]:
        return sorted(self._by_topic)

    def subscriber_count(self, topic: str) -> int:
        return len(self._by_topic.get(topic, ()))

    def is_subscribed(self, topic: str, handle: SubscriberHandle) -> bool:
        return handle in self._by_topic.get(topic, ())

    async def aclose(self) -> None:
        """Stop every sender task (application shutdown)."""
        async with self._lock:
            tasks = list(self._sender_tasks.values())
            self._sender_tasks.clear()
            self._send_queues.clear()
            self._by_topic.clear()
            self._topics_by_handle.clear()
        for task in tasks:
            task.cancel()

    async def _enqueue(self, handle: SubscriberHandle, text: str, context: dict) -> None:
        q = self._send_queues.get(handle)
        if q is None:
            return
        try:
            q.put_nowait(text)
        except asyncio.QueueFull:
            policy = self._overflow_policy
            if policy == "drop_new":
                logger.warning("ws_send_queue_drop_new", **context)
                return
            if policy == "disconnect":
                logger.warning("ws_send_queue_disconnect", **context)
                try:
                    await handle.close(code=1013)
                except Exception as exc:
                    logger.warning("ws_close_failed", error=str(exc), **context)
                return
            # default: drop_oldest
            try:
                _ = q.get_nowait()
            except asyncio.QueueEmpty:
                pass
            try:
                q.put_nowait(text)
            except asyncio.QueueFull:
                logger.warning("ws_send_queue_drop_after_trim", **context)

    async def _sender_loop(self, handle: SubscriberHandle, q: asyncio.Queue) -> None:
        try:
            while True:
                text = await q.get()
                try:
                    await handle.send_text(text)
                except Exception as exc:
                    # 发送失败由连接自身的断开通知触发清理
                    logger.warning("ws_send_failed", error=str(exc))
        except asyncio.CancelledError:  # graceful exit
            return
