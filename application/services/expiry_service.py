"""Retention policy: delete messages past their expiry."""
from __future__ import annotations

import asyncio
from typing import Callable, Optional

from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.message import now_seconds


logger = get_logger(__name__)


def seconds_until_minute(now: int, minute: int) -> int:
    """Seconds from ``now`` to the next ``minute`` past the hour (never 0)."""
    wait = (minute * 60 - now % 3600) % 3600
    return wait or 3600


class ExpirySweeper:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        clock: Callable[[], int] = now_seconds,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    async def sweep(self, now: Optional[int] = None) -> int:
        """Delete every message with ``expires < now``; returns the number removed."""
        ts = self._clock() if now is None else now
        async with self._uow_factory() as uow:
            deleted = await uow.message_repository.delete_expired(ts)
        logger.info("messages_swept", deleted=deleted, now=ts)
        return deleted

    async def run_hourly(self, minute: int) -> None:
        """In-process schedule used when no Celery broker is configured.

        Runs until cancelled; a failed sweep is logged and retried next hour.
        """
        while True:
            await asyncio.sleep(seconds_until_minute(self._clock(), minute))
            try:
                await self.sweep()
            except Exception as exc:
                logger.error("messages_sweep_failed", error=str(exc), exc_info=True)
