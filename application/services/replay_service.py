"""Replay queries over the stored message log."""
from __future__ import annotations

from typing import Callable, Optional

from application.dto import ReplayRecordDTO
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.message import now_seconds, resolve_since


class ReplayService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        clock: Callable[[], int] = now_seconds,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    async def query(self, topic: str, since: Optional[str] = None) -> list[ReplayRecordDTO]:
        """Messages of ``topic`` selected by ``since``, oldest first.

        An unrecognized selector yields an empty list rather than an error.
        """
        since_filter = resolve_since(since, self._clock())
        async with self._uow_factory(readonly=True) as uow:
            messages = await uow.message_repository.query_by_topic(topic, since_filter)
        return [ReplayRecordDTO.from_entity(m) for m in messages]
