"""Message retention Celery tasks"""
from __future__ import annotations

import asyncio
from typing import Optional

from celery import shared_task

from ..utils.base_task import BaseTask
from application.services.expiry_service import ExpirySweeper
from core.logging_config import get_logger
from infrastructure.database import build_engine, build_session_factory, create_tables
from infrastructure.unit_of_work import uow_factory_for

logger = get_logger(__name__)

SWEEP_TASK_NAME = "retention.sweep_expired_messages"


async def _sweep(database_url: Optional[str], now: Optional[int]) -> int:
    # 每次执行使用独立引擎：worker 进程里没有常驻事件循环
    engine = build_engine(database_url)
    try:
        await create_tables(engine)
        sweeper = ExpirySweeper(uow_factory_for(build_session_factory(engine)))
        return await sweeper.sweep(now)
    finally:
        await engine.dispose()


@shared_task(
    bind=True,
    base=BaseTask,
    name=SWEEP_TASK_NAME,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_kwargs={"max_retries": 3},
)
def sweep_expired_messages(self, database_url: Optional[str] = None, now: Optional[int] = None) -> int:
    """Delete messages whose ``expires`` is in the past; returns the number removed."""
    deleted = asyncio.run(_sweep(database_url, now))
    logger.info("sweep_task_completed", deleted=deleted)
    return deleted
