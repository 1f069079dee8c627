"""SQLAlchemy Unit of Work 实现：每次发布/查询/清理各用一个会话"""
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import AsyncSessionLocal
from infrastructure.repositories.message_repository import SQLAlchemyMessageRepository


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """基于SQLAlchemy的Unit of Work

    写模式在进入时显式开启事务；只读模式依赖会话自动开启的读事务，
    退出时随会话关闭一并结束。
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        self.session = self._session_factory()
        self.message_repository = SQLAlchemyMessageRepository(self.session)
        if not self.readonly:
            await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            session, self.session = self.session, None
            self.message_repository = None  # type: ignore[assignment]
            if session is not None:
                await session.close()

    async def commit(self) -> None:
        if not self.readonly and self.session is not None and self.session.in_transaction():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session is not None and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False


def uow_factory_for(session_factory: Callable[[], AsyncSession]) -> Callable[..., SQLAlchemyUnitOfWork]:
    """绑定到指定会话工厂的 UoW 工厂（应用生命周期、Celery 任务、测试各自持有引擎）"""

    def _factory(*, readonly: bool = False) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory, readonly=readonly)

    return _factory
