"""Unit of Work 抽象定义"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.message.repository import MessageRepository


class AbstractUnitOfWork(ABC):
    """应用层事务边界

    正常退出时提交（只读模式除外），异常退出时回滚；
    `message_repository` 仅在上下文内可用。
    """

    message_repository: MessageRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly
        self.message_repository = None  # type: ignore[assignment]

    @property
    def readonly(self) -> bool:
        return self._readonly

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            await self.rollback()
        elif not self._readonly and not self._committed:
            await self.commit()

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...
