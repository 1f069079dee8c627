"""SQLAlchemy-backed repository for the message log."""
from __future__ import annotations

from sqlalchemy import delete, insert, literal_column, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.exceptions import MessageConflictException
from domain.message import Message, MessageRepository, SinceFilter, SinceKind
from infrastructure.database import ensure_schema
from infrastructure.models.message import MessageModel


class SQLAlchemyMessageRepository(MessageRepository):
    """Persist messages using SQLAlchemy Core statements on an async session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: MessageModel) -> Message:
        return Message(
            id=model.id,
            time=model.time,
            expires=model.expires,
            topic=model.topic,
            priority=model.priority,
            message=model.message if model.message is not None else "",
        )

    def _order_clauses(self):
        # rowid keeps insertion order among messages published in the same second
        clauses = [MessageModel.time.asc()]
        if self.session.bind is not None and self.session.bind.dialect.name == "sqlite":
            clauses.append(literal_column("rowid").asc())
        return clauses

    async def append(self, message: Message) -> Message:
        await ensure_schema(self.session)
        stmt = insert(MessageModel).values(
            id=message.id,
            time=message.time,
            expires=message.expires,
            topic=message.topic,
            message=message.message,
            priority=message.priority,
        )
        try:
            await self.session.execute(stmt)
        except IntegrityError as exc:
            raise MessageConflictException(message.id, message.topic) from exc
        return message

    async def delete_expired(self, now: int) -> int:
        await ensure_schema(self.session)
        result = await self.session.execute(
            delete(MessageModel).where(MessageModel.expires < now)
        )
        return int(result.rowcount or 0)

    async def query_by_topic(self, topic: str, since: SinceFilter) -> list[Message]:
        if since.kind == SinceKind.NONE:
            return []
        await ensure_schema(self.session)

        query = select(MessageModel).where(MessageModel.topic == topic)
        if since.kind == SinceKind.TIME:
            query = query.where(MessageModel.time >= since.time)
        elif since.kind == SinceKind.MESSAGE_ID:
            # 按 id 取锚点时间，不限定 topic
            anchor = (
                select(MessageModel.time)
                .where(MessageModel.id == since.message_id)
                .limit(1)
                .scalar_subquery()
            )
            query = query.where(MessageModel.time >= anchor)
        query = query.order_by(*self._order_clauses())

        result = await self.session.execute(query)
        return [self._to_entity(model) for model in result.scalars().all()]
