"""Message log database model definitions."""
from sqlalchemy import Column, Integer, PrimaryKeyConstraint, Text

from .base import Base


class MessageModel(Base):
    """ORM mapping for the messages table.

    Columns and primary key match the on-disk layout used by existing
    deployments, so an old database file can be opened as-is.
    """

    __tablename__ = "messages"
    __table_args__ = (
        PrimaryKeyConstraint("id", "topic"),
    )

    id = Column(Text, nullable=False, unique=True)
    time = Column(Integer, nullable=False)
    expires = Column(Integer, nullable=False)
    topic = Column(Text, nullable=False)
    priority = Column(Integer, nullable=False)
    message = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            "<MessageModel(id='{id}', topic='{topic}', time={time}, "
            "priority={priority})>"
        ).format(
            id=self.id,
            topic=self.topic,
            time=self.time,
            priority=self.priority,
        )
