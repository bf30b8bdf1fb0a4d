"""Queued push notifications awaiting delivery."""

from sqlalchemy import Column, String, DateTime, Text, JSON, Enum as SQLEnum, Index
from datetime import datetime, UTC
from dreampush.db import Base
import uuid
import enum


class QueueStatus(enum.Enum):
    pending = "pending"
    sent = "sent"
    failed = "failed"


class QueuedNotification(Base):
    """One logical notification for one user.

    Rows are inserted by whatever triggers a notification and move exactly
    once from ``pending`` to ``sent`` or ``failed``. ``sent_at`` is stamped
    for both terminal states.
    """
    __tablename__ = "push_notification_queue"
    __table_args__ = (
        Index("ix_push_notification_queue_status_created", "status", "created_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    status = Column(SQLEnum(QueueStatus), nullable=False, default=QueueStatus.pending)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))
    sent_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<QueuedNotification id={self.id} user={self.user_id} status={self.status.value}>"
