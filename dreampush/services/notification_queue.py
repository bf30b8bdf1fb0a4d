"""Queue operations for ``push_notification_queue``."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dreampush.exceptions import StorageError
from dreampush.models.push_notification_queue import QueuedNotification, QueueStatus

logger = logging.getLogger(__name__)


class NotificationQueue:
    def __init__(self, db: Session):
        self.db = db

    def enqueue(
        self,
        user_id: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> QueuedNotification:
        row = QueuedNotification(
            user_id=user_id,
            title=title,
            body=body,
            data=data or {},
            status=QueueStatus.pending,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def list_pending(self, limit: int) -> List[QueuedNotification]:
        """Oldest pending rows first, at most ``limit``."""
        stmt = (
            select(QueuedNotification)
            .where(QueuedNotification.status == QueueStatus.pending)
            .order_by(QueuedNotification.created_at, QueuedNotification.id)
            .limit(limit)
        )
        try:
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Could not read pending notifications: {e}")

    def get_pending(self, notification_id: str) -> Optional[QueuedNotification]:
        """Fresh read of one row; None once it is no longer pending or is gone."""
        stmt = select(QueuedNotification).where(
            QueuedNotification.id == notification_id,
            QueuedNotification.status == QueueStatus.pending,
        ).execution_options(populate_existing=True)
        try:
            return self.db.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Could not read notification {notification_id}: {e}")

    def mark_sent(self, notification_id: str, at: datetime) -> bool:
        return self._finish(notification_id, QueueStatus.sent, None, at)

    def mark_failed(self, notification_id: str, error: str, at: datetime) -> bool:
        return self._finish(notification_id, QueueStatus.failed, error, at)

    def _finish(
        self,
        notification_id: str,
        status: QueueStatus,
        error: Optional[str],
        at: datetime,
    ) -> bool:
        """Conditional pending -> terminal transition.

        Returns False when the row is no longer pending (a concurrent pass
        got there first). Raises ``StorageError`` on database failure, after
        rolling back so rows already finished in this pass are unaffected.
        """
        try:
            result = self.db.execute(
                update(QueuedNotification)
                .where(
                    QueuedNotification.id == notification_id,
                    QueuedNotification.status == QueueStatus.pending,
                )
                .values(status=status, error_message=error, sent_at=at)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Could not update notification {notification_id}: {e}")
        return bool(result.rowcount)
