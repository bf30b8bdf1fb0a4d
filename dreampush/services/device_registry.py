"""Device token registry: durable user -> device token mapping."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from dreampush.exceptions import StorageError
from dreampush.models.device_token import DeviceToken, DevicePlatform
from dreampush.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class DeviceTokenRegistry:
    """Reads and writes ``device_tokens`` rows.

    Writers on both sides (client registration, server delivery) only ever
    refresh a row's own metadata or move it toward inactive, so row-level
    upsert/update is all the coordination needed.
    """

    def __init__(self, db: Session):
        self.db = db

    def upsert(
        self,
        user_id: str,
        token: str,
        platform: DevicePlatform,
        device_info: Optional[Dict[str, Any]] = None,
    ) -> Tuple[DeviceToken, bool]:
        """Create or refresh the (user, token) row. Returns ``(row, created)``."""
        existing = self._get(user_id, token)
        if existing is None:
            row = DeviceToken(
                user_id=user_id,
                token=token,
                platform=platform,
                device_info=device_info,
                is_active=True,
            )
            self.db.add(row)
            try:
                self.db.commit()
            except IntegrityError:
                # Another registration for the same pair won the race
                self.db.rollback()
                existing = self._get(user_id, token)
                if existing is None:
                    raise
            else:
                self.db.refresh(row)
                logger.info(f"Registered new {platform.value} device for user {user_id}")
                return row, True

        existing.platform = platform
        if device_info is not None:
            existing.device_info = device_info
        existing.is_active = True
        existing.updated_at = utc_now()
        self.db.commit()
        self.db.refresh(existing)
        logger.info(f"Refreshed {platform.value} device token for user {user_id}")
        return existing, False

    def list_active(self, user_id: str) -> List[DeviceToken]:
        return self.db.query(DeviceToken).filter(
            DeviceToken.user_id == user_id,
            DeviceToken.is_active.is_(True),
        ).order_by(DeviceToken.created_at).all()

    def list_for_user(self, user_id: str) -> List[DeviceToken]:
        return self.db.query(DeviceToken).filter(
            DeviceToken.user_id == user_id
        ).order_by(DeviceToken.updated_at.desc()).all()

    def fetch_active_tokens(self, user_id: str) -> List[Tuple[str, str]]:
        """Server-side bulk read of ``(token, platform)`` pairs.

        Raises ``StorageError`` when the store cannot be read.
        """
        stmt = (
            select(DeviceToken.token, DeviceToken.platform)
            .where(DeviceToken.user_id == user_id, DeviceToken.is_active.is_(True))
            .order_by(DeviceToken.created_at)
        )
        try:
            rows = self.db.execute(stmt).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not read device tokens for user {user_id}: {e}")
        return [(token, platform.value) for token, platform in rows]

    def deactivate(self, token: str) -> int:
        """Mark every row carrying ``token`` inactive. Returns rows changed."""
        result = self.db.execute(
            update(DeviceToken)
            .where(DeviceToken.token == token, DeviceToken.is_active.is_(True))
            .values(is_active=False, updated_at=utc_now())
        )
        self.db.commit()
        return result.rowcount or 0

    def deactivate_for_user(self, user_id: str, token: str) -> bool:
        """Sign-out path: deactivate only the caller's own row."""
        result = self.db.execute(
            update(DeviceToken)
            .where(DeviceToken.user_id == user_id, DeviceToken.token == token)
            .values(is_active=False, updated_at=utc_now())
        )
        self.db.commit()
        return bool(result.rowcount)

    def platform_stats(self) -> Dict[str, Any]:
        total = self.db.query(func.count(DeviceToken.id)).scalar()
        active = self.db.query(func.count(DeviceToken.id)).filter(
            DeviceToken.is_active.is_(True)
        ).scalar()
        by_platform = self.db.query(
            DeviceToken.platform,
            func.count(DeviceToken.id)
        ).filter(
            DeviceToken.is_active.is_(True)
        ).group_by(DeviceToken.platform).all()
        return {
            "total_devices": total,
            "active_devices": active,
            "inactive_devices": total - active,
            "by_platform": {p.value: c for p, c in by_platform},
        }

    def _get(self, user_id: str, token: str) -> Optional[DeviceToken]:
        return self.db.query(DeviceToken).filter(
            DeviceToken.user_id == user_id,
            DeviceToken.token == token,
        ).first()
