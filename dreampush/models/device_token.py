"""Device token model for push notifications."""

from sqlalchemy import Column, String, DateTime, Boolean, JSON, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
from dreampush.db import Base
import uuid
import enum


class DevicePlatform(enum.Enum):
    ios = "ios"
    android = "android"
    web = "web"


class DeviceToken(Base):
    """Stores FCM device tokens for push notifications.

    A user can own many devices, and the same (user, token) pair exists at
    most once: re-registering refreshes ``device_info`` and ``updated_at``.
    Rows are deactivated rather than deleted so the history survives sign-out
    and gateway invalidation.
    """
    __tablename__ = "device_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "token", name="uq_device_tokens_user_token"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String, nullable=False, index=True)
    platform = Column(SQLEnum(DevicePlatform), nullable=False)
    device_info = Column(JSON, nullable=True)  # user agent, language, platform string, registered_at
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))

    user = relationship("User", back_populates="device_tokens")

    def __repr__(self):
        return f"<DeviceToken user={self.user_id} platform={self.platform.value} active={self.is_active}>"
