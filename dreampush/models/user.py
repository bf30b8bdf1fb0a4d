from sqlalchemy import Column, String, DateTime, Enum
from sqlalchemy.orm import relationship
import enum
from datetime import datetime, UTC
from dreampush.db import Base
import uuid

class UserRole(enum.Enum):
    user = "user"
    admin = "admin"

class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.user)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))

    # Registered push devices (soft-deactivated, never deleted by the pipeline)
    device_tokens = relationship("DeviceToken", back_populates="user", cascade="all, delete-orphan")
