"""Pydantic schemas for push notification endpoints."""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from enum import Enum
from datetime import datetime


class DevicePlatformEnum(str, Enum):
    ios = "ios"
    android = "android"
    web = "web"


class DeviceInfo(BaseModel):
    """Free-form metadata captured by the client at registration time."""
    user_agent: Optional[str] = Field(None, alias="userAgent")
    language: Optional[str] = None
    platform: Optional[str] = None
    registered_at: Optional[str] = Field(None, alias="registeredAt")

    model_config = {"populate_by_name": True, "extra": "allow"}


class RegisterDeviceRequest(BaseModel):
    """Request to register a device for push notifications."""
    token: str = Field(..., min_length=1, description="Opaque device token from the push provider")
    platform: DevicePlatformEnum = Field(..., description="Device platform (ios, android, web)")
    device_info: Optional[DeviceInfo] = Field(None, description="Client metadata")

    model_config = {
        "json_schema_extra": {
            "example": {
                "token": "dKzH7v...:APA91b...",
                "platform": "android",
                "device_info": {
                    "user_agent": "Mozilla/5.0 (Linux; Android 14)",
                    "language": "en-US",
                    "platform": "Linux armv8l",
                    "registered_at": "2026-01-19T10:00:00Z"
                }
            }
        }
    }


class RegisterDeviceResponse(BaseModel):
    """Response after registering a device."""
    id: str
    user_id: str
    platform: str
    is_active: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    message: str = "Device registered successfully"


class UnregisterDeviceRequest(BaseModel):
    """Request to deactivate a device (e.g., on sign-out)."""
    token: str = Field(..., min_length=1, description="Device token to deactivate")


class SendPushRequest(BaseModel):
    """Admin request to queue a push notification (for testing/admin use)."""
    user_id: str = Field(..., description="Target user ID")
    title: str = Field(..., description="Notification title")
    body: str = Field(..., description="Notification body text")
    data: Optional[Dict[str, Any]] = Field(None, description="Typed payload used for tap routing")


class ProcessResult(BaseModel):
    """Counters for one queue processing pass."""
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0  # claimed by a concurrent pass
    errored: int = 0  # storage error, left pending for the next pass

    @property
    def message(self) -> str:
        if self.processed == 0:
            return "No pending notifications"
        return "Push notifications processed"
