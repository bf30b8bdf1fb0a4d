from dreampush.models.user import User, UserRole
from dreampush.models.device_token import DeviceToken, DevicePlatform
from dreampush.models.push_notification_queue import QueuedNotification, QueueStatus

__all__ = [
    "User",
    "UserRole",
    "DeviceToken",
    "DevicePlatform",
    "QueuedNotification",
    "QueueStatus",
]
