"""Push notification API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from dreampush.db import get_db
from dreampush.services.auth import get_current_user, require_admin
from dreampush.models.user import User
from dreampush.models.device_token import DevicePlatform
from dreampush.schemas.push_notification import (
    RegisterDeviceRequest,
    RegisterDeviceResponse,
    UnregisterDeviceRequest,
    SendPushRequest,
)
from dreampush.services import audit
from dreampush.services.device_registry import DeviceTokenRegistry
from dreampush.services.notification_queue import NotificationQueue

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/register-device", response_model=RegisterDeviceResponse)
def register_device(
    request: RegisterDeviceRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Register a device for push notifications.

    Called by the app after obtaining a device token and user permission.
    Registering the same token again refreshes its metadata and reactivates
    it instead of creating a second row.
    """
    device_info = request.device_info.model_dump(exclude_none=True) if request.device_info else None
    row, created = DeviceTokenRegistry(db).upsert(
        current_user.id,
        request.token,
        DevicePlatform(request.platform.value),
        device_info,
    )
    audit.log_device_registered(current_user.id, request.token, row.platform.value, created)

    return RegisterDeviceResponse(
        id=row.id,
        user_id=row.user_id,
        platform=row.platform.value,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
        message="Device registered successfully" if created else "Device token updated",
    )


@router.post("/unregister-device")
def unregister_device(
    request: UnregisterDeviceRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Deactivate a device on sign-out.

    The row is kept with ``is_active = false`` so its history survives.
    """
    found = DeviceTokenRegistry(db).deactivate_for_user(current_user.id, request.token)
    audit.log_device_unregistered(current_user.id, request.token, found)
    if not found:
        # Token not found or belongs to different user - that's fine, no error
        return {"message": "Device unregistered", "found": False}
    return {"message": "Device unregistered successfully", "found": True}


@router.get("/my-devices")
def list_my_devices(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List all registered devices for the current user."""
    tokens = DeviceTokenRegistry(db).list_for_user(current_user.id)

    return [
        {
            "id": t.id,
            "platform": t.platform.value,
            "device_info": t.device_info,
            "is_active": t.is_active,
            "created_at": t.created_at.isoformat() if t.created_at else None,
            "updated_at": t.updated_at.isoformat() if t.updated_at else None
        }
        for t in tokens
    ]


# Admin endpoints for testing and management

@router.post("/admin/send-test")
def admin_send_test_notification(
    request: SendPushRequest,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Queue a test push notification for a specific user.

    Delivery happens on the next processing pass.
    """
    queued = NotificationQueue(db).enqueue(
        request.user_id, request.title, request.body, request.data
    )
    logger.info(f"Admin {admin_user.id} queued test notification {queued.id} for {request.user_id}")
    return {
        "message": "Test notification queued",
        "notification_id": queued.id,
        "status": queued.status.value,
    }


@router.get("/admin/device-stats")
def admin_device_stats(
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Get statistics about registered devices."""
    return DeviceTokenRegistry(db).platform_stats()
