from dreampush.client.capability import Capability, RuntimeInfo, detect_capability
from dreampush.client.registration import PushRegistrationClient, RegistrationResult
from dreampush.client.tap_router import resolve_destination, route_notification_tap

__all__ = [
    "Capability",
    "RuntimeInfo",
    "detect_capability",
    "PushRegistrationClient",
    "RegistrationResult",
    "resolve_destination",
    "route_notification_tap",
]
