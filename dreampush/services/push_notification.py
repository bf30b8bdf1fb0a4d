"""Push notification fan-out over the FCM HTTP v1 API."""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from dreampush.core.settings import settings
from dreampush.exceptions import PushErrorKind
from dreampush.models.push_notification_queue import QueuedNotification
from dreampush.services import audit
from dreampush.services.device_registry import DeviceTokenRegistry

logger = logging.getLogger(__name__)

NO_DEVICE_TOKENS = "No device tokens found"

# Error markers meaning the token will never work again
_PERMANENT_ERROR_CODES = {"UNREGISTERED"}
_PERMANENT_TEXT_MARKERS = (
    "notregistered",
    "invalidregistration",
    "registration-token-not-registered",
    "not a valid fcm registration token",
    "invalid token",
)


def _convert_data_to_strings(data: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Convert data payload values to strings (FCM requirement).

    Nested mappings and lists are sent as JSON so the client can decode them.
    """
    if not data:
        return {}
    converted = {}
    for k, v in data.items():
        if v is None:
            continue
        converted[str(k)] = json.dumps(v) if isinstance(v, (dict, list, tuple)) else str(v)
    return converted


def build_message(token: str, title: str, body: str, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Build the ``message`` envelope for one device.

    Every platform block is always present; the gateway applies only the one
    matching the token's platform.
    """
    payload_data = _convert_data_to_strings(data)
    payload_data["click_action"] = settings.click_action

    return {
        "token": token,
        "notification": {"title": title, "body": body},
        "data": payload_data,
        "android": {
            "priority": "HIGH",
            "notification": {
                "sound": "default",
                "channel_id": settings.android_channel_id,
                "icon": settings.android_icon,
                "color": settings.android_color,
            },
        },
        "apns": {
            "payload": {
                "aps": {
                    "sound": "default",
                    "badge": 1,
                    "alert": {"title": title, "body": body},
                }
            }
        },
        "webpush": {
            "notification": {
                "title": title,
                "body": body,
                "icon": settings.webpush_icon,
                "badge": settings.webpush_badge,
            },
            "fcm_options": {"link": settings.app_url},
        },
    }


@dataclass(frozen=True)
class DeviceDelivery:
    token: str
    platform: str
    success: bool
    error: Optional[str] = None
    permanent: bool = False  # token unregistered/invalid, should be deactivated


@dataclass
class DispatchResult:
    notification_id: str
    deliveries: List[DeviceDelivery] = field(default_factory=list)
    no_tokens: bool = False

    @property
    def delivered(self) -> bool:
        """At-least-one-success: True if any device accepted the push."""
        return any(d.success for d in self.deliveries)

    @property
    def error_kind(self) -> Optional[PushErrorKind]:
        if self.no_tokens:
            return PushErrorKind.no_tokens
        if not self.delivered:
            return PushErrorKind.device_delivery
        return None

    @property
    def error_text(self) -> Optional[str]:
        if self.no_tokens:
            return NO_DEVICE_TOKENS
        if self.delivered:
            return None
        return "; ".join(f"{d.platform}: {d.error}" for d in self.deliveries)


def _describe_error(response: httpx.Response) -> Tuple[str, bool]:
    """Return ``(error text, permanent)`` for a non-2xx gateway response."""
    text = response.text or ""
    permanent = False
    description = text.strip() or "Unknown FCM error"

    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        err = body["error"]
        status = err.get("status") or ""
        message = err.get("message") or ""
        codes = {
            d.get("errorCode")
            for d in err.get("details", []) or []
            if isinstance(d, dict) and d.get("errorCode")
        }
        description = " ".join(p for p in (status, message) if p) or description
        if codes:
            description = f"{description} [{', '.join(sorted(codes))}]"
        if codes & _PERMANENT_ERROR_CODES or status == "NOT_FOUND":
            permanent = True

    if response.status_code in (401, 403):
        # Our credential is at fault, not the device
        return description, False

    lowered = text.lower()
    if any(marker in lowered for marker in _PERMANENT_TEXT_MARKERS):
        permanent = True
    return description, permanent


class FcmGateway:
    """Thin HTTP client for ``projects/{id}/messages:send``."""

    def __init__(
        self,
        project_id: str,
        http_client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
        base_url: Optional[str] = None,
    ):
        self.project_id = project_id
        self.timeout = timeout or settings.push_http_timeout
        self.base_url = (base_url or settings.fcm_base_url).rstrip("/")
        self._http = http_client or httpx.Client(timeout=self.timeout)
        self._owns_client = http_client is None

    @property
    def send_url(self) -> str:
        return f"{self.base_url}/v1/projects/{self.project_id}/messages:send"

    def send(self, message: Dict[str, Any], bearer: str) -> Tuple[bool, Optional[str], bool]:
        """POST one message. Returns ``(success, error, permanent)``; never raises."""
        try:
            response = self._http.post(
                self.send_url,
                json={"message": message},
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {bearer}",
                },
                timeout=self.timeout,
            )
        except httpx.TimeoutException:
            return False, f"timed out after {self.timeout}s", False
        except httpx.HTTPError as e:
            return False, str(e) or e.__class__.__name__, False

        if response.is_success:
            return True, None, False
        error, permanent = _describe_error(response)
        return False, error, permanent

    def close(self):
        if self._owns_client:
            self._http.close()


def tokens_to_deactivate(deliveries: List[DeviceDelivery]) -> List[str]:
    """Tokens the gateway reported as permanently invalid, in delivery order."""
    seen = []
    for d in deliveries:
        if not d.success and d.permanent and d.token not in seen:
            seen.append(d.token)
    return seen


class PushNotificationService:
    """Delivers one queued notification to every active device of its user."""

    def __init__(
        self,
        registry: DeviceTokenRegistry,
        gateway: FcmGateway,
        bearer: Callable[[], str],
        max_workers: Optional[int] = None,
    ):
        self.registry = registry
        self.gateway = gateway
        self.bearer = bearer
        self.max_workers = max(1, max_workers or settings.push_fanout_workers)

    def dispatch(self, notification: QueuedNotification) -> DispatchResult:
        """Send ``notification`` to all of its user's active tokens.

        A user with no active tokens yields ``no_tokens``; no gateway call is
        made. ``StorageError`` from the token read propagates to the caller.
        """
        # Plain values: reconcile commits and would expire the row
        notification_id = notification.id
        user_id = notification.user_id
        title, body, data = notification.title, notification.body, notification.data

        result = DispatchResult(notification_id=notification_id)
        tokens = self.registry.fetch_active_tokens(user_id)
        if not tokens:
            logger.info(f"No active device tokens for user {user_id}")
            result.no_tokens = True
            return result

        def _deliver(pair: Tuple[str, str]) -> DeviceDelivery:
            token, platform = pair
            message = build_message(token, title, body, data)
            # A failed re-mint here is pass-fatal and propagates
            success, error, permanent = self.gateway.send(message, self.bearer())
            if not success:
                logger.warning(
                    f"Push to {platform} device {token[:20]}... failed: {error}"
                )
            return DeviceDelivery(token, platform, success, error, permanent)

        if self.max_workers == 1 or len(tokens) == 1:
            result.deliveries = [_deliver(pair) for pair in tokens]
        else:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(tokens))) as pool:
                result.deliveries = list(pool.map(_deliver, tokens))

        self.reconcile(result.deliveries)
        success_count = sum(1 for d in result.deliveries if d.success)
        logger.info(
            f"Notification {notification_id}: {success_count} success, "
            f"{len(result.deliveries) - success_count} failures"
        )
        return result

    def reconcile(self, deliveries: List[DeviceDelivery]) -> List[str]:
        """Deactivate permanently invalid tokens. Failures are logged, not raised."""
        deactivated = []
        for token in tokens_to_deactivate(deliveries):
            try:
                self.registry.deactivate(token)
            except Exception as e:
                self.registry.db.rollback()
                logger.error(f"Could not deactivate token {token[:20]}...: {e}")
                continue
            deactivated.append(token)
            audit.log_token_deactivated(token, reason="gateway_invalid")
            logger.warning(f"Deactivated invalid token: {token[:20]}...")
        return deactivated
