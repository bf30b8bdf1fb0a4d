"""Client-side push permission and device registration.

The client never raises to its caller: denial, lack of support and
registration failures all end in an inert ``RegistrationResult`` and a log
line, and the app keeps working without push.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from dreampush.client.capability import Capability, RuntimeInfo, native_platform
from dreampush.client.tap_router import route_notification_tap
from dreampush.utils.datetime import utc_now

logger = logging.getLogger(__name__)

SERVICE_WORKER_SCRIPT = "/firebase-messaging-sw.js"


class NativePushBridge(Protocol):
    async def request_permission(self) -> bool: ...

    async def register(self) -> Optional[str]:
        """Register with the OS push service and return the provider token."""
        ...


class WebPushBridge(Protocol):
    async def register_worker(self, script_url: str) -> None: ...

    async def request_permission(self) -> bool: ...

    async def get_token(self) -> Optional[str]:
        """Messaging token from the web push provider, or None if unconfigured."""
        ...


class TokenSubmitter(Protocol):
    async def submit(self, user_id: str, token: str, platform: str, device_info: Dict[str, Any]) -> bool: ...

    async def deactivate(self, user_id: str, token: str) -> bool: ...


@dataclass
class RegistrationResult:
    capability: Capability
    permission_granted: bool = False
    token: Optional[str] = None
    platform: Optional[str] = None
    submitted: bool = False
    error: Optional[str] = None


class PushRegistrationClient:
    def __init__(
        self,
        capability: Capability,
        runtime: RuntimeInfo,
        submitter: TokenSubmitter,
        native: Optional[NativePushBridge] = None,
        web: Optional[WebPushBridge] = None,
        navigate_to: Optional[Callable[[str], None]] = None,
    ):
        self.capability = capability
        self.runtime = runtime
        self.submitter = submitter
        self.native = native
        self.web = web
        self.navigate_to = navigate_to

    def device_info(self) -> Dict[str, Any]:
        return {
            "user_agent": self.runtime.user_agent,
            "language": self.runtime.language,
            "platform": self.runtime.platform,
            "registered_at": utc_now().isoformat(),
        }

    async def initialize(self, user_id: str) -> RegistrationResult:
        """Run the registration path for this session's capability.

        Safe to call repeatedly; the registry upsert makes it idempotent.
        """
        result = RegistrationResult(capability=self.capability)
        if not user_id:
            return result
        if self.capability == Capability.unsupported:
            logger.info("Push notifications not supported")
            return result

        try:
            if self.capability == Capability.native:
                await self._register_native(user_id, result)
            else:
                await self._register_web(user_id, result)
        except Exception as e:
            logger.error(f"Error initializing {self.capability.value} push: {e}")
            result.error = str(e)
        return result

    async def _register_native(self, user_id: str, result: RegistrationResult):
        if self.native is None:
            result.error = "native push bridge unavailable"
            return
        result.permission_granted = await self.native.request_permission()
        if not result.permission_granted:
            logger.info("Push notification permission denied")
            return
        token = await self.native.register()
        if not token:
            result.error = "native registration returned no token"
            logger.error("Push registration error: no token")
            return
        await self._submit(user_id, token, native_platform(self.runtime), result)

    async def _register_web(self, user_id: str, result: RegistrationResult):
        if self.web is None:
            result.error = "web push bridge unavailable"
            return
        await self.web.register_worker(SERVICE_WORKER_SCRIPT)
        result.permission_granted = await self.web.request_permission()
        if not result.permission_granted:
            logger.info("Push notification permission denied")
            return
        token = await self.web.get_token()
        if not token:
            logger.info("Web push initialized, waiting for messaging provider configuration")
            return
        await self._submit(user_id, token, "web", result)

    async def _submit(self, user_id: str, token: str, platform: str, result: RegistrationResult):
        result.token = token
        result.platform = platform
        result.submitted = await self.submitter.submit(user_id, token, platform, self.device_info())
        if result.submitted:
            logger.info("Device token registered successfully")
        else:
            result.error = "device token submission failed"
            logger.error("Error registering device token")

    async def unregister(self, user_id: str, token: str) -> bool:
        """Sign-out: mark this device inactive (the row is kept)."""
        try:
            return await self.submitter.deactivate(user_id, token)
        except Exception as e:
            logger.error(f"Error unregistering device token: {e}")
            return False

    def on_notification_tapped(self, data: Any) -> Optional[str]:
        if self.navigate_to is None:
            return None
        return route_notification_tap(data, self.navigate_to)
