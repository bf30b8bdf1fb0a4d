"""Ways for the registration client to reach the device token registry."""

import logging
from typing import Any, Callable, Dict, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dreampush.core.settings import settings
from dreampush.models.device_token import DevicePlatform
from dreampush.services.device_registry import DeviceTokenRegistry

logger = logging.getLogger(__name__)


class ApiTokenSubmitter:
    """Submits tokens to this service's ``/push-notifications`` endpoints.

    ``id_token`` is the signed-in user's Firebase ID token; the server
    resolves the user from it, so ``user_id`` is informational here.
    """

    def __init__(
        self,
        base_url: str,
        id_token: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.id_token = id_token
        self.timeout = timeout or settings.push_http_timeout
        self._client = client

    async def _post(self, path: str, payload: Dict[str, Any]) -> bool:
        headers = {"Authorization": f"Bearer {self.id_token}"}
        url = f"{self.base_url}/push-notifications{path}"
        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Device token request to {path} failed: {e}")
            return False
        if not response.is_success:
            logger.error(f"Device token request to {path} rejected ({response.status_code}): {response.text}")
            return False
        return True

    async def submit(self, user_id: str, token: str, platform: str, device_info: Dict[str, Any]) -> bool:
        return await self._post(
            "/register-device",
            {"token": token, "platform": platform, "device_info": device_info},
        )

    async def deactivate(self, user_id: str, token: str) -> bool:
        return await self._post("/unregister-device", {"token": token})


class RegistryTokenSubmitter:
    """Writes straight to the registry through a SQLAlchemy session factory."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def submit(self, user_id: str, token: str, platform: str, device_info: Dict[str, Any]) -> bool:
        db = self.session_factory()
        try:
            DeviceTokenRegistry(db).upsert(user_id, token, DevicePlatform(platform), device_info)
            return True
        except (SQLAlchemyError, ValueError) as e:
            db.rollback()
            logger.error(f"Error registering device token: {e}")
            return False
        finally:
            db.close()

    async def deactivate(self, user_id: str, token: str) -> bool:
        db = self.session_factory()
        try:
            return DeviceTokenRegistry(db).deactivate_for_user(user_id, token)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error unregistering device token: {e}")
            return False
        finally:
            db.close()
