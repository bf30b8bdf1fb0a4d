"""OAuth2 access tokens for the FCM HTTP v1 API.

A service-account key is turned into a short-lived bearer token by signing
a JWT assertion (RS256) and exchanging it at the Google token endpoint with
the ``jwt-bearer`` grant. No user interaction is involved.
"""

import json
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import httpx
import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from dreampush.core.settings import settings
from dreampush.exceptions import ConfigurationError, CredentialExchangeError
from dreampush.utils.datetime import utc_now

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
REQUIRED_FIELDS = ("client_email", "private_key", "project_id")


@dataclass(frozen=True)
class ServiceAccount:
    client_email: str
    private_key: str
    project_id: str
    token_uri: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ServiceAccount":
        if not isinstance(data, dict):
            raise ConfigurationError("Service account credential must be a JSON object")
        missing = [f for f in REQUIRED_FIELDS if not data.get(f)]
        if missing:
            raise ConfigurationError(
                f"Service account credential is missing: {', '.join(missing)}"
            )
        return cls(
            client_email=data["client_email"],
            # Keys pasted into env vars usually carry escaped newlines
            private_key=data["private_key"].replace("\\n", "\n"),
            project_id=data["project_id"],
            token_uri=data.get("token_uri"),
        )


@dataclass(frozen=True)
class AccessToken:
    bearer: str
    expires_at: datetime

    def is_valid(self, at: datetime, margin: timedelta = timedelta(0)) -> bool:
        return at < self.expires_at - margin


def load_service_account(
    raw_json: Optional[str] = None,
    path: Optional[str] = None,
) -> ServiceAccount:
    """Parse the service-account JSON from an inline string or a file.

    Behavior mirrors Firebase Admin initialisation:
    - If ``raw_json`` (``FIREBASE_SERVICE_ACCOUNT``) is set, parse it.
    - Else read ``path`` (``FIREBASE_SERVICE_ACCOUNT_PATH``) if it exists.
    - Else raise ``ConfigurationError``.
    """
    if raw_json is None and path is None:
        raw_json = settings.firebase_service_account_json
        path = settings.firebase_service_account_path

    if raw_json:
        try:
            data = json.loads(raw_json)
        except ValueError as e:
            raise ConfigurationError(f"FIREBASE_SERVICE_ACCOUNT is not valid JSON: {e}")
        return ServiceAccount.from_dict(data)

    if path and os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Could not read service account file {path}: {e}")
        return ServiceAccount.from_dict(data)

    raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT not configured")


def _load_rsa_key(pem: str) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"Service account private_key is not a valid PEM key: {e}")
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ConfigurationError("Service account private_key must be an RSA key for RS256")
    return key


def build_assertion(
    account: ServiceAccount,
    issued_at: datetime,
    scope: str,
    audience: str,
    lifetime: int = 3600,
) -> str:
    """Return the signed three-part JWT assertion for ``account``."""
    iat = int(issued_at.timestamp())
    claims = {
        "iss": account.client_email,
        "scope": scope,
        "aud": audience,
        "iat": iat,
        "exp": iat + lifetime,
    }
    key = _load_rsa_key(account.private_key)
    return jwt.encode(claims, key, algorithm="RS256", headers={"typ": "JWT"})


class CredentialMinter:
    """Mints bearer tokens from a service account."""

    def __init__(
        self,
        account: ServiceAccount,
        http_client: Optional[httpx.Client] = None,
        scope: Optional[str] = None,
        token_uri: Optional[str] = None,
        lifetime: Optional[int] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.account = account
        self.scope = scope or settings.fcm_scope
        self.token_uri = token_uri or account.token_uri or settings.oauth_token_uri
        self.lifetime = lifetime or settings.access_token_lifetime
        self.timeout = timeout or settings.push_http_timeout
        self._http = http_client
        self._clock = clock

    def mint(self) -> AccessToken:
        now = self._clock()
        assertion = build_assertion(
            self.account, now, self.scope, self.token_uri, self.lifetime
        )
        client = self._http or httpx.Client(timeout=self.timeout)
        try:
            response = client.post(
                self.token_uri,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise CredentialExchangeError(f"Token endpoint unreachable: {e}")
        finally:
            if self._http is None:
                client.close()

        if not response.is_success:
            raise CredentialExchangeError(
                f"Token endpoint rejected assertion ({response.status_code}): {response.text}"
            )
        try:
            body = response.json()
        except ValueError:
            raise CredentialExchangeError("Token endpoint returned a non-JSON body")

        bearer = body.get("access_token")
        if not bearer:
            raise CredentialExchangeError("Token endpoint response has no access_token")

        expires_at = now + timedelta(seconds=self.lifetime)
        expires_in = body.get("expires_in")
        if isinstance(expires_in, (int, float)) and expires_in > 0:
            expires_at = min(expires_at, now + timedelta(seconds=expires_in))

        logger.info(
            f"Minted access token for {self.account.client_email} (expires {expires_at.isoformat()})"
        )
        return AccessToken(bearer=bearer, expires_at=expires_at)


class AccessTokenProvider:
    """Caches one access token and re-mints it before it expires."""

    def __init__(
        self,
        minter: CredentialMinter,
        refresh_margin: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.minter = minter
        margin = settings.access_token_refresh_margin if refresh_margin is None else refresh_margin
        self.refresh_margin = timedelta(seconds=margin)
        self._clock = clock
        self._token: Optional[AccessToken] = None
        self._lock = threading.Lock()

    @property
    def project_id(self) -> str:
        return self.minter.account.project_id

    def force_refresh(self) -> AccessToken:
        with self._lock:
            self._token = self.minter.mint()
            return self._token

    def get(self) -> AccessToken:
        with self._lock:
            token = self._token
            if token is not None and token.is_valid(self._clock(), self.refresh_margin):
                return token
            self._token = self.minter.mint()
            return self._token

    def bearer(self) -> str:
        return self.get().bearer
