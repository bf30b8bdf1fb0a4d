import json
import os
import urllib.parse
import uuid
from datetime import datetime, timedelta, UTC

import httpx
import pytest

os.environ["ENV"] = "test"
# Use SQLite in-memory for test DB
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from dreampush.main import app
from dreampush.db import Base, engine, get_db
from dreampush.models.user import User, UserRole
from dreampush.models.device_token import DeviceToken, DevicePlatform
from dreampush.models.push_notification_queue import QueuedNotification, QueueStatus
from dreampush.services.credentials import ServiceAccount

# The in-memory engine uses a StaticPool so TestClient requests and test
# setup share one database.
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Dependency override
def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

PROJECT_ID = "dream-journal-test"


@pytest.fixture(autouse=True)
def setup_test_db():
    # recreate schema for each test to ensure isolation
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    # drop per-test auth overrides, keep the DB override
    for dep in list(app.dependency_overrides):
        if dep is not get_db:
            del app.dependency_overrides[dep]


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def make_user(db_session):
    def _make(role: UserRole = UserRole.user, name: str = "Dreamer"):
        user = User(
            id=str(uuid.uuid4()),
            name=name,
            email=f"user+{uuid.uuid4().hex[:8]}@example.com",
            role=role,
            created_at=datetime.now(UTC),
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def dreamer(make_user):
    return make_user()


@pytest.fixture
def add_token(db_session):
    def _add(user, token: str, platform: str = "android", active: bool = True):
        row = DeviceToken(
            user_id=user.id,
            token=token,
            platform=DevicePlatform(platform),
            device_info={"user_agent": "pytest"},
            is_active=active,
        )
        db_session.add(row)
        db_session.commit()
        return row
    return _add


@pytest.fixture
def enqueue(db_session):
    counter = {"n": 0}

    def _enqueue(user_id: str, title: str = "New message", body: str = "You have a new message",
                 data=None, status: QueueStatus = QueueStatus.pending):
        # strictly increasing enqueue times keep FIFO assertions deterministic
        counter["n"] += 1
        row = QueuedNotification(
            user_id=user_id,
            title=title,
            body=body,
            data=data if data is not None else {"type": "message"},
            status=status,
            created_at=datetime(2026, 1, 1, tzinfo=UTC) + timedelta(seconds=counter["n"]),
        )
        db_session.add(row)
        db_session.commit()
        return row
    return _enqueue


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key):
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def service_account_dict(private_key_pem):
    return {
        "type": "service_account",
        "project_id": PROJECT_ID,
        "client_email": "pusher@dream-journal-test.iam.gserviceaccount.com",
        "private_key": private_key_pem,
    }


@pytest.fixture
def service_account(service_account_dict):
    return ServiceAccount.from_dict(service_account_dict)


class FakeGoogle:
    """Stands in for the OAuth2 token endpoint and the FCM send endpoint.

    ``fcm_responses`` maps a device token to ``(status_code, json_body)``;
    unknown tokens succeed. Set ``fcm_errors[token]`` to an exception to
    simulate a transport failure.
    """

    def __init__(self):
        self.token_requests = []
        self.fcm_requests = []
        self.fcm_responses = {}
        self.fcm_errors = {}
        self.token_status = 200
        self.token_body = None
        self.token_error = None
        self.minted = 0
        self.on_send = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "oauth2.googleapis.com":
            self.token_requests.append(dict(urllib.parse.parse_qsl(request.content.decode())))
            if self.token_error is not None:
                raise self.token_error
            self.minted += 1
            body = self.token_body if self.token_body is not None else {
                "access_token": f"ya29.token-{self.minted}",
                "expires_in": 3599,
                "token_type": "Bearer",
            }
            return httpx.Response(self.token_status, json=body)

        if request.url.host == "fcm.googleapis.com":
            payload = json.loads(request.content)
            self.fcm_requests.append({
                "url": str(request.url),
                "authorization": request.headers.get("Authorization"),
                "message": payload["message"],
            })
            token = payload["message"]["token"]
            if self.on_send is not None:
                self.on_send(token)
            if token in self.fcm_errors:
                raise self.fcm_errors[token]
            status, body = self.fcm_responses.get(
                token, (200, {"name": f"projects/{PROJECT_ID}/messages/{len(self.fcm_requests)}"})
            )
            return httpx.Response(status, json=body)

        return httpx.Response(404, json={"error": "unexpected host"})

    @staticmethod
    def fcm_unregistered():
        return (404, {
            "error": {
                "code": 404,
                "message": "Requested entity was not found.",
                "status": "NOT_FOUND",
                "details": [{
                    "@type": "type.googleapis.com/google.firebase.fcm.v1.FcmError",
                    "errorCode": "UNREGISTERED",
                }],
            }
        })

    @staticmethod
    def fcm_invalid_token():
        return (400, {
            "error": {
                "code": 400,
                "message": "The registration token is not a valid FCM registration token",
                "status": "INVALID_ARGUMENT",
                "details": [{
                    "@type": "type.googleapis.com/google.firebase.fcm.v1.FcmError",
                    "errorCode": "INVALID_ARGUMENT",
                }],
            }
        })

    @staticmethod
    def fcm_unavailable():
        return (503, {"error": {"code": 503, "message": "The service is currently unavailable.", "status": "UNAVAILABLE"}})

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_google():
    return FakeGoogle()


