import os
import time
import uuid

from datetime import datetime, timezone
from typing import Dict, Optional

import fakeredis
import logfire
import pytest

from fastapi.testclient import TestClient

os.environ.setdefault("LOG_TO_CONSOLE", "false")
logfire.configure(send_to_logfire=False, console=False)

from main import create_app  # noqa: E402
from schema.users import UserRecord  # noqa: E402
from security.signature import generate_signature  # noqa: E402
from services.errors import UserConflictError, UserNotFoundError  # noqa: E402
from services.repository import UserRepository  # noqa: E402
from utils.config import Settings  # noqa: E402

API = "/api/v1"
SIGNATURE_SECRET = "test-signature-secret"


class InMemoryUserRepository(UserRepository):
    """Dictionary backed repository used in place of MongoDB."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}

    def _find(self, **fields) -> Optional[UserRecord]:
        for user in self.users.values():
            if all(getattr(user, name) == value for name, value in fields.items()):
                return user.model_copy()
        return None

    async def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        user = self.users.get(user_id)
        return user.model_copy() if user else None

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        return self._find(email=email)

    async def find_by_username(self, username: str) -> Optional[UserRecord]:
        return self._find(username=username)

    async def create(self, record: UserRecord) -> UserRecord:
        if self._find(email=record.email) or self._find(username=record.username):
            raise UserConflictError()
        user = record.model_copy(update={"id": uuid.uuid4().hex})
        self.users[user.id] = user
        return user.model_copy()

    async def update(self, record: UserRecord) -> UserRecord:
        if record.id not in self.users:
            raise UserNotFoundError()
        user = record.model_copy(update={"updated_at": datetime.now(timezone.utc)})
        self.users[user.id] = user
        return user.model_copy()

    async def delete(self, user_id: str) -> None:
        if self.users.pop(user_id, None) is None:
            raise UserNotFoundError()


class SignedClient:
    """Wraps a TestClient and signs every request the way a well behaved client does."""

    def __init__(self, client: TestClient, secret: str = SIGNATURE_SECRET):
        self.client = client
        self.secret = secret

    @staticmethod
    def timestamp(offset_ms: int = 0) -> str:
        return str(int(time.time() * 1000) + offset_ms)

    def get_nonce(self) -> str:
        response = self.client.get(f"{API}/auth/nonce", headers={"X-Timestamp": self.timestamp()})
        assert response.status_code == 200, response.text
        return response.json()["nonce"]

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        token: Optional[str] = None,
        timestamp: Optional[str] = None,
        nonce: Optional[str] = None,
        signature: Optional[str] = None,
    ):
        timestamp = timestamp or self.timestamp()
        nonce = nonce or self.get_nonce()

        signed = {key: str(value) for key, value in (params or {}).items()}
        if json:
            signed.update({key: value for key, value in json.items() if isinstance(value, str)})
        signed["timestamp"] = timestamp
        signed["nonce"] = nonce

        headers = {
            "X-Timestamp": timestamp,
            "X-Nonce": nonce,
            "X-Sign": signature or generate_signature(signed, self.secret),
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        return self.client.request(method, f"{API}{path}", json=json, params=params, headers=headers)

    def get(self, path: str, **kwargs):
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs):
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs):
        return self.request("PUT", path, **kwargs)

    def delete(self, path: str, **kwargs):
        return self.request("DELETE", path, **kwargs)

    def register(self, email: str, username: str, password: str = "Passw0rd!"):
        return self.post("/auth/register", json={"email": email, "username": username, "password": password})

    def login(self, email: str, password: str = "Passw0rd!") -> dict:
        response = self.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response.json()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        SIGNATURE_SECRET=SIGNATURE_SECRET,
        ACCESS_TOKEN_SECRET="test-access-secret",
        REFRESH_TOKEN_SECRET="test-refresh-secret",
        LOG_TO_CONSOLE=False,
    )


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def repository() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def app(settings, redis_client, repository):
    return create_app(settings, redis_client=redis_client, user_repository=repository)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signed_client(client) -> SignedClient:
    return SignedClient(client)
