from typing import Annotated, Optional

import pytest

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from schema.security import Identity
from security.blacklist import RedisTokenBlacklist
from security.errors import UnauthenticatedError
from security.helpers import (
    extract_bearer_token,
    get_optional_identity,
    get_password_hash,
    verify_password,
)
from security.tokens import JWTTokenService


@pytest.mark.parametrize(
    "header",
    [None, "", "Bearer", "Bearer ", "Basic dXNlcjpwYXNz", "bearer abc", "Token abc"],
)
def test_invalid_authorization_header(header):
    with pytest.raises(UnauthenticatedError):
        extract_bearer_token(header)


def test_bearer_token_is_extracted():
    assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"


def test_password_hashing():
    hashed = get_password_hash("Passw0rd!")

    assert hashed != "Passw0rd!"
    assert verify_password("Passw0rd!", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("", hashed)
    assert not verify_password("Passw0rd!", "not-a-hash")


class TestRouteGuards:
    def test_missing_token(self, signed_client):
        response = signed_client.get("/users/me")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_refresh_token_is_not_an_access_token(self, signed_client):
        signed_client.register("u1@example.com", "user1")
        tokens = signed_client.login("u1@example.com")

        response = signed_client.get("/users/me", token=tokens["refresh_token"])

        assert response.status_code == 401

    def test_admin_routes_require_admin_role(self, signed_client):
        user_id = signed_client.register("u1@example.com", "user1").json()["id"]
        tokens = signed_client.login("u1@example.com")

        response = signed_client.get(f"/admin/users/{user_id}", token=tokens["access_token"])

        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"


def test_optional_identity(redis_client):
    tokens = JWTTokenService("access-secret", "refresh-secret", RedisTokenBlacklist(redis_client))
    app = FastAPI()
    app.state.token_service = tokens

    @app.get("/whoami")
    def whoami(identity: Annotated[Optional[Identity], Depends(get_optional_identity)]):
        return {"user_id": identity.user_id if identity else None}

    access_token = tokens.issue_pair("user-1", "u1@example.com", "user").access_token
    client = TestClient(app)

    assert client.get("/whoami").json() == {"user_id": None}
    assert client.get("/whoami", headers={"Authorization": "Bearer garbage"}).json() == {"user_id": None}
    response = client.get("/whoami", headers={"Authorization": f"Bearer {access_token}"})
    assert response.json() == {"user_id": "user-1"}
