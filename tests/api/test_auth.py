from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from flutterprep.services.container import Services
from tests.conftest import ADMIN_EMAIL, auth


def _sign_up(client: TestClient, email: str = "dash@example.com", password: str = "secret1"):
    return client.post("/v1/auth/sign-up", json={"email": email, "password": password})


def _sign_in(client: TestClient, email: str = "dash@example.com", password: str = "secret1"):
    return client.post("/v1/auth/sign-in", json={"email": email, "password": password})


def test_sign_up_creates_user(client: TestClient) -> None:
    resp = _sign_up(client, email="  Dash@Example.com ")
    assert resp.status_code == 201
    body = resp.json()
    assert body["email"] == "dash@example.com"
    assert body["email_verified"] is False
    assert body["github"] is None


def test_sign_up_lands_on_both_stores(client: TestClient, services: Services) -> None:
    user_id = _sign_up(client).json()["id"]
    assert asyncio.run(services.relational.get_user(user_id)) is not None
    assert asyncio.run(services.document.get_user(user_id)) is not None


def test_duplicate_sign_up_is_409(client: TestClient) -> None:
    _sign_up(client)
    resp = _sign_up(client)
    assert resp.status_code == 409
    assert resp.json() == {"detail": {"message": "A user with this email already exists"}}


def test_short_password_is_422(client: TestClient) -> None:
    resp = _sign_up(client, password="abc")
    assert resp.status_code == 422
    assert "at least" in resp.json()["detail"]["message"]


def test_sign_in_returns_bearer_token(client: TestClient) -> None:
    _sign_up(client)
    resp = _sign_in(client)
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == 3600
    assert body["user"]["email"] == "dash@example.com"

    me = client.get("/v1/auth/me", headers=auth(body["access_token"]))
    assert me.status_code == 200
    assert me.json()["id"] == body["user"]["id"]


def test_sign_in_with_wrong_password_is_401(client: TestClient) -> None:
    _sign_up(client)
    resp = _sign_in(client, password="wrong-password")
    assert resp.status_code == 401
    assert resp.json()["detail"]["message"] == "Invalid email or password"


def test_admin_email_gets_admin_role(client: TestClient, services: Services) -> None:
    _sign_up(client, email=ADMIN_EMAIL)
    token = _sign_in(client, email=ADMIN_EMAIL).json()["access_token"]
    assert "admin" in services.tokens.decode_access_token(token)["roles"]

    _sign_up(client)
    token = _sign_in(client).json()["access_token"]
    assert services.tokens.decode_access_token(token)["roles"] == ["user"]


def test_me_requires_token(client: TestClient) -> None:
    assert client.get("/v1/auth/me").status_code == 401


def test_me_rejects_garbage_token(client: TestClient) -> None:
    resp = client.get("/v1/auth/me", headers=auth("not-a-jwt"))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


def test_me_for_unknown_user_is_404(client: TestClient, token: str) -> None:
    resp = client.get("/v1/auth/me", headers=auth(token))
    assert resp.status_code == 404


def test_sign_out(client: TestClient) -> None:
    _sign_up(client)
    token = _sign_in(client).json()["access_token"]
    assert client.post("/v1/auth/sign-out", headers=auth(token)).status_code == 204


def test_reset_password_does_not_reveal_accounts(client: TestClient) -> None:
    _sign_up(client)
    known = client.post("/v1/auth/reset-password", json={"email": "dash@example.com"})
    unknown = client.post("/v1/auth/reset-password", json={"email": "nobody@example.com"})
    assert known.status_code == unknown.status_code == 202
    assert known.json() == unknown.json()


def test_link_github_account(client: TestClient) -> None:
    _sign_up(client)
    token = _sign_in(client).json()["access_token"]

    resp = client.post(
        "/v1/auth/github",
        json={"username": " dash ", "avatar_url": "https://example.com/a.png"},
        headers=auth(token),
    )

    assert resp.status_code == 200
    assert resp.json()["github"] == {"username": "dash", "avatar_url": "https://example.com/a.png"}


def test_link_github_requires_username(client: TestClient) -> None:
    _sign_up(client)
    token = _sign_in(client).json()["access_token"]
    resp = client.post("/v1/auth/github", json={"username": "  "}, headers=auth(token))
    assert resp.status_code == 422
