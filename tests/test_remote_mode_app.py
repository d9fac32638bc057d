import time
from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest
from fastapi.testclient import TestClient

import main
from auth import repository as auth_repository
from auth.verifiers import RemoteVerifier
from core import db
from main import build_verifier, create_app
from users import repository as users_repository

from tests.conftest import AUDIENCE, ISSUER

SUBJECT = "auth0|5f7c8ec7c33c6c004bbafe82"


@pytest.fixture
def remote_client(monkeypatch, rsa_private_key, fake_pool):
    keys = MagicMock()
    keys.resolve = AsyncMock(return_value=rsa_private_key.public_key())

    row = {
        "id": 42,
        "username": "Remote Cook",
        "email": "remote@example.com",
        "password_hash": None,
        "external_subject": SUBJECT,
        "is_admin": False,
    }
    monkeypatch.setattr(auth_repository, "get_user_by_external_subject", AsyncMock(return_value=row))
    monkeypatch.setattr(users_repository, "list_preferences", AsyncMock(return_value=[]))

    app = create_app(auth_mode="remote")
    app.state.verifier = RemoteVerifier(keys, audience=AUDIENCE, issuer=ISSUER)
    return TestClient(app)


def _token(private_key) -> str:
    now = int(time.time())
    claims = {"sub": SUBJECT, "aud": AUDIENCE, "iss": ISSUER, "iat": now, "exp": now + 600}
    return jwt.encode(claims, private_key, algorithm="RS256", headers={"kid": "key-1"})


def test_local_account_endpoints_are_not_mounted(remote_client):
    resp = remote_client.post(
        "/api/auth/signup",
        json={"username": "cook", "email": "cook@example.com", "password": "s3cret-pass"},
    )

    assert resp.status_code == 404


def test_provider_token_in_header(remote_client, rsa_private_key):
    resp = remote_client.get("/api/users/me", headers={"Authorization": f"Bearer {_token(rsa_private_key)}"})

    assert resp.status_code == 200
    assert resp.json()["id"] == 42


def test_provider_token_in_query_parameter(remote_client, rsa_private_key):
    resp = remote_client.get("/api/users/me", params={"token": _token(rsa_private_key)})

    assert resp.status_code == 200
    assert resp.json()["username"] == "Remote Cook"


def test_local_token_is_rejected_in_remote_mode(remote_client):
    token = jwt.encode({"sub": "42", "exp": int(time.time()) + 600}, "test-secret", algorithm="HS256")

    resp = remote_client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid token"


def test_build_verifier_for_each_mode(monkeypatch):
    monkeypatch.setenv("AUTH0_DOMAIN", "tenant.example.com")
    monkeypatch.setenv("AUTH0_AUDIENCE", AUDIENCE)

    local, no_keys = build_verifier("local")
    remote, keys = build_verifier("remote")

    assert local.issuer_kind == "local"
    assert no_keys is None
    assert remote.issuer_kind == "remote"
    assert remote.issuer == "https://tenant.example.com/"
    assert keys.jwks_url == "https://tenant.example.com/.well-known/jwks.json"


def test_remote_mode_needs_an_audience(monkeypatch):
    monkeypatch.setenv("AUTH0_DOMAIN", "tenant.example.com")
    monkeypatch.delenv("AUTH0_AUDIENCE", raising=False)

    with pytest.raises(ValueError):
        build_verifier("remote")


def test_bad_remote_config_fails_startup_before_the_pool_opens(monkeypatch):
    monkeypatch.setenv("AUTH0_DOMAIN", "tenant.example.com")
    monkeypatch.delenv("AUTH0_AUDIENCE", raising=False)
    init_pool = AsyncMock()
    close_pool = AsyncMock()
    monkeypatch.setattr(db, "init_pool", init_pool)
    monkeypatch.setattr(db, "close_pool", close_pool)

    with pytest.raises(ValueError):
        with TestClient(create_app(auth_mode="remote")):
            pass

    init_pool.assert_not_awaited()
    close_pool.assert_not_awaited()


def test_pool_failure_still_closes_the_key_provider(monkeypatch):
    keys = MagicMock()
    keys.aclose = AsyncMock()
    monkeypatch.setattr(main, "build_verifier", MagicMock(return_value=(MagicMock(), keys)))
    monkeypatch.setattr(db, "init_pool", AsyncMock(side_effect=OSError("connection refused")))
    close_pool = AsyncMock()
    monkeypatch.setattr(db, "close_pool", close_pool)

    with pytest.raises(OSError):
        with TestClient(create_app(auth_mode="remote")):
            pass

    keys.aclose.assert_awaited_once()
    close_pool.assert_awaited_once()
