import json
import os

import pytest

os.environ.setdefault("AUTH_MODE", "local")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("APP_ENV", "test")

from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from core import db
from tests.fakes import FakePool

TEST_SECRET = "test-secret"
AUDIENCE = "https://recipes.example.com/api"
ISSUER = "https://tenant.example.com/"


@pytest.fixture
def fake_pool(monkeypatch):
    """Install an in-memory pool as the process-wide asyncpg pool."""
    pool = FakePool()
    monkeypatch.setattr(db, "_pool", pool)
    return pool


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def public_jwk(private_key, kid: str) -> dict:
    jwk = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "use": "sig", "alg": "RS256"})
    return jwk


@pytest.fixture
def user_rows():
    """Rows of the `"user"` table, keyed by id."""
    return {
        1: {
            "id": 1,
            "username": "creator",
            "email": "creator@example.com",
            "password_hash": "$2b$12$placeholder",
            "external_subject": None,
            "is_admin": False,
        },
        2: {
            "id": 2,
            "username": "someone",
            "email": "someone@example.com",
            "password_hash": "$2b$12$placeholder",
            "external_subject": None,
            "is_admin": False,
        },
        3: {
            "id": 3,
            "username": "moderator",
            "email": "admin@example.com",
            "password_hash": "$2b$12$placeholder",
            "external_subject": None,
            "is_admin": True,
        },
    }


@pytest.fixture
def local_users(monkeypatch, user_rows):
    """Serve local user lookups from `user_rows`."""
    from auth import repository as auth_repository

    async def get_user_by_id(user_id: int):
        return user_rows.get(user_id)

    monkeypatch.setattr(auth_repository, "get_user_by_id", get_user_by_id)
    return user_rows


def bearer(user_id: int, *, secret: str = TEST_SECRET, expires_in_s: int | None = None) -> dict:
    from auth.security import build_access_token

    token = build_access_token(user_id=user_id, secret=secret, expires_in_s=expires_in_s)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def local_app():
    """A local-mode app with its verifier mounted and no lifespan (no real DB)."""
    from auth.verifiers import LocalVerifier
    from main import create_app

    app = create_app(auth_mode="local")
    app.state.verifier = LocalVerifier(TEST_SECRET)
    return app


@pytest.fixture
def client(local_app, fake_pool, local_users):
    from fastapi.testclient import TestClient

    return TestClient(local_app)
