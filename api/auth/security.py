"""
Auth security helpers for self-issued (local) sessions.
"""

from __future__ import annotations

import time

import bcrypt
import jwt

from core import config

LOCAL_ALGORITHM = "HS256"


def now_epoch_s() -> int:
    return int(time.time())


def hash_password(plain_password: str) -> str:
    password = (plain_password or "").encode("utf-8")
    if not password:
        raise ValueError("Password is empty.")
    return bcrypt.hashpw(password, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    password = (plain_password or "").encode("utf-8")
    hashed = (password_hash or "").encode("utf-8")
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        return False


def build_access_token(*, user_id: int, secret: str | None = None, expires_in_s: int | None = None) -> str:
    issued_at = now_epoch_s()
    lifetime = expires_in_s if expires_in_s is not None else config.jwt_expire_days() * 24 * 60 * 60

    payload = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(payload, secret or config.jwt_secret(), algorithm=LOCAL_ALGORITHM)
