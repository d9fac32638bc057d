"""
Environment-backed settings.

Every value is read lazily so tests can monkeypatch the environment.
"""

from __future__ import annotations

import os

AUTH_MODES = ("local", "remote")

DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5 MiB


def _env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def app_env() -> str:
    return _env_str("APP_ENV", "production").lower()


def is_development() -> bool:
    return app_env() == "development"


def log_level() -> str:
    return _env_str("LOG_LEVEL", "INFO").upper()


def port() -> int:
    return _env_int("PORT", 5000)


def frontend_url() -> str:
    return _env_str("FRONTEND_URL", "http://localhost:3000")


def auth_mode() -> str:
    mode = _env_str("AUTH_MODE", "local").lower()
    if mode not in AUTH_MODES:
        raise RuntimeError(f"AUTH_MODE must be one of {AUTH_MODES}, got '{mode}'.")
    return mode


def jwt_secret() -> str:
    # Local default keeps development simple.
    # In production, set JWT_SECRET in environment.
    return _env_str("JWT_SECRET", "dev-change-this-secret")


def jwt_expire_days() -> int:
    return _env_int("JWT_EXPIRE_DAYS", 7)


def auth0_domain() -> str:
    return _env_str("AUTH0_DOMAIN").rstrip("/")


def auth0_audience() -> str:
    return _env_str("AUTH0_AUDIENCE")


def auth0_issuer() -> str:
    explicit = _env_str("AUTH0_ISSUER")
    if explicit:
        return explicit
    domain = auth0_domain()
    return f"https://{domain}/" if domain else ""


def jwks_url() -> str:
    explicit = _env_str("JWKS_URL")
    if explicit:
        return explicit
    domain = auth0_domain()
    return f"https://{domain}/.well-known/jwks.json" if domain else ""


def jwks_requests_per_minute() -> int:
    return max(1, _env_int("JWKS_REQUESTS_PER_MINUTE", 5))


def jwks_timeout_s() -> float:
    return float(max(1, _env_int("JWKS_TIMEOUT_S", 30)))


def max_image_bytes() -> int:
    value = _env_int("MAX_IMAGE_BYTES", DEFAULT_MAX_IMAGE_BYTES)
    return value if value > 0 else DEFAULT_MAX_IMAGE_BYTES


def database_url() -> str:
    url = _env_str("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set.")
    return url


def db_pool_min_size() -> int:
    return max(1, _env_int("DB_POOL_MIN_SIZE", 1))


def db_pool_max_size() -> int:
    return max(db_pool_min_size(), _env_int("DB_POOL_MAX_SIZE", 10))


def db_command_timeout_s() -> float:
    return float(max(1, _env_int("DB_COMMAND_TIMEOUT_S", 30)))
