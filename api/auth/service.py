"""
Auth business logic: principal resolution and local accounts.
"""

from __future__ import annotations

import logging
import re

from core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    UserNotFound,
    ValidationError,
)

from . import repository, schemas, security
from .models import Principal, User, user_from_row

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
SUBJECT_FRAGMENT_LENGTH = 8


def display_name_from_claims(claims: dict, subject: str) -> str:
    """
    Pick a username for a first-seen federated identity.

    Precedence: `name` claim, then the local part of `email`, then
    `user_<last 8 alphanumerics of the subject>`.
    """
    name = str(claims.get("name") or "").strip()
    if name:
        return name

    email = str(claims.get("email") or "").strip()
    local_part = email.split("@", 1)[0].strip()
    if local_part:
        return local_part

    fragment = re.sub(r"[^A-Za-z0-9]", "", subject)[-SUBJECT_FRAGMENT_LENGTH:]
    return f"user_{fragment or 'unknown'}"


async def _get_or_create_federated_user(principal: Principal) -> dict:
    row = await repository.get_user_by_external_subject(principal.subject)
    if row is not None:
        return row

    row = await repository.insert_federated_user(
        external_subject=principal.subject,
        username=display_name_from_claims(principal.claims, principal.subject),
        email=principal.claims.get("email"),
    )
    if row is not None:
        logger.info("federated_user_created user_id=%s", row["id"])
        return row

    # Lost the insert race to a concurrent first request for this subject.
    row = await repository.get_user_by_external_subject(principal.subject)
    if row is None:
        raise UserNotFound()
    return row


async def resolve_principal(principal: Principal) -> User:
    """
    Map a verified principal to the user it belongs to.

    Local tokens are not revocable, so the user row is re-checked on every
    request; a deleted account fails with `UserNotFound`.
    """
    if principal.issuer_kind == "local":
        row = await repository.get_user_by_id(int(principal.subject))
        if row is None:
            logger.info("token_user_missing user_id=%s", principal.subject)
            raise UserNotFound()
    else:
        row = await _get_or_create_federated_user(principal)

    principal.user_id = int(row["id"])
    return user_from_row(row, prefer=principal.issuer_kind)


def require_role(user: User, role: str) -> None:
    """
    Only one role exists beyond "authenticated": administrator.
    """
    if role == "authenticated":
        return
    if role == "admin":
        if not user.is_admin:
            raise AuthorizationError()
        return
    raise AuthorizationError(error=f"Unknown role '{role}'")


def _auth_response(message: str, user: User) -> schemas.AuthResponse:
    return schemas.AuthResponse(
        message=message,
        token=security.build_access_token(user_id=user.id),
        user=schemas.UserResponse(**user.to_public()),
    )


async def signup(payload: schemas.SignupRequest) -> schemas.AuthResponse:
    username = payload.username.strip()
    email = (payload.email or "").strip()
    if not username or not email or not payload.password:
        raise ValidationError(
            "Username, email, and password must be provided",
            error="All fields are required",
        )
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            error="Password too short",
        )

    existing = await repository.find_local_user_conflict(username=username, email=email)
    if existing is not None:
        raise ConflictError(
            "A user with this email or username already exists",
            error="User already exists",
        )

    row = await repository.create_local_user(
        username=username,
        email=email,
        password_hash=security.hash_password(payload.password),
    )
    user = user_from_row(row)
    logger.info("user_signed_up user_id=%s", user.id)
    return _auth_response("User created successfully", user)


async def login(payload: schemas.LoginRequest) -> schemas.AuthResponse:
    row = await repository.get_user_by_email(payload.email)
    if row is None or not security.verify_password(payload.password, str(row.get("password_hash") or "")):
        raise AuthenticationError("Email or password is incorrect", error="Invalid credentials")

    return _auth_response("Login successful", user_from_row(row))
