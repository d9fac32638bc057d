"""
Auth persistence helpers for the `"user"` table.
"""

from __future__ import annotations

from core import db

_USER_COLUMNS = "id, username, email, password_hash, external_subject, is_admin, created_at"


def normalize_email(email: str | None) -> str | None:
    value = (email or "").strip().lower()
    return value or None


async def get_user_by_id(user_id: int) -> dict | None:
    return await db.fetch_one(
        f"""
        SELECT {_USER_COLUMNS}
        FROM "user"
        WHERE id = $1
        """,
        user_id,
    )


async def get_user_by_email(email: str) -> dict | None:
    return await db.fetch_one(
        f"""
        SELECT {_USER_COLUMNS}
        FROM "user"
        WHERE lower(email) = lower($1)
          AND password_hash IS NOT NULL
        """,
        normalize_email(email),
    )


async def find_local_user_conflict(*, username: str, email: str) -> dict | None:
    return await db.fetch_one(
        """
        SELECT id
        FROM "user"
        WHERE password_hash IS NOT NULL
          AND (lower(email) = lower($1) OR username = $2)
        LIMIT 1
        """,
        normalize_email(email),
        username,
    )


async def get_user_by_external_subject(external_subject: str) -> dict | None:
    return await db.fetch_one(
        f"""
        SELECT {_USER_COLUMNS}
        FROM "user"
        WHERE external_subject = $1
        """,
        external_subject,
    )


async def create_local_user(*, username: str, email: str, password_hash: str) -> dict:
    row = await db.fetch_one(
        f"""
        INSERT INTO "user" (username, email, password_hash, is_admin)
        VALUES ($1, $2, $3, false)
        RETURNING {_USER_COLUMNS}
        """,
        username,
        normalize_email(email),
        password_hash,
    )
    if row is None:
        raise RuntimeError("Failed to create user.")
    return row


async def insert_federated_user(*, external_subject: str, username: str, email: str | None) -> dict | None:
    """
    Insert a user for a never-seen identity-provider subject.

    Returns None when another request inserted the same subject first; the
    unique index on `external_subject` makes that race harmless.
    """
    return await db.fetch_one(
        f"""
        INSERT INTO "user" (username, email, external_subject, is_admin)
        VALUES ($1, $2, $3, false)
        ON CONFLICT (external_subject) DO NOTHING
        RETURNING {_USER_COLUMNS}
        """,
        username,
        normalize_email(email),
        external_subject,
    )
