"""
User profile persistence (profile fields + `user_preference` list).
"""

from __future__ import annotations

from core import db


async def list_preferences(user_id: int) -> list[str]:
    rows = await db.fetch_all(
        """
        SELECT preference
        FROM user_preference
        WHERE user_id = $1
        ORDER BY id
        """,
        user_id,
    )
    return [str(row["preference"]) for row in rows]


async def update_profile(
    user_id: int,
    *,
    username: str,
    email: str | None,
    preferences: list[str],
) -> dict | None:
    """
    Update profile fields and replace the preference list in one transaction.

    Returns None when the user does not exist (nothing is written).
    """
    async with db.transaction() as conn:
        row = await conn.fetchrow(
            """
            UPDATE "user"
            SET username = $2,
                email = $3
            WHERE id = $1
            RETURNING id, username, email, is_admin
            """,
            user_id,
            username,
            email,
        )
        if row is None:
            return None

        await conn.execute("DELETE FROM user_preference WHERE user_id = $1", user_id)
        await conn.executemany(
            "INSERT INTO user_preference (user_id, preference) VALUES ($1, $2)",
            [(user_id, preference) for preference in preferences],
        )
        return dict(row)


async def list_users() -> list[dict]:
    return await db.fetch_all(
        """
        SELECT id, username, email, is_admin, external_subject IS NOT NULL AS is_federated, created_at
        FROM "user"
        ORDER BY id
        """
    )
