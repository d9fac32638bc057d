"""
Per-user recipe notes (one note per user, recipe and source).
"""

from __future__ import annotations

from core import db


async def get_notes(*, user_id: int, recipe_id: int, recipe_source: str) -> list[dict]:
    return await db.fetch_all(
        """
        SELECT user_id, recipe_id, recipe_source, note, updated_at
        FROM notes
        WHERE user_id = $1
          AND recipe_id = $2
          AND recipe_source = $3
        """,
        user_id,
        recipe_id,
        recipe_source,
    )


async def upsert_note(*, user_id: int, recipe_id: int, recipe_source: str, note: str) -> dict | None:
    """
    Returns None when the target is a community recipe that does not exist.
    """
    return await db.fetch_one(
        """
        INSERT INTO notes (user_id, recipe_id, recipe_source, note)
        SELECT $1::bigint, $2::bigint, $3::text, $4::text
        WHERE $3::text <> 'community'
           OR EXISTS (SELECT 1 FROM community_recipes WHERE id = $2::bigint)
        ON CONFLICT (user_id, recipe_id, recipe_source) DO UPDATE
        SET note = EXCLUDED.note,
            updated_at = now()
        RETURNING user_id, recipe_id, recipe_source, note, updated_at
        """,
        user_id,
        recipe_id,
        recipe_source,
        note,
    )
