"""
Favorites persistence.
"""

from __future__ import annotations

from core import db


async def list_favorites(*, user_id: int) -> list[dict]:
    return await db.fetch_all(
        """
        SELECT recipe_id, recipe_source, created_at
        FROM favorites
        WHERE user_id = $1
        ORDER BY created_at DESC, recipe_id DESC
        """,
        user_id,
    )


async def add_favorite(*, user_id: int, recipe_id: int, recipe_source: str) -> dict | None:
    """
    Returns None when nothing was inserted: either the favorite already
    exists or a community recipe with that id does not.
    """
    return await db.fetch_one(
        """
        INSERT INTO favorites (user_id, recipe_id, recipe_source)
        SELECT $1::bigint, $2::bigint, $3::text
        WHERE $3::text <> 'community'
           OR EXISTS (SELECT 1 FROM community_recipes WHERE id = $2::bigint)
        ON CONFLICT (user_id, recipe_id, recipe_source) DO NOTHING
        RETURNING recipe_id, recipe_source, created_at
        """,
        user_id,
        recipe_id,
        recipe_source,
    )


async def remove_favorite(*, user_id: int, recipe_id: int, recipe_source: str) -> bool:
    row = await db.fetch_one(
        """
        DELETE FROM favorites
        WHERE user_id = $1
          AND recipe_id = $2
          AND recipe_source = $3
        RETURNING recipe_id
        """,
        user_id,
        recipe_id,
        recipe_source,
    )
    return row is not None
