"""
Recipe ratings (one 1..5 rating per user, recipe and source).
"""

from __future__ import annotations

from core import db


async def rating_summary(*, recipe_id: int, recipe_source: str) -> dict:
    row = await db.fetch_one(
        """
        SELECT COALESCE(AVG(rating), 0)::float8 AS average_rating,
               COUNT(*)::int AS total_ratings
        FROM rating
        WHERE recipe_id = $1
          AND recipe_source = $2
        """,
        recipe_id,
        recipe_source,
    )
    return row or {"average_rating": 0.0, "total_ratings": 0}


async def upsert_rating(*, user_id: int, recipe_id: int, recipe_source: str, rating: int) -> dict | None:
    """
    Returns None when the target is a community recipe that does not exist.
    """
    return await db.fetch_one(
        """
        INSERT INTO rating (user_id, recipe_id, recipe_source, rating)
        SELECT $1::bigint, $2::bigint, $3::text, $4::int
        WHERE $3::text <> 'community'
           OR EXISTS (SELECT 1 FROM community_recipes WHERE id = $2::bigint)
        ON CONFLICT (user_id, recipe_id, recipe_source) DO UPDATE
        SET rating = EXCLUDED.rating,
            updated_at = now()
        RETURNING user_id, recipe_id, recipe_source, rating, updated_at
        """,
        user_id,
        recipe_id,
        recipe_source,
        rating,
    )
