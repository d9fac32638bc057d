"""
Community recipe persistence.

A recipe is an aggregate: one `community_recipes` row owning its
`ingredients` and `instructions` rows. Every write that touches more than one
of those tables runs inside a single `db.transaction()`, so a failure at any
statement rolls the whole unit back and partial recipes are never visible.

Children are never diffed: a replace deletes them and inserts the new set.
"""

from __future__ import annotations

from typing import Any

import asyncpg

from core import db

_RECIPE_COLUMNS = """
    id, title, image_type, image_data IS NOT NULL AS has_image,
    created_by, approved, created_at, updated_at
"""


async def _insert_children(
    conn: asyncpg.Connection,
    recipe_id: int,
    *,
    ingredients: list[str],
    instructions: list[str],
) -> None:
    # Ingredients keep submission order through their serial id.
    await conn.executemany(
        "INSERT INTO ingredients (recipe_id, ingredient) VALUES ($1, $2)",
        [(recipe_id, ingredient) for ingredient in ingredients],
    )
    await conn.executemany(
        "INSERT INTO instructions (recipe_id, step_number, instruction) VALUES ($1, $2, $3)",
        [(recipe_id, step_number, text) for step_number, text in enumerate(instructions, start=1)],
    )


async def _delete_children(conn: asyncpg.Connection, recipe_id: int) -> None:
    await conn.execute("DELETE FROM ingredients WHERE recipe_id = $1", recipe_id)
    await conn.execute("DELETE FROM instructions WHERE recipe_id = $1", recipe_id)


async def _fetch_aggregate(conn: asyncpg.Connection, recipe_id: int) -> dict[str, Any] | None:
    row = await conn.fetchrow(
        f"""
        SELECT {_RECIPE_COLUMNS}
        FROM community_recipes
        WHERE id = $1
        """,
        recipe_id,
    )
    if row is None:
        return None

    ingredients = await conn.fetch(
        "SELECT id, ingredient FROM ingredients WHERE recipe_id = $1 ORDER BY id",
        recipe_id,
    )
    instructions = await conn.fetch(
        "SELECT step_number, instruction FROM instructions WHERE recipe_id = $1 ORDER BY step_number",
        recipe_id,
    )

    recipe = dict(row)
    recipe["ingredients"] = [dict(r) for r in ingredients]
    recipe["instructions"] = [dict(r) for r in instructions]
    return recipe


async def create_recipe(
    *,
    title: str,
    created_by: int,
    ingredients: list[str],
    instructions: list[str],
    image_data: bytes | None = None,
    image_type: str | None = None,
) -> int:
    """
    Insert a recipe + its ingredients + its instructions in one transaction.

    New recipes start unapproved. Returns the new recipe id.
    """
    async with db.transaction() as conn:
        row = await conn.fetchrow(
            """
            INSERT INTO community_recipes
              (title, image_data, image_type, created_by, approved, created_at, updated_at)
            VALUES ($1, $2, $3, $4, false, now(), now())
            RETURNING id
            """,
            title,
            image_data,
            image_type,
            created_by,
        )
        if row is None or "id" not in row:
            raise RuntimeError("Failed to insert recipe.")

        recipe_id = int(row["id"])
        await _insert_children(conn, recipe_id, ingredients=ingredients, instructions=instructions)
        return recipe_id


async def replace_recipe(
    recipe_id: int,
    *,
    title: str,
    ingredients: list[str],
    instructions: list[str],
    image_data: bytes | None = None,
    image_type: str | None = None,
) -> bool:
    """
    Overwrite a recipe and its full child set in one transaction.

    The stored image is only replaced when a new one is given. Returns False
    when the recipe does not exist (nothing is written).
    """
    async with db.transaction() as conn:
        if image_data is None:
            row = await conn.fetchrow(
                """
                UPDATE community_recipes
                SET title = $2,
                    updated_at = now()
                WHERE id = $1
                RETURNING id
                """,
                recipe_id,
                title,
            )
        else:
            row = await conn.fetchrow(
                """
                UPDATE community_recipes
                SET title = $2,
                    image_data = $3,
                    image_type = $4,
                    updated_at = now()
                WHERE id = $1
                RETURNING id
                """,
                recipe_id,
                title,
                image_data,
                image_type,
            )
        if row is None:
            return False

        await _delete_children(conn, recipe_id)
        await _insert_children(conn, recipe_id, ingredients=ingredients, instructions=instructions)
        return True


async def set_approval(recipe_id: int, *, approved: bool) -> dict[str, Any] | None:
    return await db.fetch_one(
        """
        UPDATE community_recipes
        SET approved = $2,
            updated_at = now()
        WHERE id = $1
        RETURNING id, approved, updated_at
        """,
        recipe_id,
        approved,
    )


async def delete_recipe(recipe_id: int) -> dict[str, Any] | None:
    """
    Delete a recipe, its children and community-sourced references to it.

    Returns the aggregate as it was before deletion, or None when not found.
    """
    async with db.transaction() as conn:
        snapshot = await _fetch_aggregate(conn, recipe_id)
        if snapshot is None:
            return None

        await _delete_children(conn, recipe_id)
        for table in ("favorites", "notes", "rating"):
            await conn.execute(
                f"DELETE FROM {table} WHERE recipe_id = $1 AND recipe_source = 'community'",
                recipe_id,
            )
        await conn.execute("DELETE FROM community_recipes WHERE id = $1", recipe_id)
        return snapshot


async def get_recipe(recipe_id: int) -> dict[str, Any] | None:
    async with db.transaction() as conn:
        return await _fetch_aggregate(conn, recipe_id)


async def get_recipe_image(recipe_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(
        """
        SELECT id, image_data, image_type, created_by, approved
        FROM community_recipes
        WHERE id = $1
        """,
        recipe_id,
    )


async def list_recipes(*, approved: bool, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT {_RECIPE_COLUMNS}
        FROM community_recipes
        WHERE approved = $1
        ORDER BY created_at DESC, id DESC
        LIMIT $2
        OFFSET $3
        """,
        approved,
        limit,
        offset,
    )


async def list_recipes_by_creator(user_id: int) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT {_RECIPE_COLUMNS}
        FROM community_recipes
        WHERE created_by = $1
        ORDER BY created_at DESC, id DESC
        """,
        user_id,
    )


async def recipe_exists(recipe_id: int) -> bool:
    row = await db.fetch_one(
        """
        SELECT 1 AS ok
        FROM community_recipes
        WHERE id = $1
        LIMIT 1
        """,
        recipe_id,
    )
    return row is not None
