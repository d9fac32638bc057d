"""
Community recipe "service layer".

This file contains logic that is independent of FastAPI's routing layer:
- Normalize and validate submitted recipes
- Read the optional image upload with a size limit
- Decide who may see and who may change a recipe (approval state machine)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from fastapi import UploadFile

from auth.models import User
from core import config
from core.errors import AuthorizationError, NotFoundError, PayloadTooLarge, ValidationError

from . import repository

logger = logging.getLogger(__name__)

# Raster formats only: SVG can carry script and is served from our own origin.
ALLOWED_IMAGE_TYPES = frozenset({"image/png", "image/jpeg", "image/gif", "image/webp"})


@dataclass(frozen=True)
class RecipeImage:
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class RecipeDraft:
    title: str
    ingredients: list[str]
    instructions: list[str]
    image: RecipeImage | None = None


def clean_entries(values: list[Any] | None) -> list[str]:
    """
    Strip entries and drop blank ones, keeping submission order.
    """
    cleaned: list[str] = []
    for value in values or []:
        if value is None:
            continue
        text = str(value).strip()
        if text:
            cleaned.append(text)
    return cleaned


def parse_json_list(raw: str | None, *, field: str) -> list[Any]:
    """
    Multipart forms carry list fields as JSON strings, e.g. '["Water","Salt"]'.
    """
    if raw is None or not raw.strip():
        return []
    try:
        value = json.loads(raw)
    except ValueError as exc:
        raise ValidationError(f"'{field}' must be a JSON array of strings") from exc
    if not isinstance(value, list) or not all(isinstance(v, (str, type(None))) for v in value):
        raise ValidationError(f"'{field}' must be a JSON array of strings")
    return value


def build_draft(
    *,
    title: str | None,
    ingredients: list[Any] | None,
    instructions: list[Any] | None,
    image: RecipeImage | None = None,
) -> RecipeDraft:
    clean_title = (title or "").strip()
    if not clean_title:
        raise ValidationError("Recipe title is required")

    clean_ingredients = clean_entries(ingredients)
    if not clean_ingredients:
        raise ValidationError("At least one ingredient is required")

    clean_instructions = clean_entries(instructions)
    if not clean_instructions:
        raise ValidationError("At least one instruction is required")

    return RecipeDraft(
        title=clean_title,
        ingredients=clean_ingredients,
        instructions=clean_instructions,
        image=image,
    )


async def read_image(file: UploadFile | None) -> RecipeImage | None:
    """
    Read an optional image upload into memory, enforcing a maximum size.
    """
    if file is None or not file.filename:
        return None

    mime_type = (file.content_type or "").split(";", 1)[0].strip().lower()
    if mime_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError("Only PNG, JPEG, GIF or WebP images are allowed")

    max_bytes = config.max_image_bytes()
    chunk_size = 1024 * 1024  # 1 MiB
    buf = bytearray()

    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise PayloadTooLarge(f"Image too large. Max is {max_bytes} bytes.")

    if not buf:
        return None
    return RecipeImage(data=bytes(buf), mime_type=mime_type)


def can_view(recipe: dict[str, Any], viewer: User | None) -> bool:
    if recipe.get("approved"):
        return True
    if viewer is None:
        return False
    return viewer.is_admin or int(recipe["created_by"]) == viewer.id


def _ensure_can_modify(recipe: dict[str, Any], user: User) -> None:
    if not (user.is_admin or int(recipe["created_by"]) == user.id):
        raise AuthorizationError(error="Only the recipe owner or an admin can change this recipe")


async def get_visible_recipe(recipe_id: int, viewer: User | None) -> dict[str, Any]:
    """
    Unapproved recipes exist only for their creator and admins; everybody
    else gets the same 404 as for a missing id.
    """
    recipe = await repository.get_recipe(recipe_id)
    if recipe is None or not can_view(recipe, viewer):
        raise NotFoundError("Recipe not found")
    return recipe


async def get_visible_image(recipe_id: int, viewer: User | None) -> RecipeImage:
    row = await repository.get_recipe_image(recipe_id)
    if row is None or not can_view(row, viewer) or row.get("image_data") is None:
        raise NotFoundError("Image not found")
    mime_type = str(row.get("image_type") or "")
    if mime_type not in ALLOWED_IMAGE_TYPES:
        mime_type = "application/octet-stream"
    return RecipeImage(data=bytes(row["image_data"]), mime_type=mime_type)


async def create_recipe(draft: RecipeDraft, *, creator: User) -> int:
    recipe_id = await repository.create_recipe(
        title=draft.title,
        created_by=creator.id,
        ingredients=draft.ingredients,
        instructions=draft.instructions,
        image_data=draft.image.data if draft.image else None,
        image_type=draft.image.mime_type if draft.image else None,
    )
    logger.info(
        "recipe_created recipe_id=%s user_id=%s ingredients=%s instructions=%s",
        recipe_id,
        creator.id,
        len(draft.ingredients),
        len(draft.instructions),
    )
    return recipe_id


async def replace_recipe(recipe_id: int, draft: RecipeDraft, *, actor: User) -> None:
    existing = await repository.get_recipe(recipe_id)
    if existing is None:
        raise NotFoundError("Recipe not found")
    _ensure_can_modify(existing, actor)

    replaced = await repository.replace_recipe(
        recipe_id,
        title=draft.title,
        ingredients=draft.ingredients,
        instructions=draft.instructions,
        image_data=draft.image.data if draft.image else None,
        image_type=draft.image.mime_type if draft.image else None,
    )
    if not replaced:
        # Deleted between the ownership check and the write.
        raise NotFoundError("Recipe not found")
    logger.info("recipe_replaced recipe_id=%s user_id=%s", recipe_id, actor.id)


async def set_approval(recipe_id: int, *, approved: bool, actor: User) -> dict[str, Any]:
    row = await repository.set_approval(recipe_id, approved=approved)
    if row is None:
        raise NotFoundError("Recipe not found")
    logger.info("recipe_moderated recipe_id=%s approved=%s admin_id=%s", recipe_id, approved, actor.id)
    return row


async def delete_recipe(recipe_id: int, *, actor: User) -> dict[str, Any]:
    existing = await repository.get_recipe(recipe_id)
    if existing is None:
        raise NotFoundError("Recipe not found")
    _ensure_can_modify(existing, actor)

    snapshot = await repository.delete_recipe(recipe_id)
    if snapshot is None:
        raise NotFoundError("Recipe not found")
    logger.info("recipe_deleted recipe_id=%s user_id=%s", recipe_id, actor.id)
    return snapshot
