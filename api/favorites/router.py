"""
Favorites endpoints. The acting user always comes from the token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from auth import dependencies as auth_dependencies
from auth.models import User
from core import db
from core.errors import ConflictError, NotFoundError
from recipes import repository as recipes_repository
from recipes.schemas import RecipeSource

from . import repository

router = APIRouter(prefix="/api/favorites")


class FavoriteRequest(BaseModel):
    recipe_id: int = Field(..., ge=1, le=db.MAX_BIGINT)
    recipe_source: RecipeSource = "community"


@router.get("")
async def list_favorites(current_user: User = Depends(auth_dependencies.get_current_user)) -> list[dict]:
    return await repository.list_favorites(user_id=current_user.id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_favorite(
    request: FavoriteRequest,
    current_user: User = Depends(auth_dependencies.get_current_user),
) -> dict:
    row = await repository.add_favorite(
        user_id=current_user.id,
        recipe_id=request.recipe_id,
        recipe_source=request.recipe_source,
    )
    if row is None:
        if request.recipe_source == "community" and not await recipes_repository.recipe_exists(request.recipe_id):
            raise NotFoundError("Recipe not found")
        raise ConflictError("Recipe already in favorites", error="Already favorited")
    return {"message": "Recipe added to favorites", "favorite": row}


@router.delete("")
async def remove_favorite(
    request: FavoriteRequest,
    current_user: User = Depends(auth_dependencies.get_current_user),
) -> dict:
    removed = await repository.remove_favorite(
        user_id=current_user.id,
        recipe_id=request.recipe_id,
        recipe_source=request.recipe_source,
    )
    if not removed:
        raise NotFoundError("Favorite not found")
    return {"message": "Recipe removed from favorites"}
