"""
Ratings endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field

from auth import dependencies as auth_dependencies
from auth.models import User
from core import db
from core.errors import NotFoundError, ValidationError
from recipes.schemas import RecipeSource

from . import repository

MIN_RATING = 1
MAX_RATING = 5

router = APIRouter(prefix="/api/ratings")


class RatingRequest(BaseModel):
    recipe_id: int = Field(..., ge=1, le=db.MAX_BIGINT)
    recipe_source: RecipeSource = "community"
    rating: int


@router.get("/recipe/{recipe_id}")
async def get_rating_summary(
    recipe_id: int = Path(..., ge=1, le=db.MAX_BIGINT),
    source: RecipeSource = Query(default="community"),
    _: User = Depends(auth_dependencies.get_current_user),
) -> dict:
    row = await repository.rating_summary(recipe_id=recipe_id, recipe_source=source)
    return {
        "average_rating": float(row.get("average_rating") or 0.0),
        "total_ratings": int(row.get("total_ratings") or 0),
    }


@router.post("")
async def save_rating(
    request: RatingRequest,
    current_user: User = Depends(auth_dependencies.get_current_user),
) -> dict:
    if not MIN_RATING <= request.rating <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")

    row = await repository.upsert_rating(
        user_id=current_user.id,
        recipe_id=request.recipe_id,
        recipe_source=request.recipe_source,
        rating=request.rating,
    )
    if row is None:
        raise NotFoundError("Recipe not found")
    return {"message": "Rating saved", "rating": row}
