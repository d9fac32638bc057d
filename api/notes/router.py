"""
Notes endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field

from auth import dependencies as auth_dependencies
from auth.models import User
from core import db
from core.errors import NotFoundError
from recipes.schemas import RecipeSource

from . import repository

router = APIRouter(prefix="/api/notes")


class NoteRequest(BaseModel):
    recipe_id: int = Field(..., ge=1, le=db.MAX_BIGINT)
    recipe_source: RecipeSource = "community"
    note: str = Field(..., max_length=10_000)


@router.get("/recipe/{recipe_id}")
async def get_notes(
    recipe_id: int = Path(..., ge=1, le=db.MAX_BIGINT),
    source: RecipeSource = Query(default="community"),
    current_user: User = Depends(auth_dependencies.get_current_user),
) -> list[dict]:
    return await repository.get_notes(user_id=current_user.id, recipe_id=recipe_id, recipe_source=source)


@router.post("")
async def save_note(
    request: NoteRequest,
    current_user: User = Depends(auth_dependencies.get_current_user),
) -> dict:
    row = await repository.upsert_note(
        user_id=current_user.id,
        recipe_id=request.recipe_id,
        recipe_source=request.recipe_source,
        note=request.note,
    )
    if row is None:
        raise NotFoundError("Recipe not found")
    return {"message": "Note saved", "note": row}
