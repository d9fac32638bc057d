"""
User profile endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from auth import dependencies as auth_dependencies
from auth.models import User
from core.errors import NotFoundError, ValidationError
from recipes import repository as recipes_repository
from recipes.service import clean_entries

from . import repository

router = APIRouter(prefix="/api/users")


class ProfileUpdateRequest(BaseModel):
    username: str = Field(..., max_length=100)
    email: str | None = Field(default=None, max_length=320)
    allergies: list[str] = Field(default_factory=list)


def _profile(user: dict, allergies: list[str]) -> dict:
    return {
        "id": int(user["id"]),
        "username": user["username"],
        "email": user.get("email"),
        "isAdmin": bool(user.get("is_admin", False)),
        "allergies": allergies,
    }


@router.get("")
async def list_users(_: User = Depends(auth_dependencies.require_admin)) -> list[dict]:
    return await repository.list_users()


@router.get("/me")
async def get_profile(current_user: User = Depends(auth_dependencies.get_current_user)) -> dict:
    allergies = await repository.list_preferences(current_user.id)
    return {**current_user.to_public(), "allergies": allergies}


@router.put("/me")
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: User = Depends(auth_dependencies.get_current_user),
) -> dict:
    username = request.username.strip()
    if not username:
        raise ValidationError("Username is required")
    email = (request.email or "").strip().lower() or None
    allergies = clean_entries(request.allergies)

    row = await repository.update_profile(
        current_user.id,
        username=username,
        email=email,
        preferences=allergies,
    )
    if row is None:
        raise NotFoundError("User not found")
    return _profile(row, allergies)


@router.get("/my-recipes")
async def my_recipes(current_user: User = Depends(auth_dependencies.get_current_user)) -> list[dict]:
    return await recipes_repository.list_recipes_by_creator(current_user.id)
