"""
FastAPI router for community recipe endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Path, Query, Response, UploadFile, status

from auth import dependencies as auth_dependencies
from auth.models import User
from core import db

from . import repository, schemas, service

router = APIRouter(prefix="/api/community")


@router.get("")
async def list_recipes(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0, le=db.MAX_BIGINT),
) -> list[dict]:
    """
    Public listing: approved recipes only.
    """
    return await repository.list_recipes(approved=True, limit=limit, offset=offset)


@router.get("/pending")
async def list_pending_recipes(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0, le=db.MAX_BIGINT),
    _: User = Depends(auth_dependencies.require_admin),
) -> list[dict]:
    return await repository.list_recipes(approved=False, limit=limit, offset=offset)


@router.get("/{recipe_id}")
async def get_recipe(
    recipe_id: int = Path(..., ge=1, le=db.MAX_BIGINT),
    viewer: User | None = Depends(auth_dependencies.get_optional_user),
) -> dict:
    return await service.get_visible_recipe(recipe_id, viewer)


@router.get("/{recipe_id}/image")
async def get_recipe_image(
    recipe_id: int = Path(..., ge=1, le=db.MAX_BIGINT),
    viewer: User | None = Depends(auth_dependencies.get_optional_user),
) -> Response:
    image = await service.get_visible_image(recipe_id, viewer)
    return Response(
        content=image.data,
        media_type=image.mime_type,
        headers={"X-Content-Type-Options": "nosniff"},
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_recipe(
    title: str | None = Form(default=None),
    ingredients: str | None = Form(default=None),
    instructions: str | None = Form(default=None),
    image: UploadFile | None = File(default=None),
    current_user: User = Depends(auth_dependencies.get_current_user),
) -> dict:
    draft = service.build_draft(
        title=title,
        ingredients=service.parse_json_list(ingredients, field="ingredients"),
        instructions=service.parse_json_list(instructions, field="instructions"),
        image=await service.read_image(image),
    )
    recipe_id = await service.create_recipe(draft, creator=current_user)
    return {"message": "Recipe created successfully", "recipe_id": recipe_id}


@router.put("/{recipe_id}")
async def replace_recipe(
    recipe_id: int = Path(..., ge=1, le=db.MAX_BIGINT),
    title: str | None = Form(default=None),
    ingredients: str | None = Form(default=None),
    instructions: str | None = Form(default=None),
    image: UploadFile | None = File(default=None),
    current_user: User = Depends(auth_dependencies.get_current_user),
) -> dict:
    draft = service.build_draft(
        title=title,
        ingredients=service.parse_json_list(ingredients, field="ingredients"),
        instructions=service.parse_json_list(instructions, field="instructions"),
        image=await service.read_image(image),
    )
    await service.replace_recipe(recipe_id, draft, actor=current_user)
    return {"message": "Recipe updated successfully", "recipe_id": recipe_id}


@router.patch("/{recipe_id}/approval")
async def set_recipe_approval(
    payload: schemas.ApprovalRequest,
    recipe_id: int = Path(..., ge=1, le=db.MAX_BIGINT),
    admin: User = Depends(auth_dependencies.require_admin),
) -> dict:
    row = await service.set_approval(recipe_id, approved=payload.approved, actor=admin)
    return {
        "message": "Recipe approved" if row["approved"] else "Recipe rejected",
        "recipe_id": int(row["id"]),
        "approved": bool(row["approved"]),
    }


@router.delete("/{recipe_id}")
async def delete_recipe(
    recipe_id: int = Path(..., ge=1, le=db.MAX_BIGINT),
    current_user: User = Depends(auth_dependencies.get_current_user),
) -> dict:
    snapshot = await service.delete_recipe(recipe_id, actor=current_user)
    return {"message": "Recipe deleted", "recipe": snapshot}
