"""
Local-account endpoints. Only mounted when AUTH_MODE=local.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from . import dependencies, schemas, service
from .models import User

router = APIRouter(prefix="/api/auth")


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(payload: schemas.SignupRequest) -> schemas.AuthResponse:
    return await service.signup(payload)


@router.post("/login")
async def login(payload: schemas.LoginRequest) -> schemas.AuthResponse:
    return await service.login(payload)


@router.get("/me")
async def me(current_user: User = Depends(dependencies.get_current_user)) -> schemas.UserResponse:
    return schemas.UserResponse(**current_user.to_public())
