"""
Auth dependencies for protected FastAPI routes.

The verification strategy is chosen once per deployment and stored on
`app.state.verifier` at startup (see `main.py`). Every dependency below goes
through the same chain: extract bearer -> verify -> resolve user -> (gate).
"""

from __future__ import annotations

from fastapi import Depends, Header, Query, Request

from core.errors import MissingToken

from . import service
from .models import User
from .verifiers import VerificationStrategy


def get_verifier(request: Request) -> VerificationStrategy:
    verifier = getattr(request.app.state, "verifier", None)
    if verifier is None:
        raise RuntimeError("No verification strategy mounted. Is the app lifespan running?")
    return verifier


async def _authenticate(verifier: VerificationStrategy, raw_token: str) -> User:
    principal = await verifier.verify(raw_token)
    return await service.resolve_principal(principal)


async def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None),
    token: str | None = Query(default=None, include_in_schema=False),
) -> User:
    verifier = get_verifier(request)
    raw_token = verifier.extract_token(authorization=authorization, query_token=token)
    return await _authenticate(verifier, raw_token)


async def get_optional_user(
    request: Request,
    authorization: str | None = Header(default=None),
    token: str | None = Query(default=None, include_in_schema=False),
) -> User | None:
    """
    Anonymous callers get None; a caller that presents a token must present
    a valid one.
    """
    verifier = get_verifier(request)
    try:
        raw_token = verifier.extract_token(authorization=authorization, query_token=token)
    except MissingToken:
        return None
    return await _authenticate(verifier, raw_token)


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    service.require_role(current_user, "admin")
    return current_user
