"""
Bearer-token verification strategies.

A deployment mounts exactly one strategy (see `AUTH_MODE` in `core/config.py`):

- `LocalVerifier`: tokens we issued ourselves, HS256 with a shared secret.
  The subject is already our numeric user id.
- `RemoteVerifier`: tokens issued by the identity provider, verified with an
  asymmetric public key looked up by `kid` through `JWKSProvider`. The
  subject is the provider's opaque `sub` and still has to be resolved to a
  user row.

Both return a `Principal`; neither queries the database.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable

import jwt

from core import db
from core.errors import InvalidToken, MissingToken, TokenExpired, UpstreamError

from .jwks import JWKSProvider
from .models import IssuerKind, Principal
from .security import LOCAL_ALGORITHM

logger = logging.getLogger(__name__)

# Only asymmetric algorithms may be used with provider-issued tokens. Anything
# else ("none", HS256 signed with the public key, ...) is rejected before a
# key is even looked up.
ASYMMETRIC_ALGORITHMS = frozenset(
    {"RS256", "RS384", "RS512", "PS256", "PS384", "PS512", "ES256", "ES384", "ES512", "EdDSA"}
)


def bearer_from_header(authorization: str | None) -> str | None:
    raw = (authorization or "").strip()
    parts = raw.split(" ", 1)
    if len(parts) != 2 or parts[0].strip().lower() != "bearer":
        return None
    return parts[1].strip() or None


class VerificationStrategy(ABC):
    issuer_kind: IssuerKind

    def extract_token(self, *, authorization: str | None, query_token: str | None = None) -> str:
        token = bearer_from_header(authorization)
        if token is None:
            raise MissingToken()
        return token

    @abstractmethod
    async def verify(self, token: str) -> Principal:
        raise NotImplementedError


class LocalVerifier(VerificationStrategy):
    issuer_kind: IssuerKind = "local"

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("Local verifier needs a non-empty secret.")
        self._secret = secret

    async def verify(self, token: str) -> Principal:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[LOCAL_ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except jwt.PyJWTError as exc:
            logger.info("local_token_rejected reason=%s", type(exc).__name__)
            raise InvalidToken() from exc

        subject = str(payload.get("sub") or "").strip()
        if not (subject.isascii() and subject.isdigit()) or int(subject) > db.MAX_BIGINT:
            raise InvalidToken("Invalid token subject")

        return Principal(subject=subject, issuer_kind=self.issuer_kind, claims=payload)


class RemoteVerifier(VerificationStrategy):
    issuer_kind: IssuerKind = "remote"

    def __init__(
        self,
        keys: JWKSProvider,
        *,
        audience: str,
        issuer: str,
        algorithms: Iterable[str] = ("RS256",),
    ) -> None:
        if not audience or not issuer:
            raise ValueError("Remote verifier needs both an audience and an issuer.")
        allowed = tuple(algorithms)
        unsupported = [alg for alg in allowed if alg not in ASYMMETRIC_ALGORITHMS]
        if not allowed or unsupported:
            raise ValueError(f"Remote verifier only accepts asymmetric algorithms, got {unsupported or allowed}.")

        self._keys = keys
        self.audience = audience
        self.issuer = issuer
        self.algorithms = allowed

    def extract_token(self, *, authorization: str | None, query_token: str | None = None) -> str:
        # Clients that cannot set headers (e.g. <img src>) pass ?token=...
        token = bearer_from_header(authorization) or (query_token or "").strip()
        if not token:
            raise MissingToken()
        return token

    async def verify(self, token: str) -> Principal:
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as exc:
            raise InvalidToken() from exc

        alg = header.get("alg")
        if alg not in self.algorithms:
            logger.warning("remote_token_rejected reason=algorithm alg=%s", alg)
            raise InvalidToken("Unsupported token algorithm")

        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            raise InvalidToken("Token missing key id")

        try:
            key = await self._keys.resolve(kid)
        except UpstreamError as exc:
            logger.warning("remote_token_rejected reason=%s detail=%s", type(exc).__name__, exc.message)
            raise InvalidToken() from exc

        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=list(self.algorithms),
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["exp", "aud", "iss", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except jwt.PyJWTError as exc:
            logger.info("remote_token_rejected reason=%s kid=%s", type(exc).__name__, kid)
            raise InvalidToken() from exc

        subject = str(payload.get("sub") or "").strip()
        if not subject:
            raise InvalidToken("Invalid token subject")

        return Principal(subject=subject, issuer_kind=self.issuer_kind, claims=payload)
