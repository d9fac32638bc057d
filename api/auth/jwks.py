"""
Signing-key provider for identity-provider issued tokens.

Fetches the provider's JSON Web Key Set (JWKS) over HTTPS and keeps the
public keys in memory, keyed by `kid`:

- a hit is served from the cache for the life of the process
- a miss refreshes the whole key set (the refreshed set replaces the cache,
  so keys the provider rotated out disappear), unless it has no usable
  signing key, in which case the previous set stays
- a `kid` that already missed is not refetched until another refresh has
  happened or a rate window has passed, so repeated lookups of one bogus
  `kid` cost at most one fetch per minute
- outbound fetches are capped per sliding minute across all callers

One instance is created at startup and shared by reference with the remote
verifier (see `main.py`).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable

import httpx
import jwt

from core.errors import UpstreamError

logger = logging.getLogger(__name__)

RATE_WINDOW_S = 60.0


class KeyNotFound(UpstreamError):
    default_message = "Signing key not found"


class UpstreamUnavailable(UpstreamError):
    default_message = "Identity provider unavailable"


@dataclass(frozen=True)
class SigningKey:
    kid: str
    key: Any
    fetched_at: float


class JWKSProvider:
    def __init__(
        self,
        jwks_url: str,
        *,
        requests_per_minute: int = 5,
        timeout_s: float = 30.0,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not jwks_url:
            raise ValueError("jwks_url is empty.")
        self.jwks_url = jwks_url
        self.requests_per_minute = max(1, int(requests_per_minute))
        self._clock = clock
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

        self._keys: dict[str, SigningKey] = {}
        self._fetch_times: deque[float] = deque()
        self._generation = 0
        self._missed: dict[str, tuple[int, float]] = {}
        self._lock = asyncio.Lock()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def refresh_count(self) -> int:
        return self._generation

    def cached_kids(self) -> list[str]:
        return sorted(self._keys)

    async def resolve(self, kid: str) -> Any:
        """
        Return the public key for `kid`, refreshing the key set on a miss.
        """
        cached = self._keys.get(kid)
        if cached is not None:
            return cached.key

        async with self._lock:
            # Another caller may have refreshed while we waited.
            cached = self._keys.get(kid)
            if cached is not None:
                return cached.key

            if self._recently_missed(kid):
                raise KeyNotFound(f"Signing key not found: {kid}")

            if not self._take_rate_slot():
                logger.warning("jwks_rate_limited kid=%s limit_per_minute=%s", kid, self.requests_per_minute)
                raise UpstreamUnavailable("JWKS fetch rate limit exceeded")

            await self._refresh()

            cached = self._keys.get(kid)
            if cached is None:
                self._missed[kid] = (self._generation, self._clock())
                logger.warning("jwks_key_not_found kid=%s known=%s", kid, ",".join(self.cached_kids()))
                raise KeyNotFound(f"Signing key not found: {kid}")
            self._missed.pop(kid, None)
            return cached.key

    def _recently_missed(self, kid: str) -> bool:
        missed = self._missed.get(kid)
        if missed is None:
            return False
        generation, at = missed
        return generation == self._generation and self._clock() - at < RATE_WINDOW_S

    def _take_rate_slot(self) -> bool:
        now = self._clock()
        while self._fetch_times and now - self._fetch_times[0] >= RATE_WINDOW_S:
            self._fetch_times.popleft()
        if len(self._fetch_times) >= self.requests_per_minute:
            return False
        self._fetch_times.append(now)
        return True

    async def _refresh(self) -> None:
        data = await self._fetch_jwks()
        fetched_at = self._clock()
        keys: dict[str, SigningKey] = {}
        for item in data.get("keys") or []:
            signing_key = _parse_jwk(item, fetched_at=fetched_at)
            if signing_key is not None:
                keys[signing_key.kid] = signing_key

        if not keys:
            # Keep the previous keys; an empty set is never cached.
            logger.warning("jwks_refresh_empty url=%s kept=%s", self.jwks_url, len(self._keys))
            self._generation += 1
            return

        self._keys = keys
        self._generation += 1
        logger.info("jwks_refreshed keys=%s generation=%s", len(keys), self._generation)

    async def _fetch_jwks(self) -> dict[str, Any]:
        try:
            resp = await self._client.get(self.jwks_url)
        except httpx.HTTPError as exc:
            logger.error("jwks_fetch_failed url=%s error=%s", self.jwks_url, exc)
            raise UpstreamUnavailable(f"Failed to fetch JWKS: {exc}") from exc

        if resp.status_code != 200:
            body = resp.text[:300]
            logger.error("jwks_fetch_failed url=%s status=%s", self.jwks_url, resp.status_code)
            raise UpstreamUnavailable(f"JWKS request failed: {resp.status_code} {body}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamUnavailable("JWKS response is not valid JSON.") from exc

        if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
            raise UpstreamUnavailable("JWKS response has no 'keys' list.")
        return data


def _parse_jwk(item: Any, *, fetched_at: float) -> SigningKey | None:
    if not isinstance(item, dict):
        return None
    kid = str(item.get("kid") or "").strip()
    if not kid:
        return None
    # Encryption keys are published in the same set; only signing keys count.
    if item.get("use") not in (None, "sig"):
        return None
    try:
        jwk = jwt.PyJWK(item)
    except (jwt.PyJWTError, ValueError) as exc:
        logger.warning("jwks_key_skipped kid=%s error=%s", kid, exc)
        return None
    return SigningKey(kid=kid, key=jwk.key, fetched_at=fetched_at)
