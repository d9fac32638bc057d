from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auth import router as auth_router
from auth.jwks import JWKSProvider
from auth.verifiers import LocalVerifier, RemoteVerifier, VerificationStrategy
from core import config, db
from core.errors import register_exception_handlers
from core.logging import configure_logging
from favorites import router as favorites_router
from notes import router as notes_router
from ratings import router as ratings_router
from recipes import router as recipes_router
from users import router as users_router


def build_verifier(mode: str) -> tuple[VerificationStrategy, JWKSProvider | None]:
    """
    Build the one verification strategy this deployment runs.

    Remote mode also returns the key provider so the caller owns its lifecycle.
    """
    if mode == "local":
        return LocalVerifier(config.jwt_secret()), None

    keys = JWKSProvider(
        config.jwks_url(),
        requests_per_minute=config.jwks_requests_per_minute(),
        timeout_s=config.jwks_timeout_s(),
    )
    verifier = RemoteVerifier(keys, audience=config.auth0_audience(), issuer=config.auth0_issuer())
    return verifier, keys


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Build the verifier and the DB pool once per process; a bad auth config fails before the pool opens.
    keys: JWKSProvider | None = None
    if getattr(app.state, "verifier", None) is None:
        app.state.verifier, keys = build_verifier(app.state.auth_mode)
    try:
        await db.init_pool()
        yield
    finally:
        if keys is not None:
            await keys.aclose()
        await db.close_pool()


def create_app(*, auth_mode: str | None = None) -> FastAPI:
    configure_logging()
    mode = auth_mode or config.auth_mode()

    app = FastAPI(lifespan=lifespan)
    app.state.auth_mode = mode
    app.state.verifier = None

    # Allow the frontend dev server to call this API from the browser.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.frontend_url()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # Signup/login only make sense when we issue the tokens ourselves.
    if mode == "local":
        app.include_router(auth_router.router, tags=["auth"])
    app.include_router(recipes_router.router, tags=["community"])
    app.include_router(favorites_router.router, tags=["favorites"])
    app.include_router(notes_router.router, tags=["notes"])
    app.include_router(ratings_router.router, tags=["ratings"])
    app.include_router(users_router.router, tags=["users"])

    @app.get("/api/health")
    def health() -> dict:
        return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.port())
