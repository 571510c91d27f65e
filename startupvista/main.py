"""
StartupVista - FastAPI Application
Matchmaking API for startups, investors and consultants.

Run with:
    uvicorn startupvista.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from startupvista.core.config import Settings, get_settings
from startupvista.core.database import close_db, init_db
from startupvista.core.errors import setup_exception_handlers
from startupvista.core.firebase import FirebaseBridge
from startupvista.core.logging_config import setup_logging
from startupvista.core.logging_middleware import RequestLoggingMiddleware
from startupvista.core.rate_limit import limiter, rate_limit_exceeded_handler
from startupvista.core.tokens import TokenCodec
from startupvista.routers import auth, consultants, health, investors, posts, startups, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("Starting %s v%s (%s)", settings.app_name, settings.app_version, settings.environment)
    if not settings.jwt_secret:
        logger.warning("JWT_SECRET is not set; sign-in will fail until it is configured")

    await init_db()
    logger.info("Database ready")

    yield

    logger.info("Shutting down")
    app.state.identity_bridge.close()
    await close_db()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory."""
    settings = settings or get_settings()
    setup_logging(
        level=settings.log_level,
        json_format=settings.log_json,
        log_file=settings.log_file,
    )

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Connects startups with investors and consultants",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Shared auth components, built once per process
    app.state.settings = settings
    app.state.token_codec = TokenCodec.from_settings(settings)
    app.state.identity_bridge = FirebaseBridge.from_settings(settings)

    # Middleware (last added runs first)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    setup_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(startups.router)
    app.include_router(investors.router)
    app.include_router(consultants.router)
    app.include_router(posts.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("startupvista.main:app", host="0.0.0.0", port=5000, reload=True)
