"""
SQL Arena auth service

Usage:
    uvicorn arena_auth.main:create_app --factory --port 3001

Or run directly:
    python -m arena_auth.main
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from . import __version__
from .auth import PasswordHasher, build_token_issuer
from .config import Posture, Settings, get_settings
from .db import build_engine, build_session_factory, init_db
from .errors import register_exception_handlers
from .rate_limit import FixedWindowRateLimiter
from .routes import health, users
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup, release the pool on shutdown"""
    settings: Settings = app.state.settings
    logger.info("SQL Arena auth service starting (environment=%s)", settings.ENVIRONMENT.value)
    init_db(app.state.engine)
    yield
    app.state.engine.dispose()
    logger.info("Database connection pool closed")


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Raises ConfigurationError when the signing secret is missing in production,
    so a misconfigured deployment never starts serving.
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    token_issuer = build_token_issuer(settings)
    engine = engine or build_engine(settings)

    app = FastAPI(
        title="SQL Arena Auth Service",
        description="User registration, login and token issuance",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.password_hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)
    app.state.token_issuer = token_issuer
    app.state.rate_limiter = FixedWindowRateLimiter(enabled=settings.ENVIRONMENT != Posture.TEST)
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(users.router)
    register_exception_handlers(app)

    @app.get("/")
    def root():
        return {"message": "SQL Arena API is running"}

    return app


def serve() -> None:
    settings = get_settings()
    app = create_app(settings)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    serve()
