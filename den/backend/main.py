"""
FastAPI Application Entry Point.

This is the main entry point for the Den notes server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from den.backend.api import health, stream
from den.backend.api import router as api_router
from den.backend.core.config import Settings, get_app_config, get_database_path, get_settings
from den.backend.core.database import dispose_engine, init_database
from den.backend.core.exception_handlers import register_exception_handlers
from den.backend.core.logging import get_logger, setup_logging
from den.backend.core.middleware import (
    AuthGateMiddleware,
    RequestContextMiddleware,
)
from den.backend.core.security import AuthGate, resolve_auth_token
from den.backend.events.notifier import ChangeNotifier

logger = get_logger(__name__)

_app: FastAPI | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    app_config = get_app_config()
    setup_logging(level=app_config.logging.level)

    await init_database()

    logger.info(
        "Application starting",
        extra={
            "app_name": app_config.application.name,
            "env": app_config.application.environment,
            "database": str(get_database_path()),
        },
    )
    yield
    logger.info("Application shutting down", extra={"clients": app.state.notifier.client_count})
    await dispose_engine()


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Secrets to use instead of the cached environment settings.
            Only the auth token is read from it; the database location
            always comes from get_settings()/database.yaml.
    """
    settings = settings or get_settings()
    app_config = get_app_config()
    app_settings = app_config.application
    cors = app_settings.cors

    app = FastAPI(
        title=app_settings.name,
        description=app_settings.description,
        version=app_settings.version,
        docs_url="/docs" if app_settings.debug else None,
        redoc_url="/redoc" if app_settings.debug else None,
        lifespan=lifespan,
    )

    app.state.auth_gate = AuthGate(resolve_auth_token(settings))
    app.state.notifier = ChangeNotifier(
        send_timeout=app_config.notifier.send_timeout_seconds,
    )

    # Middleware added last runs first: context -> auth -> cors -> routes
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors.origins,
        allow_methods=cors.allow_methods,
        allow_headers=cors.allow_headers,
    )
    app.add_middleware(
        AuthGateMiddleware,
        gate=app.state.auth_gate,
        origins=cors.origins,
        methods=cors.allow_methods,
        headers=cors.allow_headers,
    )
    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(api_router, prefix="/api")

    return app


def get_app() -> FastAPI:
    """
    Get the application instance (lazy initialization).

    This function creates the app on first call and caches it.
    Use this instead of importing `app` directly to avoid
    import-time configuration errors.
    """
    global _app
    if _app is None:
        _app = create_app()
    return _app


# For uvicorn: `uvicorn den.backend.main:app`
def __getattr__(name: str) -> FastAPI:
    """Support lazy access to `app` for uvicorn compatibility."""
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
