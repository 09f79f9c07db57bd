"""FastAPI application factory and lifespan management."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from addiscare import __version__
from addiscare.config import settings
from addiscare.db.engine import create_db_engine, create_session_factory, create_tables
from addiscare.logging_config import configure_logging

# Configure logging at import time
configure_logging(log_level=settings.log_level, json_output=not settings.local_mode)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    engine = create_db_engine()

    # Auto-create tables for SQLite (local dev, no migrations)
    if "sqlite" in settings.database_url:
        await create_tables(engine)
        logger.info("SQLite tables created")

    app.state.db_engine = engine
    app.state.db_session_factory = create_session_factory(engine)

    logger.info("AddisCare API started (db=%s)", engine.url.get_backend_name())
    yield

    await engine.dispose()
    logger.info("AddisCare API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="AddisCare API",
        version=__version__,
        description="Hazard-report notifications for reporters, government staff and admins.",
        lifespan=lifespan,
    )

    # CORS middleware for the React frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add middleware (order matters: last added = first executed)
    from addiscare.api.middleware.auth import AuthMiddleware
    from addiscare.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(AuthMiddleware)
    app.add_middleware(TraceIdMiddleware)

    from addiscare.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    from addiscare.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
