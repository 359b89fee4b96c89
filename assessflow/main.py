"""
Main application entry point for the AssessFlow backend.

This module builds the FastAPI application, registering the feature routers,
exception handlers and shared middleware.

Usage:
    - Direct: python -m assessflow.main
    - ASGI server: uvicorn assessflow.main:app
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from assessflow import __version__
from assessflow.api import main_router, register_exception_handlers
from assessflow.common.logger import app_logger
from assessflow.config import settings
from assessflow.database.init_db import close_database, initialize_database
from assessflow.middleware.request_logging import RequestLoggingMiddleware

# Setup module logger
logger = app_logger.getChild("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database on startup and dispose it on shutdown."""
    try:
        await initialize_database(
            database_url=settings.DATABASE_URL,
            echo=settings.SQL_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            create_schema=settings.CREATE_SCHEMA_ON_STARTUP,
        )
        logger.info("Application startup complete")
    except Exception as e:
        logger.error(f"Failed to initialize application: {str(e)}")
        raise

    yield

    await close_database()
    logger.info("Application shutdown complete")


def create_app(manage_database: bool = True) -> FastAPI:
    """
    Build the application.

    Args:
        manage_database: Open and close the global engine with the app's
            lifespan. Tests pass ``False`` and provide sessions themselves.
    """
    app = FastAPI(
        title=f"{settings.PROJECT_NAME} API",
        description="Assessment workflow, attempts, dashboards and reports",
        version=__version__,
        lifespan=lifespan if manage_database else None,
    )

    origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware, prefix=f"{settings.API_V1_STR}/")

    register_exception_handlers(app)
    app.include_router(main_router, prefix=settings.API_V1_STR)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok", "version": __version__}

    logger.info(f"Application initialized with {len(app.routes)} routes")
    return app


app = create_app()

# Entry point for running the application directly
if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", 8000))
    reload_enabled = os.environ.get("RELOAD", "false").lower() == "true"

    logger.info(f"Starting server on {host}:{port} (reload: {reload_enabled})")

    uvicorn.run(
        "assessflow.main:app",
        host=host,
        port=port,
        reload=reload_enabled,
        log_level=settings.LOG_LEVEL.lower()
    )
