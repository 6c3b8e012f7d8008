"""
File Relay - Main FastAPI Application

Status surface for the ingestion pipeline:
- Health (store connectivity, directories)
- Pipeline statistics
- Manual rescan of the source directory
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
import sys

from app.utils.config import Settings, get_settings
from app.utils.db_client import DatabaseClient, get_db_client, close_db_client
from app.api import health, admin
from domains.file_relay.factory import build_pipeline


# Configure logging
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    level=get_settings().log_level.upper()
)


def create_app(settings: Optional[Settings] = None, db: Optional[DatabaseClient] = None) -> FastAPI:
    """Create the API application; db defaults to the global client."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info(f"Starting {settings.api_title} v{settings.api_version}")

        try:
            client = db or get_db_client()
            pipeline = build_pipeline(settings, client)
            logger.success("Database connected successfully")
        except Exception as e:
            logger.error(f"Failed to initialize pipeline: {e}")
            raise

        app.state.db = client
        app.state.pipeline = pipeline

        if settings.start_watcher_with_api:
            pipeline.start()

        yield

        # Cleanup
        logger.info("Shutting down application...")
        pipeline.stop()
        pipeline.dispatcher.close()
        if db is None:
            close_db_client()
        logger.success("Application shut down complete")

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="Replicates ingested records to a relational store and a file archive",
        lifespan=lifespan
    )
    app.state.settings = settings

    # Exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.error(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.log_level.upper() == "DEBUG" else "An error occurred"
            }
        )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(admin.router, prefix="/admin", tags=["Admin"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "File Relay",
            "version": settings.api_version,
            "status": "operational",
            "docs": "/docs",
            "health": "/health"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=settings.api_port,
        log_level=settings.log_level.lower()
    )
