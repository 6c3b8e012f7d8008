"""
Health check endpoint.
"""

from fastapi import APIRouter, Request
from datetime import datetime
from loguru import logger

from app.models.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Verifies:
    - API is running
    - Relational store answers queries
    - Source and archive directories exist
    """
    settings = request.app.state.settings
    database_connected = False

    try:
        database_connected = request.app.state.db.ping()
    except Exception as e:
        logger.warning(f"Health check could not reach database: {e}")

    source_dir_exists = settings.source_dir.is_dir()
    archive_dir_exists = settings.archive_dir.is_dir()
    healthy = database_connected and source_dir_exists and archive_dir_exists

    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(),
        database_connected=database_connected,
        source_dir_exists=source_dir_exists,
        archive_dir_exists=archive_dir_exists,
        version=settings.api_version
    )
