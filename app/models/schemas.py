"""
Pydantic models for the File Relay API.
"""

from datetime import datetime
from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str  # healthy, degraded
    timestamp: datetime
    database_connected: bool
    source_dir_exists: bool
    archive_dir_exists: bool
    version: str


class PipelineStats(BaseModel):
    """Ingestion counters since process start."""
    processed: int = 0
    quarantined: int = 0
    decode_failures: int = 0
    partial_failures: int = 0
    skipped: int = 0


class RescanResponse(BaseModel):
    """Rescan operation response."""
    status: str
    message: str
    files: int
