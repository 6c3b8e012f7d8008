"""
Admin endpoints for pipeline management.

Includes:
- Pipeline statistics
- Manual rescan of the source directory
"""

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from loguru import logger

from app.models.schemas import PipelineStats, RescanResponse

router = APIRouter()


@router.get("/stats", response_model=PipelineStats)
async def get_pipeline_stats(request: Request):
    """
    Get ingestion counters since process start.

    Returns:
        Processed / quarantined / failure counts
    """
    return PipelineStats(**request.app.state.pipeline.snapshot_stats())


@router.post("/rescan", response_model=RescanResponse)
async def trigger_rescan(request: Request):
    """
    Process every file currently waiting in the source directory.

    Useful after replaying quarantined files by moving them back.

    Returns:
        Number of files handled
    """
    logger.info("Manual rescan triggered")
    handled = await run_in_threadpool(request.app.state.pipeline.scan_existing)

    return RescanResponse(
        status="completed",
        message=f"Rescan handled {handled} file(s)",
        files=handled
    )
