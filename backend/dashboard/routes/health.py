"""
Dashboard Backend — Health Check Route
========================================

What:  Liveness/readiness probe for Docker and load balancers.
How:   Runs SELECT 1 against the database and checks that the upload storage
       root exists and is writable.

Status levels:
    - healthy:   database and storage both fine
    - degraded:  storage unavailable (reads of existing rows still work)
    - unhealthy: database unreachable
"""

import logging
import os
import time
from pathlib import Path

from fastapi import APIRouter, Depends
from sqlalchemy import text

from dashboard import __version__
from dashboard.config import Settings, get_settings
from dashboard.schemas.user import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    db_status = "connected"
    storage_status = "writable"
    overall = "healthy"

    try:
        from dashboard.database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    root = Path(settings.upload_storage_path)
    if not (root.is_dir() and os.access(root, os.W_OK)):
        storage_status = "unavailable"
        overall = "degraded" if overall != "unhealthy" else overall
        logger.warning("Health check: storage root not writable: %s", root)

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
