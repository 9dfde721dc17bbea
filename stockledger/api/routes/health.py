"""
Health check endpoints.
"""

import time

from fastapi import APIRouter, Depends

from stockledger.api.dependencies import get_jobs
from stockledger.application.dto.responses import HealthResponse, ProviderHealthResponse
from stockledger.application.scheduler import Scheduler

router = APIRouter(prefix="/api/health", tags=["health"])

# Track startup time
_start_time = time.time()


@router.get("", response_model=HealthResponse)
async def health_check(scheduler: Scheduler = Depends(get_jobs)) -> HealthResponse:
    """
    Basic health check.

    Returns service status, uptime and whether background jobs are running.
    """
    status = scheduler.status()
    return HealthResponse(
        status="healthy",
        version="1.0.0",
        uptime_seconds=time.time() - _start_time,
        scheduler=ProviderHealthResponse(
            name="scheduler",
            available=status["started"] or not status["enabled"],
        ),
    )


@router.get("/db", response_model=HealthResponse)
async def db_health() -> HealthResponse:
    """
    Database health check.

    Tests SQLite connectivity and response time.
    """
    from stockledger.infrastructure.storage.sqlite import get_pool

    try:
        pool = await get_pool()
        start = time.time()
        available = await pool.ping()
        db_status = ProviderHealthResponse(
            name="sqlite",
            available=available,
            latency_ms=(time.time() - start) * 1000,
        )
    except Exception as e:
        db_status = ProviderHealthResponse(
            name="sqlite",
            available=False,
            error=str(e),
        )

    return HealthResponse(
        status="healthy" if db_status.available else "unhealthy",
        version="1.0.0",
        uptime_seconds=time.time() - _start_time,
        database=db_status,
    )
