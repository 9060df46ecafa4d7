"""Health and metrics API routes."""

import time

import structlog
from fastapi import APIRouter, Request, Response
from sqlalchemy import text

from docgate import __version__
from docgate.api.schemas import ComponentStatusSchema, HealthResponseSchema, SystemStatusSchema
from docgate.observability import get_metrics
from docgate.runtime import Runtime

logger = structlog.get_logger()

router = APIRouter(tags=["health"])


def _rss_mb() -> float | None:
    """Resident set size from /proc, where available."""
    try:
        with open("/proc/self/status", encoding="ascii") as f:
            for line in f:
                if line.startswith("VmRSS:"):
                    return round(int(line.split()[1]) / 1024, 1)
    except (OSError, ValueError):
        return None
    return None


async def _database_ok(runtime: Runtime) -> bool:
    try:
        async with runtime.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("health_database_error", error=str(e))
        return False
    return True


@router.get("/health", response_model=HealthResponseSchema)
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns component status plus best-effort process diagnostics.
    """
    runtime: Runtime = request.app.state.runtime
    db_ok = await _database_ok(runtime)
    task = runtime.crawl_service.status

    uptime = runtime.uptime_seconds
    cpu_percent = round(min(time.process_time() / uptime * 100, 100.0), 1) if uptime > 0 else 0.0

    return HealthResponseSchema(
        status="healthy" if db_ok else "degraded",
        version=__version__,
        components=ComponentStatusSchema(
            database="ok" if db_ok else "error",
            ingest_api="configured" if runtime.settings.ingest_api_token else "no_token",
            crawler=task.status,
        ),
        system=SystemStatusSchema(
            uptime_seconds=round(uptime, 1),
            cpu_percent=cpu_percent,
            memory_rss_mb=_rss_mb(),
            pending_reviews=runtime.review_store.count("pending"),
            pending_chunks=runtime.chunk_store.count("pending"),
            failed_chunks=runtime.chunk_store.count("failed"),
            event_subscribers=runtime.bus.subscriber_count,
        ),
        task=task,
    )


@router.get("/metrics")
async def metrics():
    """Get Prometheus metrics."""
    data, content_type = get_metrics()
    return Response(content=data, media_type=content_type)
