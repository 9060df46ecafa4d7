"""API Pydantic schemas for request/response validation."""

from typing import Literal

from pydantic import BaseModel

from docgate.models.crawl import TaskStatus


# ===== Health =====

class ComponentStatusSchema(BaseModel):
    """Status of individual components."""

    database: Literal["ok", "error"]
    ingest_api: Literal["configured", "no_token"]
    crawler: Literal["idle", "running", "stopped", "error"]


class SystemStatusSchema(BaseModel):
    """Best-effort process diagnostics."""

    uptime_seconds: float
    cpu_percent: float
    memory_rss_mb: float | None = None
    pending_reviews: int
    pending_chunks: int
    failed_chunks: int
    event_subscribers: int


class HealthResponseSchema(BaseModel):
    """Health check response."""

    status: Literal["healthy", "degraded"]
    version: str
    components: ComponentStatusSchema
    system: SystemStatusSchema
    task: TaskStatus

