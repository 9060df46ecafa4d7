"""Models for crawl tasks, fetch results and crawler status."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from docgate.models.base import utcnow
from docgate.models.source import AuthConfig

ContentType = Literal["html", "pdf", "unknown"]


class CrawlTask(BaseModel):
    """A URL waiting to be fetched. `priority` is the BFS depth it was discovered at."""

    url: str
    source_id: str
    priority: int = 0
    auth: AuthConfig | None = None


class CrawlResult(BaseModel):
    """Outcome of one fetch. `error` is set whenever the fetch did not succeed."""

    url: str
    final_url: str | None = None  # after redirects
    status: int = 0
    content_type: ContentType = "unknown"
    text: str | None = None  # decoded markup for html
    payload: bytes | None = None  # raw body for pdf
    error: str | None = None
    priority: int = 0
    fetched_at: datetime = Field(default_factory=utcnow)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def effective_url(self) -> str:
        return self.final_url or self.url


class SourceProgress(BaseModel):
    pages_fetched: int = 0
    pages_failed: int = 0
    documents_queued: int = 0


class TaskStatus(BaseModel):
    """Crawler task state as broadcast on the task.status channel."""

    status: Literal["idle", "running", "stopped", "error"] = "idle"
    running_sources: list[str] = Field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    last_heartbeat: datetime = Field(default_factory=utcnow)
    progress: dict[str, SourceProgress] = Field(default_factory=dict)
    error: str | None = None
