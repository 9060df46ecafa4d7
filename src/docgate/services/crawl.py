"""Background crawl task management."""

import asyncio
from collections.abc import Callable, Sequence

import structlog

from docgate.crawler.fetcher import Fetcher
from docgate.crawler.orchestrator import CrawlOrchestrator, CrawlStats
from docgate.errors import InvalidRequestError
from docgate.models.base import utcnow
from docgate.models.crawl import SourceProgress, TaskStatus
from docgate.models.document import ReviewRecord
from docgate.models.source import SourceConfig
from docgate.observability.events import EventBus
from docgate.observability.metrics import CRAWL_RUNS
from docgate.storage.reviews import ReviewStore

logger = structlog.get_logger()


class CrawlService:
    """
    Owns the single crawl task of the process.

    Sources are crawled one after another. `stop()` takes effect between
    waves: pages already being fetched finish and are still queued for review.
    """

    def __init__(
        self,
        review_store: ReviewStore,
        bus: EventBus,
        fetcher_factory: Callable[[], Fetcher] = Fetcher,
        concurrency: int | None = None,
        delay_ms: int | None = None,
    ):
        self.review_store = review_store
        self.bus = bus
        self.fetcher_factory = fetcher_factory
        self.concurrency = concurrency
        self.delay_ms = delay_ms
        self._status = TaskStatus()
        self._stop_requested = False
        self._task: asyncio.Task | None = None

    @property
    def status(self) -> TaskStatus:
        return self._status.model_copy(update={"last_heartbeat": utcnow()}, deep=True)

    @property
    def is_running(self) -> bool:
        return self._status.status == "running"

    def start(self, sources: Sequence[SourceConfig]) -> TaskStatus:
        """
        Start crawling `sources` in the background.

        Raises:
            InvalidRequestError: TASK_CONFLICT if a crawl is already running,
                INVALID_REQUEST if no sources are given
        """
        self._begin(sources)
        self._task = asyncio.create_task(self._run(list(sources)))
        # Already logged and reflected in the status; mark the exception retrieved.
        self._task.add_done_callback(lambda t: t.cancelled() or t.exception())
        return self.status

    async def run(self, sources: Sequence[SourceConfig]) -> list[CrawlStats]:
        """Crawl `sources` in the foreground and return per-source stats."""
        self._begin(sources)
        return await self._run(list(sources))

    def stop(self) -> TaskStatus:
        if not self.is_running:
            raise InvalidRequestError("no crawl is running", code="TASK_NOT_RUNNING")
        self._stop_requested = True
        logger.info("crawl_stop_requested", sources=self._status.running_sources)
        self._set_status(status="stopped")
        return self.status

    async def wait(self) -> None:
        """Wait for the background crawl, if any, to finish."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def _begin(self, sources: Sequence[SourceConfig]) -> None:
        if self.is_running or (self._task is not None and not self._task.done()):
            raise InvalidRequestError("a crawl task is already running", code="TASK_CONFLICT")
        if not sources:
            raise InvalidRequestError("no sources to crawl")
        self._stop_requested = False
        self._status = TaskStatus(
            status="running",
            running_sources=[s.id for s in sources],
            started_at=utcnow(),
            progress={s.id: SourceProgress() for s in sources},
        )
        self._publish_status()

    async def _run(self, sources: list[SourceConfig]) -> list[CrawlStats]:
        results = []
        try:
            async with self.fetcher_factory() as fetcher:
                for source in sources:
                    if self._stop_requested:
                        break
                    orchestrator = CrawlOrchestrator(
                        fetcher,
                        self.review_store,
                        concurrency=self.concurrency,
                        delay_ms=self.delay_ms,
                        should_stop=lambda: self._stop_requested,
                        on_document=self._on_document,
                        on_wave=self._on_wave,
                    )
                    results.append(await orchestrator.crawl(source))
        except Exception as e:
            logger.exception("crawl_task_error", error=str(e))
            CRAWL_RUNS.labels(status="error").inc()
            self._set_status(status="error", error=str(e), finished_at=utcnow())
            raise

        final = "stopped" if self._stop_requested else "idle"
        CRAWL_RUNS.labels(status=final).inc()
        self._set_status(status=final, running_sources=[], finished_at=utcnow())
        return results

    def _on_document(self, record: ReviewRecord) -> None:
        self.bus.publish(
            "review.update",
            {"id": record.id, "status": record.status, "source_id": record.source_id, "url": record.url},
        )

    def _on_wave(self, stats: CrawlStats) -> None:
        progress = dict(self._status.progress)
        progress[stats.source_id] = SourceProgress(
            pages_fetched=stats.pages_fetched,
            pages_failed=stats.pages_failed,
            documents_queued=stats.documents_queued,
        )
        self._set_status(progress=progress)

    def _set_status(self, **changes) -> None:
        self._status = self._status.model_copy(update=changes)
        self._publish_status()

    def _publish_status(self) -> None:
        self.bus.publish("task.status", self.status.model_dump(mode="json"))
