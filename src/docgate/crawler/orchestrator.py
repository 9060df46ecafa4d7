"""Breadth-first crawl of one source into the review queue."""

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from docgate.config import get_settings
from docgate.crawler.discoverer import discover_links, normalize_url
from docgate.crawler.fetcher import Fetcher
from docgate.crawler.scheduler import CrawlScheduler
from docgate.errors import ExtractionError
from docgate.extraction import extract_document
from docgate.models.crawl import CrawlTask
from docgate.models.document import ReviewRecord
from docgate.models.source import SourceConfig
from docgate.observability.metrics import DOCUMENTS_QUEUED
from docgate.storage.reviews import ReviewStore

logger = structlog.get_logger()

MIN_REVIEW_CHARS = 100


@dataclass
class CrawlStats:
    """Statistics from a crawl run."""

    source_id: str
    pages_fetched: int = 0
    pages_failed: int = 0
    documents_queued: int = 0
    documents_skipped: int = 0
    links_queued: int = 0
    max_depth_reached: int = 0
    stopped: bool = False
    duration_seconds: float = 0.0


class CrawlOrchestrator:
    """
    Crawls a source wave by wave, one wave per depth.

    Flow:
    1. Seed the frontier (depth 0) and the visited set
    2. Fetch up to the remaining page budget from the frontier
    3. Extract each success and queue it for review
    4. Below max depth, admit unseen same-host links while fetched plus
       queued pages stay under max_pages

    Every fetch attempt, failed or not, counts against `max_pages`.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        review_store: ReviewStore,
        concurrency: int | None = None,
        delay_ms: int | None = None,
        should_stop: Callable[[], bool] | None = None,
        on_document: Callable[[ReviewRecord], None] | None = None,
        on_wave: Callable[[CrawlStats], None] | None = None,
    ):
        settings = get_settings()
        self.fetcher = fetcher
        self.review_store = review_store
        self.concurrency = concurrency or settings.crawl_concurrency
        self.delay_ms = delay_ms if delay_ms is not None else settings.crawl_delay_ms
        self.should_stop = should_stop or (lambda: False)
        self.on_document = on_document
        self.on_wave = on_wave

    async def crawl(self, source: SourceConfig) -> CrawlStats:
        """
        Crawl one source.

        Args:
            source: Validated source config

        Returns:
            CrawlStats for the run
        """
        start_time = time.perf_counter()
        stats = CrawlStats(source_id=source.id)
        scheduler = CrawlScheduler(self.fetcher.fetch, self.concurrency, self.delay_ms)

        visited: set[str] = set()
        frontier: deque[CrawlTask] = deque()
        for seed in source.seeds:
            key = normalize_url(seed)
            if key in visited:
                continue
            visited.add(key)
            frontier.append(CrawlTask(url=seed, source_id=source.id, priority=0, auth=source.auth))

        logger.info(
            "crawl_started",
            source_id=source.id,
            seeds=len(frontier),
            max_depth=source.max_depth,
            max_pages=source.max_pages,
        )

        attempted = 0
        depth = 0
        while frontier and depth <= source.max_depth and attempted < source.max_pages:
            if self.should_stop():
                stats.stopped = True
                logger.info("crawl_stopped", source_id=source.id, depth=depth)
                break

            budget = source.max_pages - attempted
            wave = [frontier.popleft() for _ in range(min(budget, len(frontier)))]
            attempted += len(wave)
            stats.max_depth_reached = depth
            logger.info("crawl_wave", source_id=source.id, depth=depth, tasks=len(wave))

            for result in await scheduler.run(wave):
                if result.error:
                    stats.pages_failed += 1
                    continue
                stats.pages_fetched += 1
                visited.add(normalize_url(result.effective_url))

                self._queue_for_review(result, source, stats)

                if depth < source.max_depth and result.content_type == "html" and result.text:
                    for link in discover_links(result.text, result.effective_url, source):
                        key = normalize_url(link)
                        if key in visited or attempted + len(frontier) >= source.max_pages:
                            continue
                        visited.add(key)
                        frontier.append(
                            CrawlTask(url=link, source_id=source.id, priority=depth + 1, auth=source.auth)
                        )
                        stats.links_queued += 1

            if self.on_wave:
                self.on_wave(stats)
            depth += 1

        stats.duration_seconds = time.perf_counter() - start_time
        logger.info("crawl_complete", source_id=source.id, stats=stats.__dict__)
        return stats

    def _queue_for_review(self, result, source: SourceConfig, stats: CrawlStats) -> None:
        try:
            doc = extract_document(result, source)
        except ExtractionError as e:
            stats.documents_skipped += 1
            logger.error("extraction_failed", url=result.url, error=e.message)
            return

        if doc is None or len(doc.content) < MIN_REVIEW_CHARS:
            stats.documents_skipped += 1
            logger.debug("document_too_short", url=result.url)
            return

        record = self.review_store.add(doc)
        stats.documents_queued += 1
        DOCUMENTS_QUEUED.labels(source_id=source.id).inc()
        if self.on_document:
            self.on_document(record)
