"""Wires stores, clients and services together for the API and the CLI."""

import time
from collections.abc import Callable

import httpx
import structlog

from docgate.config import Settings, get_settings
from docgate.crawler.fetcher import Fetcher
from docgate.ingestion.batch import BatchUploader
from docgate.ingestion.chunker import TextChunker
from docgate.ingestion.client import IngestClient
from docgate.observability.events import EventBus, get_event_bus
from docgate.services.crawl import CrawlService
from docgate.services.review import ReviewService
from docgate.services.upload import UploadService
from docgate.storage.chunks import ChunkStore
from docgate.storage.database import create_engine, create_session_factory, init_database
from docgate.storage.operations import OperationLog
from docgate.storage.reviews import ReviewStore

logger = structlog.get_logger()


class Runtime:
    """
    Owns every long-lived component of one docgate process.

    Call `start()` before use and `close()` on shutdown.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        bus: EventBus | None = None,
        ingest_transport: httpx.AsyncBaseTransport | None = None,
        fetcher_factory: Callable[[], Fetcher] | None = None,
    ):
        self.settings = settings or get_settings()
        s = self.settings
        self.bus = bus or get_event_bus()
        self.started_at = time.monotonic()

        self.review_store = ReviewStore(s.reviews_file)
        self.chunk_store = ChunkStore()

        self.engine = create_engine(s.database_url)
        self.operations = OperationLog(create_session_factory(self.engine))

        self.ingest_client = IngestClient(
            base_url=s.ingest_api_url,
            token=s.ingest_api_token,
            timeout=s.ingest_timeout_seconds,
            retry_attempts=s.retry_attempts,
            retry_base_delay=s.retry_base_delay_seconds,
            transport=ingest_transport,
        )
        self.uploader = BatchUploader(
            self.ingest_client,
            batch_size=s.upload_batch_size,
            crawler_version=s.crawler_version,
        )
        self.chunker = TextChunker(
            min_chars=s.chunk_min_chars,
            max_chars=s.chunk_max_chars,
            overlap_chars=s.chunk_overlap_chars,
        )

        self.review_service = ReviewService(
            self.review_store, self.chunk_store, chunker=self.chunker, bus=self.bus
        )
        self.upload_service = UploadService(
            self.chunk_store,
            self.uploader,
            self.operations,
            bus=self.bus,
            crawler_version=s.crawler_version,
        )
        self.crawl_service = CrawlService(
            self.review_store,
            self.bus,
            fetcher_factory=fetcher_factory or self._make_fetcher,
            concurrency=s.crawl_concurrency,
            delay_ms=s.crawl_delay_ms,
        )

    def _make_fetcher(self) -> Fetcher:
        s = self.settings
        return Fetcher(
            user_agent=s.user_agent,
            timeout=s.fetch_timeout_seconds,
            robots_timeout=s.robots_timeout_seconds,
        )

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at

    async def start(self) -> None:
        self.settings.ensure_dirs()
        await init_database(self.engine)
        loaded = self.review_store.load()
        logger.info("runtime_started", reviews_loaded=loaded, database_url=self.settings.database_url)

    async def close(self) -> None:
        if self.crawl_service.is_running:
            self.crawl_service.stop()
        await self.crawl_service.wait()
        await self.review_store.flush()
        await self.ingest_client.aclose()
        await self.engine.dispose()
        logger.info("runtime_closed")
