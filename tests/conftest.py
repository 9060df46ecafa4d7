"""Shared fixtures: stores, sources and a fake site for crawl tests."""

import pytest
import pytest_asyncio

from docgate.ingestion.chunker import TextChunker, compute_content_hash
from docgate.models.crawl import CrawlResult, CrawlTask
from docgate.models.document import DocumentChunk, ExtractedDocument
from docgate.models.source import SourceConfig
from docgate.observability.events import EventBus
from docgate.storage.chunks import ChunkStore
from docgate.storage.database import create_engine, create_session_factory, init_database
from docgate.storage.operations import OperationLog
from docgate.storage.reviews import ReviewStore

ENGLISH_BODY = (
    "Vehicles must stop completely at a red signal before the stop line. "
    "Drivers should check mirrors before changing lanes on the expressway. "
)


def make_source(**overrides) -> SourceConfig:
    data = {
        "id": "docs",
        "title": "Docs",
        "type": "official",
        "lang": "en",
        "version": "2025Q1",
        "seeds": ["https://site.test/"],
        "maxDepth": 1,
        "maxPages": 10,
    }
    data.update(overrides)
    return SourceConfig.model_validate(data)


def make_document(content: str = ENGLISH_BODY * 3, **overrides) -> ExtractedDocument:
    data = {
        "title": "Traffic rules",
        "url": "https://site.test/rules",
        "content": content,
        "lang": "en",
        "source_id": "docs",
        "version": "2025Q1",
    }
    data.update(overrides)
    return ExtractedDocument(**data)


def make_chunk(i: int, source_id: str = "docs", total: int = 1) -> DocumentChunk:
    content = f"Chunk number {i} covers a distinct part of the handbook. " * 3
    return DocumentChunk(
        chunk_index=i + 1,
        total_chunks=total,
        content=content,
        lang="en",
        content_hash=compute_content_hash(content),
        parent_url=f"https://site.test/page-{i}",
        source_id=source_id,
    )


def page(title: str, links: list[str] = ()) -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return (
        f"<html><head><title>{title}</title></head><body>"
        f"<nav><a href='/nav-only'>menu</a></nav>"
        f"<main><p>{title}. {ENGLISH_BODY}</p>{anchors}</main>"
        f"</body></html>"
    )


class FakeFetcher:
    """Serves pages from a dict keyed by URL and records every fetch."""

    def __init__(
        self,
        pages: dict[str, str],
        failing: set[str] = frozenset(),
        redirects: dict[str, str] | None = None,
    ):
        self.pages = pages
        self.failing = failing
        self.redirects = redirects or {}
        self.fetched: list[str] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def fetch(self, task: CrawlTask) -> CrawlResult:
        self.fetched.append(task.url)
        final_url = self.redirects.get(task.url, task.url)
        if task.url in self.failing or final_url not in self.pages:
            return CrawlResult(url=task.url, status=404, error="http_404", priority=task.priority)
        return CrawlResult(
            url=task.url,
            final_url=final_url,
            status=200,
            content_type="html",
            text=self.pages[final_url],
            priority=task.priority,
        )


@pytest.fixture
def review_store():
    return ReviewStore()


@pytest.fixture
def chunk_store():
    return ChunkStore()


@pytest.fixture
def chunker():
    return TextChunker(min_chars=100, max_chars=800, overlap_chars=50)


@pytest.fixture
def bus():
    return EventBus(max_queue_size=100)


@pytest_asyncio.fixture
async def operation_log(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'ops.db'}")
    await init_database(engine)
    yield OperationLog(create_session_factory(engine))
    await engine.dispose()
