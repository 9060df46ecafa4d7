import asyncio

import pytest

from conftest import FakeFetcher, make_source, page

from docgate.errors import InvalidRequestError
from docgate.services.crawl import CrawlService

SITE = "https://site.test"


def site() -> dict[str, str]:
    return {
        f"{SITE}/": page("Home", ["/a", "/b"]),
        f"{SITE}/a": page("A"),
        f"{SITE}/b": page("B"),
    }


class SlowFetcher(FakeFetcher):
    async def fetch(self, task):
        await asyncio.sleep(0.05)
        return await super().fetch(task)


def crawl_service(review_store, bus, fetcher) -> CrawlService:
    return CrawlService(review_store, bus, fetcher_factory=lambda: fetcher, concurrency=2, delay_ms=0)


async def test_run_crawls_every_source(review_store, bus):
    fetcher = FakeFetcher(site())
    service = crawl_service(review_store, bus, fetcher)
    sources = [make_source(seeds=[f"{SITE}/"]), make_source(id="again", seeds=[f"{SITE}/a"], maxDepth=0)]

    stats = await service.run(sources)

    assert [s.source_id for s in stats] == ["docs", "again"]
    assert stats[0].documents_queued == 3
    assert review_store.count("pending") == 4
    status = service.status
    assert status.status == "idle"
    assert status.running_sources == []
    assert status.finished_at is not None
    assert status.progress["docs"].documents_queued == 3


async def test_status_and_review_events_are_published(review_store, bus):
    sub = bus.subscribe()
    service = crawl_service(review_store, bus, FakeFetcher(site()))

    await service.run([make_source(seeds=[f"{SITE}/"], maxDepth=0)])

    events = []
    while not sub.queue.empty():
        events.append(sub.queue.get_nowait())
    statuses = [e.data["status"] for e in events if e.event == "task.status"]
    assert statuses[0] == "running"
    assert statuses[-1] == "idle"
    assert any(e.event == "review.update" for e in events)


async def test_second_start_conflicts(review_store, bus):
    service = crawl_service(review_store, bus, SlowFetcher(site()))
    source = make_source(seeds=[f"{SITE}/"])

    started = service.start([source])
    assert started.status == "running"

    with pytest.raises(InvalidRequestError) as exc_info:
        service.start([source])
    assert exc_info.value.code == "TASK_CONFLICT"

    await service.wait()
    assert service.status.status == "idle"


async def test_stop_prevents_further_waves(review_store, bus):
    fetcher = SlowFetcher(site())
    service = crawl_service(review_store, bus, fetcher)

    service.start([make_source(seeds=[f"{SITE}/"], maxDepth=2)])
    await asyncio.sleep(0.01)
    stopped = service.stop()
    await service.wait()

    assert stopped.status == "stopped"
    assert service.status.status == "stopped"
    assert fetcher.fetched == [f"{SITE}/"]
    assert review_store.count() == 1


async def test_stop_without_crawl(review_store, bus):
    service = crawl_service(review_store, bus, FakeFetcher({}))

    with pytest.raises(InvalidRequestError) as exc_info:
        service.stop()
    assert exc_info.value.code == "TASK_NOT_RUNNING"


async def test_start_requires_sources(review_store, bus):
    service = crawl_service(review_store, bus, FakeFetcher({}))

    with pytest.raises(InvalidRequestError):
        service.start([])
    assert service.status.status == "idle"


async def test_crash_sets_error_status(review_store, bus):
    class BrokenFactory:
        async def __aenter__(self):
            raise RuntimeError("no network")

        async def __aexit__(self, *exc_info):
            return None

    service = CrawlService(review_store, bus, fetcher_factory=BrokenFactory, delay_ms=0)

    with pytest.raises(RuntimeError):
        await service.run([make_source()])

    assert service.status.status == "error"
    assert service.status.error == "no network"
    assert not service.is_running
