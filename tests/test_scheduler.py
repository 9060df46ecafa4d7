import asyncio
import time

import pytest

from docgate.crawler.scheduler import CrawlScheduler, PacingGate
from docgate.models.crawl import CrawlResult, CrawlTask

pytestmark = pytest.mark.asyncio


def tasks(n: int) -> list[CrawlTask]:
    return [CrawlTask(url=f"https://site.test/{i}", source_id="docs") for i in range(n)]


async def ok(task: CrawlTask) -> CrawlResult:
    return CrawlResult(url=task.url, status=200, content_type="html", text="<p>ok</p>")


async def test_in_flight_never_exceeds_concurrency():
    in_flight = 0
    peak = 0

    async def fetch(task):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return await ok(task)

    results = await CrawlScheduler(fetch, concurrency=3, delay_ms=0).run(tasks(12))

    assert len(results) == 12
    assert peak == 3


async def test_starts_are_paced():
    starts = []

    async def fetch(task):
        starts.append(time.monotonic())
        return await ok(task)

    await CrawlScheduler(fetch, concurrency=4, delay_ms=50).run(tasks(4))

    starts.sort()
    gaps = [b - a for a, b in zip(starts, starts[1:])]
    assert len(gaps) == 3
    assert all(gap >= 0.04 for gap in gaps)


async def test_pacing_holds_across_runs():
    starts = []

    async def fetch(task):
        starts.append(time.monotonic())
        return await ok(task)

    scheduler = CrawlScheduler(fetch, concurrency=2, delay_ms=50)
    await scheduler.run(tasks(1))
    await scheduler.run(tasks(1))

    assert starts[1] - starts[0] >= 0.04


async def test_crashing_fetch_becomes_failed_result():
    async def fetch(task):
        if task.url.endswith("/1"):
            raise RuntimeError("boom")
        return await ok(task)

    results = await CrawlScheduler(fetch, concurrency=2, delay_ms=0).run(tasks(3))

    by_url = {r.url: r for r in results}
    assert len(by_url) == 3
    assert by_url["https://site.test/1"].status == 500
    assert by_url["https://site.test/1"].error == "boom"
    assert by_url["https://site.test/0"].ok
    assert by_url["https://site.test/2"].ok


async def test_results_in_completion_order():
    async def fetch(task):
        if task.url.endswith("/0"):
            await asyncio.sleep(0.05)
        return await ok(task)

    results = await CrawlScheduler(fetch, concurrency=2, delay_ms=0).run(tasks(2))

    assert [r.url for r in results] == ["https://site.test/1", "https://site.test/0"]


async def test_progress_reported_every_ten_completions():
    calls = []
    scheduler = CrawlScheduler(ok, concurrency=4, delay_ms=0, on_progress=lambda done, total: calls.append((done, total)))

    await scheduler.run(tasks(25))

    assert calls == [(10, 25), (20, 25)]


async def test_empty_wave():
    assert await CrawlScheduler(ok, concurrency=2, delay_ms=0).run([]) == []


async def test_gate_without_interval_does_not_wait():
    gate = PacingGate(0)
    started = time.monotonic()
    for _ in range(5):
        await gate.wait()
    assert time.monotonic() - started < 0.05
