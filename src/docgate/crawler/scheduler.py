"""Bounded-concurrency crawl scheduler with global request pacing."""

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence

import structlog

from docgate.config import get_settings
from docgate.models.crawl import CrawlResult, CrawlTask

logger = structlog.get_logger()

FetchFn = Callable[[CrawlTask], Awaitable[CrawlResult]]
ProgressFn = Callable[[int, int], None]

PROGRESS_EVERY = 10


class PacingGate:
    """Lets at most one caller through per `interval` seconds, in arrival order."""

    def __init__(self, interval: float):
        self.interval = interval
        self._lock = asyncio.Lock()
        self._next_slot = 0.0

    async def wait(self) -> None:
        if self.interval <= 0:
            return
        async with self._lock:
            now = time.monotonic()
            if self._next_slot > now:
                await asyncio.sleep(self._next_slot - now)
                now = time.monotonic()
            self._next_slot = now + self.interval


class CrawlScheduler:
    """
    Runs fetches with at most `concurrency` in flight.

    The pacing gate is shared by every `run` call on this scheduler, so the
    start rate holds across waves. Results come back in completion order;
    a fetch that raises becomes a failed result instead of stopping the run.
    """

    def __init__(
        self,
        fetch: FetchFn,
        concurrency: int | None = None,
        delay_ms: int | None = None,
        on_progress: ProgressFn | None = None,
    ):
        settings = get_settings()
        self.fetch = fetch
        self.concurrency = max(1, concurrency or settings.crawl_concurrency)
        delay_ms = delay_ms if delay_ms is not None else settings.crawl_delay_ms
        self.gate = PacingGate(delay_ms / 1000)
        self.on_progress = on_progress

    async def run(self, tasks: Sequence[CrawlTask]) -> list[CrawlResult]:
        """
        Fetch every task.

        Args:
            tasks: Tasks for this wave

        Returns:
            One result per task, in completion order
        """
        total = len(tasks)
        if not total:
            return []

        queue: asyncio.Queue[CrawlTask] = asyncio.Queue()
        for task in tasks:
            queue.put_nowait(task)

        results: list[CrawlResult] = []
        logger.info(
            "scheduler_started",
            total=total,
            concurrency=self.concurrency,
            delay_seconds=self.gate.interval,
        )

        workers = [
            asyncio.create_task(self._worker(queue, results, total))
            for _ in range(min(self.concurrency, total))
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                worker.cancel()

        failed = sum(1 for r in results if r.error)
        logger.info("scheduler_finished", total=total, success=total - failed, failed=failed)
        return results

    async def _worker(self, queue: asyncio.Queue, results: list[CrawlResult], total: int) -> None:
        while True:
            try:
                task = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            await self.gate.wait()
            result = await self._execute(task)
            results.append(result)

            if result.error:
                logger.warning("crawl_task_failed", url=task.url, error=result.error)
            else:
                logger.debug("crawl_task_done", url=task.url, status=result.status)

            completed = len(results)
            if completed % PROGRESS_EVERY == 0:
                logger.info(
                    "crawl_progress",
                    completed=completed,
                    total=total,
                    percentage=round(completed / total * 100),
                )
                if self.on_progress:
                    self.on_progress(completed, total)

    async def _execute(self, task: CrawlTask) -> CrawlResult:
        try:
            return await self.fetch(task)
        except Exception as e:
            logger.error("crawl_task_crashed", url=task.url, error=str(e))
            return CrawlResult(url=task.url, status=500, error=str(e) or type(e).__name__, priority=task.priority)
