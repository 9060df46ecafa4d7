"""In-memory review queue with a JSON snapshot on disk."""

import asyncio
import json
import os
import threading
import uuid
from pathlib import Path

import structlog

from docgate.errors import InvalidStatusError, NotFoundError
from docgate.models.base import Page, utcnow
from docgate.models.document import ExtractedDocument, ReviewRecord, ReviewStatus
from docgate.observability.metrics import PENDING_REVIEWS
from docgate.storage.paging import paginate

logger = structlog.get_logger()


class ReviewStore:
    """
    Review records keyed by id.

    Every mutation is a single locked read-modify-write, so a record can only
    leave `pending` once. After each mutation the whole store is written to
    `snapshot_path` in the background (temp file, then rename); write errors
    are logged and never reach the caller.
    """

    def __init__(self, snapshot_path: Path | None = None):
        self.snapshot_path = snapshot_path
        self._records: dict[str, ReviewRecord] = {}
        self._lock = threading.Lock()
        self._write_lock = asyncio.Lock()
        self._pending_writes: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._records)

    def add(self, doc: ExtractedDocument) -> ReviewRecord:
        """Queue an extracted document as a new pending record."""
        now = utcnow()
        record = ReviewRecord(
            **doc.model_dump(),
            id=str(uuid.uuid4()),
            status="pending",
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._records[record.id] = record
        self._changed()
        return record.model_copy()

    def get(self, review_id: str) -> ReviewRecord | None:
        record = self._records.get(review_id)
        return record.model_copy() if record else None

    def transition(self, review_id: str, status: ReviewStatus) -> ReviewRecord:
        """
        Move a pending record to `status`.

        Raises:
            NotFoundError: unknown id
            InvalidStatusError: the record is not pending
        """
        with self._lock:
            record = self._records.get(review_id)
            if record is None:
                raise NotFoundError(f"review not found: {review_id}")
            if record.status != "pending":
                raise InvalidStatusError(
                    f"review {review_id} is already {record.status}, expected pending"
                )
            record = record.model_copy(update={"status": status, "updated_at": utcnow()})
            self._records[review_id] = record
        self._changed()
        return record.model_copy()

    def query(
        self,
        status: ReviewStatus | None = None,
        source_id: str | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Page[ReviewRecord]:
        """Records newest first, optionally filtered."""
        with self._lock:
            records = [
                r
                for r in self._records.values()
                if (status is None or r.status == status)
                and (source_id is None or r.source_id == source_id)
            ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        result = paginate(records, page, page_size)
        result.items = [r.model_copy() for r in result.items]
        return result

    def ids(self, status: ReviewStatus | None = None, source_id: str | None = None) -> list[str]:
        with self._lock:
            return [
                r.id
                for r in self._records.values()
                if (status is None or r.status == status)
                and (source_id is None or r.source_id == source_id)
            ]

    def count(self, status: ReviewStatus | None = None) -> int:
        with self._lock:
            if status is None:
                return len(self._records)
            return sum(1 for r in self._records.values() if r.status == status)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
        self._changed()

    def load(self) -> int:
        """Replace contents with the snapshot on disk. Returns records loaded."""
        if self.snapshot_path is None or not self.snapshot_path.exists():
            return 0
        try:
            raw = json.loads(self.snapshot_path.read_text(encoding="utf-8"))
            records = [ReviewRecord.model_validate(item) for item in raw.get("reviews", [])]
        except (OSError, ValueError) as e:
            logger.error("review_snapshot_load_failed", path=str(self.snapshot_path), error=str(e))
            return 0

        with self._lock:
            self._records = {r.id: r for r in records}
        PENDING_REVIEWS.set(self.count("pending"))
        logger.info("review_snapshot_loaded", path=str(self.snapshot_path), records=len(records))
        return len(records)

    async def flush(self) -> None:
        """Wait for queued snapshot writes, then write the current state."""
        if self._pending_writes:
            await asyncio.gather(*self._pending_writes, return_exceptions=True)
        await self._write_snapshot()

    def _changed(self) -> None:
        PENDING_REVIEWS.set(self.count("pending"))
        if self.snapshot_path is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop (plain CLI use): write inline.
            try:
                self._write_file(self._serialize())
            except OSError as e:
                logger.error("review_snapshot_write_failed", path=str(self.snapshot_path), error=str(e))
            return
        task = loop.create_task(self._write_snapshot())
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _write_snapshot(self) -> None:
        if self.snapshot_path is None:
            return
        async with self._write_lock:
            # Serialize under the write lock so the last write always holds the latest state.
            data = self._serialize()
            try:
                await asyncio.to_thread(self._write_file, data)
            except OSError as e:
                logger.error("review_snapshot_write_failed", path=str(self.snapshot_path), error=str(e))

    def _serialize(self) -> str:
        with self._lock:
            reviews = [r.model_dump(mode="json") for r in self._records.values()]
        return json.dumps({"reviews": reviews}, ensure_ascii=False, indent=2)

    def _write_file(self, data: str) -> None:
        path = self.snapshot_path
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(data, encoding="utf-8")
        os.replace(tmp, path)
