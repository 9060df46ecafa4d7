"""In-memory chunk store indexed by content hash."""

import threading
import uuid

import structlog

from docgate.errors import InvalidStatusError, NotFoundError
from docgate.models.base import Page, utcnow
from docgate.models.document import ChunkRecord, ChunkStatus, DocumentChunk
from docgate.storage.paging import paginate

logger = structlog.get_logger()


class ChunkStore:
    """
    Chunk records keyed by id, with at most one record per content hash.

    Status moves pending -> uploaded | failed and failed -> uploaded | failed.
    Uploaded is terminal.
    """

    def __init__(self):
        self._records: dict[str, ChunkRecord] = {}
        self._by_hash: dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def add(self, chunk: DocumentChunk, title: str, version: str) -> tuple[ChunkRecord, bool]:
        """
        Insert a chunk unless one with the same content hash exists.

        Returns:
            (record, created): the new record, or the existing one with created=False
        """
        with self._lock:
            existing_id = self._by_hash.get(chunk.content_hash)
            if existing_id is not None:
                return self._records[existing_id].model_copy(), False

            now = utcnow()
            record = ChunkRecord(
                **chunk.model_dump(),
                id=str(uuid.uuid4()),
                title=title,
                version=version,
                status="pending",
                created_at=now,
                updated_at=now,
            )
            self._records[record.id] = record
            self._by_hash[record.content_hash] = record.id
        return record.model_copy(), True

    def get(self, chunk_id: str) -> ChunkRecord | None:
        record = self._records.get(chunk_id)
        return record.model_copy() if record else None

    def find_by_hash(self, content_hash: str) -> ChunkRecord | None:
        with self._lock:
            chunk_id = self._by_hash.get(content_hash)
            record = self._records.get(chunk_id) if chunk_id else None
        return record.model_copy() if record else None

    def find_uploaded(self, content_hash: str) -> ChunkRecord | None:
        """The uploaded record carrying this hash, if any."""
        record = self.find_by_hash(content_hash)
        return record if record and record.status == "uploaded" else None

    def mark_uploaded(self, chunk_id: str) -> ChunkRecord:
        return self._set_status(chunk_id, "uploaded", None)

    def mark_failed(self, chunk_id: str, error_message: str) -> ChunkRecord:
        return self._set_status(chunk_id, "failed", error_message)

    def _set_status(self, chunk_id: str, status: ChunkStatus, error_message: str | None) -> ChunkRecord:
        with self._lock:
            record = self._records.get(chunk_id)
            if record is None:
                raise NotFoundError(f"chunk not found: {chunk_id}")
            if record.status == "uploaded":
                if status == "uploaded":
                    return record.model_copy()
                raise InvalidStatusError(f"chunk {chunk_id} is already uploaded")
            record = record.model_copy(
                update={"status": status, "error_message": error_message, "updated_at": utcnow()}
            )
            self._records[chunk_id] = record
        return record.model_copy()

    def query(
        self,
        status: ChunkStatus | None = None,
        source_id: str | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Page[ChunkRecord]:
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

    def uploadable(self, source_id: str | None = None) -> list[ChunkRecord]:
        """Pending and failed chunks, oldest first."""
        with self._lock:
            records = [
                r.model_copy()
                for r in self._records.values()
                if r.status != "uploaded" and (source_id is None or r.source_id == source_id)
            ]
        records.sort(key=lambda r: (r.created_at, r.chunk_index))
        return records

    def count(self, status: ChunkStatus | None = None) -> int:
        with self._lock:
            if status is None:
                return len(self._records)
            return sum(1 for r in self._records.values() if r.status == status)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._by_hash.clear()
