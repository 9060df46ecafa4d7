"""Upload of approved chunks to the remote ingest endpoint."""

from collections.abc import Sequence

import structlog

from docgate.config import get_settings
from docgate.errors import InvalidRequestError, NotFoundError
from docgate.ingestion.batch import BatchUploader
from docgate.models.document import ChunkRecord
from docgate.models.upload import ChunkUploadResult, IngestResult, ItemError, UploadSummary
from docgate.observability.events import EventBus
from docgate.observability.metrics import CHUNKS_UPLOADED
from docgate.storage.chunks import ChunkStore
from docgate.storage.operations import OperationLog

logger = structlog.get_logger()

MAX_UPLOAD_IDS = 100


class UploadService:
    """
    Uploads chunk records and reconciles their status.

    A chunk whose content hash is already uploaded is reported as a duplicate
    and never sent. The rest are grouped by (source, version); each group is
    one operation in the operation log.
    """

    def __init__(
        self,
        chunks: ChunkStore,
        uploader: BatchUploader,
        operations: OperationLog,
        bus: EventBus | None = None,
        crawler_version: str | None = None,
    ):
        self.chunks = chunks
        self.uploader = uploader
        self.operations = operations
        self.bus = bus
        self.crawler_version = crawler_version or get_settings().crawler_version

    async def upload_chunks(self, chunk_ids: Sequence[str]) -> UploadSummary:
        """
        Upload the given chunks.

        Args:
            chunk_ids: 1 to 100 chunk ids; unknown ids are ignored

        Returns:
            UploadSummary with one result per known chunk

        Raises:
            InvalidRequestError: empty or oversized id list
            NotFoundError: none of the ids exist
        """
        ids = list(dict.fromkeys(chunk_ids))
        if not ids:
            raise InvalidRequestError("at least one chunk id is required")
        if len(ids) > MAX_UPLOAD_IDS:
            raise InvalidRequestError(f"at most {MAX_UPLOAD_IDS} chunk ids per request")

        records = [r for r in (self.chunks.get(chunk_id) for chunk_id in ids) if r is not None]
        if not records:
            raise NotFoundError("none of the requested chunks exist")

        summary = UploadSummary()
        outcomes: dict[str, ChunkUploadResult] = {}
        groups: dict[tuple[str, str], list[ChunkRecord]] = {}

        for record in records:
            if self.chunks.find_uploaded(record.content_hash) is not None:
                self.chunks.mark_uploaded(record.id)
                outcomes[record.id] = ChunkUploadResult(
                    chunk_id=record.id,
                    status="duplicate",
                    error=ItemError(code="DUPLICATE_CHUNK", message="content already uploaded"),
                )
                CHUNKS_UPLOADED.labels(status="duplicate").inc()
                self._publish("chunk.update", {"id": record.id, "status": "uploaded", "duplicate": True})
                continue
            groups.setdefault((record.source_id, record.version), []).append(record)

        for (source_id, version), group in groups.items():
            operation_id = await self._upload_group(source_id, version, group, outcomes)
            summary.operation_ids.append(operation_id)

        summary.operation_id = summary.operation_ids[0] if summary.operation_ids else ""
        summary.results = [outcomes[r.id] for r in records]
        summary.processed = sum(1 for r in summary.results if r.status == "success")
        summary.failed = sum(1 for r in summary.results if r.status == "failed")
        summary.duplicates = sum(1 for r in summary.results if r.status == "duplicate")

        logger.info(
            "upload_finished",
            operation_ids=summary.operation_ids,
            processed=summary.processed,
            failed=summary.failed,
            duplicates=summary.duplicates,
        )
        return summary

    async def upload_pending(self, source_id: str | None = None) -> list[UploadSummary]:
        """Upload every pending or failed chunk, 100 ids per request."""
        ids = [r.id for r in self.chunks.uploadable(source_id)]
        summaries = []
        for start in range(0, len(ids), MAX_UPLOAD_IDS):
            summaries.append(await self.upload_chunks(ids[start : start + MAX_UPLOAD_IDS]))
        return summaries

    async def _upload_group(
        self,
        source_id: str,
        version: str,
        group: list[ChunkRecord],
        outcomes: dict[str, ChunkUploadResult],
    ) -> str:
        operation = await self.operations.start(
            source_id=source_id,
            docs_count=len(group),
            version=version,
            lang=group[0].lang,
            crawler_version=self.crawler_version,
        )
        operation_id = operation.operation_id

        try:
            result = await self.uploader.upload([r.to_chunk() for r in group], source_id, version)
        except Exception as e:
            for record in group:
                if not self._already_uploaded(record.id):
                    self.chunks.mark_failed(record.id, str(e))
            await self.operations.fail(operation_id, str(e), failed_count=len(group))
            raise

        try:
            self._reconcile(group, result, outcomes)
        except Exception as e:
            await self.operations.fail(operation_id, f"reconcile failed: {e}", failed_count=len(group))
            raise
        failed = sum(1 for r in group if outcomes[r.id].status == "failed")
        succeeded = sum(1 for r in group if outcomes[r.id].status == "success")

        if failed and failed == len(group):
            await self.operations.fail(operation_id, "every chunk failed to upload", failed_count=failed)
        else:
            await self.operations.complete(
                operation_id,
                docs_count=len(group),
                failed_count=failed,
                remote_operation_id=result.operation_id,
            )

        self._publish(
            "upload.completed",
            {
                "operation_id": operation_id,
                "source_id": source_id,
                "processed": succeeded,
                "failed": failed,
            },
        )
        return operation_id

    def _reconcile(
        self,
        group: list[ChunkRecord],
        result: IngestResult,
        outcomes: dict[str, ChunkUploadResult],
    ) -> None:
        """
        Map per-item results back to chunks by index. Unreported items succeeded.

        A failure for a chunk that another upload has meanwhile marked uploaded
        is reported as a duplicate; uploaded stays terminal.
        """
        by_index = {item.index: item for item in result.results}

        for index, record in enumerate(group):
            item = by_index.get(index)
            if item is not None and item.status == "failed" and self._already_uploaded(record.id):
                outcomes[record.id] = ChunkUploadResult(
                    chunk_id=record.id,
                    status="duplicate",
                    error=ItemError(code="DUPLICATE_CHUNK", message="content already uploaded"),
                )
                CHUNKS_UPLOADED.labels(status="duplicate").inc()
            elif item is not None and item.status == "failed":
                error = item.error or ItemError(code="UPLOAD_FAILED", message="upload failed")
                self.chunks.mark_failed(record.id, error.message)
                outcomes[record.id] = ChunkUploadResult(chunk_id=record.id, status="failed", error=error)
                CHUNKS_UPLOADED.labels(status="failed").inc()
                self._publish("chunk.update", {"id": record.id, "status": "failed", "error": error.message})
            else:
                self.chunks.mark_uploaded(record.id)
                outcomes[record.id] = ChunkUploadResult(chunk_id=record.id, status="success")
                CHUNKS_UPLOADED.labels(status="success").inc()
                self._publish("chunk.update", {"id": record.id, "status": "uploaded"})

    def _already_uploaded(self, chunk_id: str) -> bool:
        current = self.chunks.get(chunk_id)
        return current is not None and current.status == "uploaded"

    def _publish(self, event, data: dict) -> None:
        if self.bus is not None:
            self.bus.publish(event, data)
