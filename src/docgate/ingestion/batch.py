"""Splits chunk uploads into fixed-size batches and aggregates the outcome."""

from collections.abc import Sequence

import structlog

from docgate.config import get_settings
from docgate.ingestion.client import IngestClient
from docgate.models.document import DocumentChunk
from docgate.models.upload import (
    BatchItemResult,
    BatchMetadata,
    IngestRequest,
    IngestResult,
    ItemError,
)

logger = structlog.get_logger()


class BatchUploader:
    """
    Upload chunks in batches of `batch_size`.

    A batch that raises is recorded as failed for each of its chunks and the
    remaining batches still run. Result indices refer to positions in the
    full chunk sequence, not within a batch.
    """

    def __init__(
        self,
        client: IngestClient,
        batch_size: int | None = None,
        crawler_version: str | None = None,
    ):
        settings = get_settings()
        self.client = client
        self.batch_size = batch_size or settings.upload_batch_size
        self.crawler_version = crawler_version or settings.crawler_version

    async def upload(
        self, chunks: Sequence[DocumentChunk], source_id: str, version: str
    ) -> IngestResult:
        """
        Upload every chunk for one source/version.

        Args:
            chunks: Chunks in upload order
            source_id: Source the chunks belong to
            version: Content version sent with every document

        Returns:
            Aggregated IngestResult; `success` is true only if nothing failed
        """
        total = len(chunks)
        processed = 0
        failed = 0
        operation_id = ""
        results: list[BatchItemResult] = []

        for offset in range(0, total, self.batch_size):
            batch = list(chunks[offset : offset + self.batch_size])
            request = IngestRequest(
                source_id=source_id,
                version=version,
                docs=batch,
                batch_metadata=BatchMetadata(
                    total_docs=len(batch),
                    crawler_version=self.crawler_version,
                ),
            )

            try:
                batch_result = await self.client.upload_batch(request)
            except Exception as e:
                failed += len(batch)
                error = ItemError(code="BATCH_ERROR", message=str(e))
                results.extend(
                    BatchItemResult(index=offset + i, status="failed", error=error)
                    for i in range(len(batch))
                )
                logger.error(
                    "batch_upload_failed",
                    source_id=source_id,
                    offset=offset,
                    size=len(batch),
                    error=str(e),
                )
                continue

            processed += batch_result.processed
            failed += batch_result.failed
            if not operation_id and batch_result.operation_id:
                operation_id = batch_result.operation_id
            results.extend(
                item.model_copy(update={"index": offset + item.index})
                for item in batch_result.results
            )
            logger.info(
                "batch_uploaded",
                source_id=source_id,
                offset=offset,
                processed=batch_result.processed,
                failed=batch_result.failed,
            )

        return IngestResult(
            success=failed == 0,
            processed=processed,
            failed=failed,
            operation_id=operation_id,
            results=results,
        )
