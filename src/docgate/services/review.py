"""Human review decisions: approve (and chunk) or reject."""

from collections.abc import Sequence

import structlog
from pydantic import BaseModel, Field

from docgate.errors import DocgateError, InvalidRequestError
from docgate.ingestion.chunker import TextChunker, get_chunker
from docgate.models.document import ReviewRecord, ReviewStatus
from docgate.models.upload import ItemError
from docgate.observability.events import EventBus
from docgate.observability.metrics import CHUNKS_CREATED, REVIEW_DECISIONS
from docgate.storage.chunks import ChunkStore
from docgate.storage.reviews import ReviewStore

logger = structlog.get_logger()

MAX_BATCH_IDS = 100


class ApprovalResult(BaseModel):
    review: ReviewRecord
    chunks_created: int = 0
    chunks_duplicate: int = 0
    chunk_ids: list[str] = Field(default_factory=list)


class ReviewActionResult(BaseModel):
    review_id: str
    status: ReviewStatus | None = None
    chunks_created: int = 0
    error: ItemError | None = None


class BatchReviewResult(BaseModel):
    processed: int = 0
    failed: int = 0
    results: list[ReviewActionResult] = Field(default_factory=list)


class ReviewService:
    """
    Applies review decisions.

    Approval is the only path from the review queue to the chunk store: the
    status check happens before anything is chunked, so a non-pending record
    never produces chunks.
    """

    def __init__(
        self,
        reviews: ReviewStore,
        chunks: ChunkStore,
        chunker: TextChunker | None = None,
        bus: EventBus | None = None,
    ):
        self.reviews = reviews
        self.chunks = chunks
        self.chunker = chunker or get_chunker()
        self.bus = bus

    def approve(self, review_id: str) -> ApprovalResult:
        """
        Approve a pending record and chunk it into the chunk store.

        Raises:
            NotFoundError: unknown id
            InvalidStatusError: the record is not pending
        """
        record = self.reviews.transition(review_id, "approved")
        REVIEW_DECISIONS.labels(decision="approved").inc()

        result = ApprovalResult(review=record)
        for chunk in self.chunker.chunk(record.to_document()):
            chunk_record, created = self.chunks.add(chunk, title=record.title, version=record.version)
            result.chunk_ids.append(chunk_record.id)
            if created:
                result.chunks_created += 1
                self._publish("chunk.update", {"id": chunk_record.id, "status": chunk_record.status})
            else:
                result.chunks_duplicate += 1

        CHUNKS_CREATED.labels(result="created").inc(result.chunks_created)
        CHUNKS_CREATED.labels(result="duplicate").inc(result.chunks_duplicate)
        logger.info(
            "review_approved",
            review_id=review_id,
            source_id=record.source_id,
            chunks_created=result.chunks_created,
            chunks_duplicate=result.chunks_duplicate,
        )
        self._publish_review(record)
        return result

    def reject(self, review_id: str) -> ReviewRecord:
        """
        Reject a pending record. Nothing is chunked.

        Raises:
            NotFoundError: unknown id
            InvalidStatusError: the record is not pending
        """
        record = self.reviews.transition(review_id, "rejected")
        REVIEW_DECISIONS.labels(decision="rejected").inc()
        logger.info("review_rejected", review_id=review_id, source_id=record.source_id)
        self._publish_review(record)
        return record

    def batch_approve(self, review_ids: Sequence[str]) -> BatchReviewResult:
        return self._batch(review_ids, approve=True)

    def batch_reject(self, review_ids: Sequence[str]) -> BatchReviewResult:
        return self._batch(review_ids, approve=False)

    def _batch(self, review_ids: Sequence[str], approve: bool) -> BatchReviewResult:
        ids = list(dict.fromkeys(review_ids))
        if not ids:
            raise InvalidRequestError("at least one review id is required")
        if len(ids) > MAX_BATCH_IDS:
            raise InvalidRequestError(f"at most {MAX_BATCH_IDS} review ids per request")

        batch = BatchReviewResult()
        for review_id in ids:
            try:
                if approve:
                    approval = self.approve(review_id)
                    entry = ReviewActionResult(
                        review_id=review_id, status="approved", chunks_created=approval.chunks_created
                    )
                else:
                    self.reject(review_id)
                    entry = ReviewActionResult(review_id=review_id, status="rejected")
                batch.processed += 1
            except DocgateError as e:
                batch.failed += 1
                entry = ReviewActionResult(review_id=review_id, error=ItemError(**e.to_dict()))
            batch.results.append(entry)

        return batch

    def _publish_review(self, record: ReviewRecord) -> None:
        self._publish(
            "review.update",
            {"id": record.id, "status": record.status, "source_id": record.source_id, "url": record.url},
        )

    def _publish(self, event, data: dict) -> None:
        if self.bus is not None:
            self.bus.publish(event, data)
