"""Models for remote ingest batches, upload summaries and operations."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from docgate.models.base import utcnow
from docgate.models.document import DocumentChunk

OperationStatus = Literal["processing", "completed", "failed"]


class ItemError(BaseModel):
    code: str
    message: str


class BatchItemResult(BaseModel):
    """Per-document outcome reported by the ingest endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    index: int
    status: Literal["success", "failed"]
    doc_id: str | None = Field(default=None, alias="docId")
    error: ItemError | None = None


class BatchMetadata(BaseModel):
    total_docs: int
    crawled_at: datetime = Field(default_factory=utcnow)
    crawler_version: str


class IngestRequest(BaseModel):
    """One batch of chunks bound for the ingest endpoint."""

    source_id: str
    version: str
    docs: list[DocumentChunk]
    batch_metadata: BatchMetadata


class IngestResult(BaseModel):
    """Aggregated result of one or more ingest batches."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    processed: int = 0
    failed: int = 0
    operation_id: str = Field(default="", alias="operationId")
    results: list[BatchItemResult] = Field(default_factory=list)


class ChunkUploadResult(BaseModel):
    chunk_id: str
    status: Literal["success", "failed", "duplicate"]
    error: ItemError | None = None


class UploadSummary(BaseModel):
    """What happened to each requested chunk in one upload request."""

    operation_id: str = ""
    operation_ids: list[str] = Field(default_factory=list)
    processed: int = 0
    failed: int = 0
    duplicates: int = 0
    results: list[ChunkUploadResult] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0


class OperationRecord(BaseModel):
    """Durable audit entry for one upload operation."""

    operation_id: str
    source_id: str
    status: OperationStatus = "processing"
    docs_count: int = 0
    failed_count: int = 0
    version: str | None = None
    lang: str | None = None
    crawler_version: str | None = None
    remote_operation_id: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
