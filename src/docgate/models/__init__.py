"""Data models."""

from docgate.models.base import Page, utcnow
from docgate.models.crawl import ContentType, CrawlResult, CrawlTask, SourceProgress, TaskStatus
from docgate.models.document import (
    ChunkRecord,
    ChunkStatus,
    DocumentChunk,
    ExtractedDocument,
    ReviewRecord,
    ReviewStatus,
)
from docgate.models.source import AuthConfig, Lang, SourceConfig, load_sources, validate_sources
from docgate.models.upload import (
    BatchItemResult,
    BatchMetadata,
    ChunkUploadResult,
    IngestRequest,
    IngestResult,
    ItemError,
    OperationRecord,
    OperationStatus,
    UploadSummary,
)

__all__ = [
    "AuthConfig",
    "BatchItemResult",
    "BatchMetadata",
    "ChunkRecord",
    "ChunkStatus",
    "ChunkUploadResult",
    "ContentType",
    "CrawlResult",
    "CrawlTask",
    "DocumentChunk",
    "ExtractedDocument",
    "IngestRequest",
    "IngestResult",
    "ItemError",
    "Lang",
    "OperationRecord",
    "OperationStatus",
    "Page",
    "ReviewRecord",
    "ReviewStatus",
    "SourceConfig",
    "SourceProgress",
    "TaskStatus",
    "UploadSummary",
    "load_sources",
    "utcnow",
    "validate_sources",
]
