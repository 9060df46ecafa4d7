"""Models for extracted documents, review records and chunks."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from docgate.models.base import utcnow

ReviewStatus = Literal["pending", "approved", "rejected"]
ChunkStatus = Literal["pending", "uploaded", "failed"]


class ExtractedDocument(BaseModel):
    """Normalized text pulled out of a fetched page or PDF."""

    title: str
    url: str
    content: str
    lang: str  # ja / zh / en; unknown values chunk with the English splitter
    source_id: str
    version: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class ReviewRecord(ExtractedDocument):
    """An extracted document waiting for (or past) a human decision."""

    id: str
    status: ReviewStatus = "pending"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_document(self) -> ExtractedDocument:
        return ExtractedDocument.model_validate(
            self.model_dump(include=set(ExtractedDocument.model_fields))
        )


class DocumentChunk(BaseModel):
    """A bounded-size piece of an approved document."""

    chunk_index: int  # 1-based
    total_chunks: int
    content: str
    lang: str
    content_hash: str  # sha256 hex of the trimmed content
    parent_url: str
    source_id: str


class ChunkRecord(DocumentChunk):
    """A chunk tracked through the upload lifecycle."""

    id: str
    title: str
    version: str
    status: ChunkStatus = "pending"
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_chunk(self) -> DocumentChunk:
        return DocumentChunk.model_validate(self.model_dump(include=set(DocumentChunk.model_fields)))
