"""Chunking and upload to the remote ingest endpoint."""

from docgate.ingestion.batch import BatchUploader
from docgate.ingestion.chunker import TextChunker, compute_content_hash, get_chunker
from docgate.ingestion.client import IngestClient, generate_title

__all__ = [
    "BatchUploader",
    "IngestClient",
    "TextChunker",
    "compute_content_hash",
    "generate_title",
    "get_chunker",
]
