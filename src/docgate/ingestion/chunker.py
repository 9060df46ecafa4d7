"""Sentence-aware chunker producing bounded, overlapping chunks."""

import hashlib
import re
from collections.abc import Callable

import structlog

from docgate.config import get_settings
from docgate.models.document import DocumentChunk, ExtractedDocument

logger = structlog.get_logger()

# Boundaries are zero-width so every character of the source survives the split.
_JA_BOUNDARY = re.compile(r"(?<=[。！？\n])")
_ZH_BOUNDARY = re.compile(r"(?<=[。\n])")
_EN_BOUNDARY = re.compile(r"(?<=[.!?\n])")


def split_japanese(text: str) -> list[str]:
    return [s for s in _JA_BOUNDARY.split(text) if s]


def split_chinese(text: str) -> list[str]:
    return [s for s in _ZH_BOUNDARY.split(text) if s]


def split_english(text: str) -> list[str]:
    return [s for s in _EN_BOUNDARY.split(text) if s]


SENTENCE_SPLITTERS: dict[str, Callable[[str], list[str]]] = {
    "ja": split_japanese,
    "zh": split_chinese,
    "en": split_english,
}


def compute_content_hash(content: str) -> str:
    """SHA-256 hex digest of the trimmed content."""
    return hashlib.sha256(content.strip().encode("utf-8")).hexdigest()


class TextChunker:
    """
    Split documents into chunks of `min_chars`..`max_chars` characters.

    Strategy:
    1. Split the trimmed text at language-specific sentence boundaries
    2. Greedily accumulate sentences until the next one would overflow
    3. Seed each new chunk with the last `overlap_chars` of the previous one
    4. Fold an undersized tail into the previous chunk, moving the boundary
       back if the merge would overflow

    Chunk contents are never trimmed, so concatenating the chunks with the
    overlap prefixes removed reproduces the trimmed source text.
    """

    def __init__(
        self,
        min_chars: int | None = None,
        max_chars: int | None = None,
        overlap_chars: int | None = None,
    ):
        settings = get_settings()
        self.min_chars = min_chars or settings.chunk_min_chars
        self.max_chars = max_chars or settings.chunk_max_chars
        self.overlap_chars = overlap_chars if overlap_chars is not None else settings.chunk_overlap_chars

        if not 0 <= self.overlap_chars < self.min_chars <= self.max_chars:
            raise ValueError(
                f"chunk sizes must satisfy 0 <= overlap < min <= max, got "
                f"overlap={self.overlap_chars} min={self.min_chars} max={self.max_chars}"
            )

    def chunk(self, doc: ExtractedDocument) -> list[DocumentChunk]:
        """
        Split an extracted document into chunks.

        Args:
            doc: Approved document to chunk

        Returns:
            Chunks with 1-based `chunk_index` and a shared `total_chunks`;
            empty when the trimmed content is shorter than `min_chars`
        """
        text = doc.content.strip()
        if len(text) < self.min_chars:
            logger.debug("content_too_short_to_chunk", url=doc.url, length=len(text))
            return []

        pieces = self._accumulate(self._segments(text, doc.lang))

        chunks = [
            self._create_chunk(doc, chunk_index=i, content=content)
            for i, content in enumerate(pieces, start=1)
        ]
        total = len(chunks)
        for chunk in chunks:
            chunk.total_chunks = total

        logger.debug("document_chunked", url=doc.url, lang=doc.lang, chunks=total)
        return chunks

    def _segments(self, text: str, lang: str) -> list[str]:
        """Sentence segments, with oversized ones hard-split so any one fits."""
        splitter = SENTENCE_SPLITTERS.get(lang)
        if splitter is None:
            logger.warning("unknown_language_fallback", lang=lang)
            splitter = split_english

        limit = self.max_chars - self.min_chars or self.max_chars
        segments = []
        for segment in splitter(text):
            while len(segment) > limit:
                segments.append(segment[:limit])
                segment = segment[limit:]
            if segment:
                segments.append(segment)
        return segments

    def _accumulate(self, segments: list[str]) -> list[str]:
        pieces: list[str] = []
        buffer = ""
        overlap_len = 0  # length of the overlap prefix seeded into `buffer`

        for segment in segments:
            if len(buffer) + len(segment) > self.max_chars and len(buffer) >= self.min_chars:
                pieces.append(buffer)
                overlap = buffer[-self.overlap_chars:] if self.overlap_chars else ""
                overlap_len = len(overlap)
                buffer = overlap + segment
            else:
                buffer += segment

        if not pieces or len(buffer) >= self.min_chars:
            pieces.append(buffer)
        else:
            self._merge_tail(pieces, buffer[overlap_len:])

        return pieces

    def _merge_tail(self, pieces: list[str], new_text: str) -> None:
        """Fold undersized trailing text into the last piece, in place."""
        merged = pieces[-1] + new_text
        if len(merged) <= self.max_chars:
            pieces[-1] = merged
            return

        # Too big for one chunk: cut so the tail, with its overlap, is exactly min_chars.
        cut = len(merged) - (self.min_chars - self.overlap_chars)
        pieces[-1] = merged[:cut]
        pieces.append(merged[cut - self.overlap_chars:])

    def _create_chunk(self, doc: ExtractedDocument, chunk_index: int, content: str) -> DocumentChunk:
        return DocumentChunk(
            chunk_index=chunk_index,
            total_chunks=0,  # set once all chunks exist
            content=content,
            lang=doc.lang,
            content_hash=compute_content_hash(content),
            parent_url=doc.url,
            source_id=doc.source_id,
        )


# Singleton chunker instance
_chunker = None


def get_chunker() -> TextChunker:
    """Get the singleton chunker instance."""
    global _chunker
    if _chunker is None:
        _chunker = TextChunker()
    return _chunker
