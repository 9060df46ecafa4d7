"""Content extraction, dispatched on the fetched content type."""

from collections.abc import Callable
from typing import NamedTuple

from docgate.extraction import html, pdf
from docgate.extraction.html import extract_html
from docgate.extraction.pdf import extract_pdf
from docgate.extraction.text import clean_text, detect_language
from docgate.models.crawl import CrawlResult
from docgate.models.document import ExtractedDocument
from docgate.models.source import SourceConfig


class Extractor(NamedTuple):
    name: str
    can_handle: Callable[[str], bool]
    extract: Callable[..., ExtractedDocument]


HTML_EXTRACTOR = Extractor("html", html.can_handle, extract_html)
PDF_EXTRACTOR = Extractor("pdf", pdf.can_handle, extract_pdf)

EXTRACTORS: tuple[Extractor, ...] = (PDF_EXTRACTOR, HTML_EXTRACTOR)


def get_extractor(content_type: str) -> Extractor:
    """First extractor that accepts `content_type`; HTML when none does."""
    for extractor in EXTRACTORS:
        if extractor.can_handle(content_type):
            return extractor
    return HTML_EXTRACTOR


def extract_document(result: CrawlResult, source: SourceConfig) -> ExtractedDocument | None:
    """
    Extract a successful crawl result, or None when it carries no body.

    Raises:
        ExtractionError: the body could not be parsed
    """
    raw = result.payload if result.content_type == "pdf" else result.text
    if raw is None:
        raw = result.text if result.text is not None else result.payload
    if raw is None:
        return None

    extractor = get_extractor(result.content_type)
    return extractor.extract(
        result.effective_url, raw, source.id, source.version, lang=source.lang
    )


__all__ = [
    "EXTRACTORS",
    "Extractor",
    "clean_text",
    "detect_language",
    "extract_document",
    "extract_html",
    "extract_pdf",
    "get_extractor",
]
