"""PDF extractor backed by PyMuPDF."""

import fitz  # PyMuPDF
import structlog

from docgate.errors import ExtractionError
from docgate.extraction.text import clean_text, detect_language
from docgate.models.base import utcnow
from docgate.models.document import ExtractedDocument

logger = structlog.get_logger()

MAX_TITLE_LINE = 200


def can_handle(content_type: str) -> bool:
    return content_type == "pdf" or "application/pdf" in content_type


def extract_pdf(
    url: str,
    raw: bytes,
    source_id: str,
    version: str,
    lang: str = "en",
) -> ExtractedDocument:
    """
    Extract text from a PDF body.

    Raises:
        ExtractionError: the payload could not be parsed as a PDF
    """
    try:
        with fitz.open(stream=raw, filetype="pdf") as doc:
            page_count = doc.page_count
            meta_title = (doc.metadata or {}).get("title") or ""
            text = "\n".join(page.get_text() for page in doc)
    except (RuntimeError, ValueError) as e:
        # PyMuPDF's FileDataError is a RuntimeError subclass.
        logger.error("pdf_extraction_failed", url=url, error=str(e))
        raise ExtractionError(f"pdf extraction failed for {url}: {e}") from e

    title = meta_title.strip()
    if not title:
        first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
        if len(first_line) < MAX_TITLE_LINE:
            title = first_line

    content = clean_text(text)
    if len(content) < 100:
        logger.warning("extracted_content_short", url=url, length=len(content))

    return ExtractedDocument(
        title=title or url,
        url=url,
        content=content,
        lang=detect_language(content, fallback=lang),
        source_id=source_id,
        version=version,
        metadata={
            "extractedAt": utcnow().isoformat(),
            "contentType": "pdf",
            "pages": page_count,
        },
    )
