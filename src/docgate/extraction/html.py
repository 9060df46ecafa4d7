"""HTML extractor: title, main content and language."""

import structlog
from bs4 import BeautifulSoup

from docgate.extraction.text import clean_text, detect_language
from docgate.models.base import utcnow
from docgate.models.document import ExtractedDocument

logger = structlog.get_logger()

NOISE_SELECTORS = "script, style, nav, footer, header, aside, .ad, .advertisement, .ads"
MAIN_SELECTORS = "main, article, .content, .main-content, #content, .post-content"

MIN_CONTENT_WARNING = 100


def can_handle(content_type: str) -> bool:
    return content_type == "html" or "text/html" in content_type or "xhtml" in content_type


def _title(soup: BeautifulSoup) -> str:
    for tag in (soup.find("title"), soup.find("h1")):
        if tag is not None:
            text = tag.get_text().strip()
            if text:
                return text
    og = soup.find("meta", attrs={"property": "og:title"})
    if og is not None and og.get("content"):
        return og["content"].strip()
    return ""


def extract_html(
    url: str,
    raw: str | bytes,
    source_id: str,
    version: str,
    lang: str = "en",
) -> ExtractedDocument:
    """
    Extract readable text from an HTML page.

    Args:
        url: Page URL (also the title of last resort)
        raw: Markup; bytes are decoded as UTF-8
        source_id: Owning source
        version: Content version of the source
        lang: Declared source language, used when no CJK script is found

    Returns:
        ExtractedDocument with whitespace-collapsed content
    """
    html = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    soup = BeautifulSoup(html, "html.parser")

    # Title first: <title> lives in <head>, <h1> often inside <header>.
    title = _title(soup)

    for tag in soup.select(NOISE_SELECTORS):
        tag.decompose()

    main = soup.select_one(MAIN_SELECTORS)
    if main is None:
        main = soup.body or soup
    content = clean_text(main.get_text(" "))

    if len(content) < MIN_CONTENT_WARNING:
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
            "contentType": "html",
        },
    )
