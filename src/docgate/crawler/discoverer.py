"""Link discovery within a single host."""

from urllib.parse import urljoin, urlsplit, urlunsplit

import structlog
from bs4 import BeautifulSoup

from docgate.models.source import SourceConfig

logger = structlog.get_logger()

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """
    Canonical form used as a visited-set key.

    Lowercases scheme and host, drops default ports and fragments, and gives
    an empty path a trailing slash. The query string is kept as-is.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    netloc = host
    if parts.port and parts.port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{parts.port}"
    if parts.username:
        userinfo = parts.username + (f":{parts.password}" if parts.password else "")
        netloc = f"{userinfo}@{netloc}"
    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))


def _matches_filters(url: str, source: SourceConfig) -> bool:
    if source.exclude and any(pattern in url for pattern in source.exclude):
        return False
    if source.include and not any(pattern in url for pattern in source.include):
        return False
    return True


def discover_links(html: str, base_url: str, source: SourceConfig) -> list[str]:
    """
    Absolute same-host http(s) links found in `html`, in document order.

    Links carrying a fragment are dropped. `source.exclude` substrings reject
    a link; a non-empty `source.include` requires at least one substring match.
    """
    base_host = urlsplit(base_url).hostname
    soup = BeautifulSoup(html, "html.parser")

    links: dict[str, None] = {}
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href:
            continue
        try:
            absolute = urljoin(base_url, href)
            parts = urlsplit(absolute)
            host = parts.hostname
            parts.port  # raises on a malformed port
        except ValueError:
            logger.debug("invalid_link", href=href, base_url=base_url)
            continue

        if parts.scheme not in ("http", "https"):
            continue
        if host != base_host:
            continue
        if "#" in absolute:
            continue
        if not _matches_filters(absolute, source):
            continue
        links.setdefault(absolute, None)

    return list(links)
