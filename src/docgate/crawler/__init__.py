"""Fetching, scheduling and breadth-first crawling."""

from docgate.crawler.discoverer import discover_links, normalize_url
from docgate.crawler.fetcher import Fetcher, auth_headers, classify_content_type, decode_body
from docgate.crawler.orchestrator import CrawlOrchestrator, CrawlStats
from docgate.crawler.scheduler import CrawlScheduler, PacingGate

__all__ = [
    "CrawlOrchestrator",
    "CrawlScheduler",
    "CrawlStats",
    "Fetcher",
    "PacingGate",
    "auth_headers",
    "classify_content_type",
    "decode_body",
    "discover_links",
    "normalize_url",
]
