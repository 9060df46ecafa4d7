"""Observability package."""

from docgate.observability.events import Event, EventBus, LogForwarder, Subscription, get_event_bus
from docgate.observability.metrics import (
    CHUNKS_CREATED,
    CHUNKS_UPLOADED,
    CRAWL_RUNS,
    DOCUMENTS_QUEUED,
    EVENTS_DROPPED,
    FETCH_LATENCY,
    INGEST_LATENCY,
    INGEST_REQUESTS,
    PAGES_FETCHED,
    PENDING_REVIEWS,
    REVIEW_DECISIONS,
    ROBOTS_BLOCKED,
    WS_SUBSCRIBERS,
    get_metrics,
)

__all__ = [
    "CHUNKS_CREATED",
    "CHUNKS_UPLOADED",
    "CRAWL_RUNS",
    "DOCUMENTS_QUEUED",
    "EVENTS_DROPPED",
    "FETCH_LATENCY",
    "INGEST_LATENCY",
    "INGEST_REQUESTS",
    "PAGES_FETCHED",
    "PENDING_REVIEWS",
    "REVIEW_DECISIONS",
    "ROBOTS_BLOCKED",
    "WS_SUBSCRIBERS",
    "Event",
    "EventBus",
    "LogForwarder",
    "Subscription",
    "get_event_bus",
    "get_metrics",
]
