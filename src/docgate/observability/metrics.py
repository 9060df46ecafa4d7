from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# Crawl Metrics
PAGES_FETCHED = Counter(
    "docgate_pages_fetched_total",
    "Total number of fetch attempts",
    ["source_id", "status"]
)

FETCH_LATENCY = Histogram(
    "docgate_fetch_latency_seconds",
    "Page fetch latency in seconds",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0]
)

ROBOTS_BLOCKED = Counter(
    "docgate_robots_blocked_total",
    "Fetches refused by robots.txt"
)

DOCUMENTS_QUEUED = Counter(
    "docgate_documents_queued_total",
    "Extracted documents added to the review queue",
    ["source_id"]
)

CRAWL_RUNS = Counter(
    "docgate_crawl_runs_total",
    "Completed crawl runs",
    ["status"]
)

# Review Metrics
REVIEW_DECISIONS = Counter(
    "docgate_review_decisions_total",
    "Review decisions applied",
    ["decision"]
)

CHUNKS_CREATED = Counter(
    "docgate_chunks_created_total",
    "Chunks produced by approvals",
    ["result"]
)

PENDING_REVIEWS = Gauge(
    "docgate_pending_reviews",
    "Review records waiting for a decision"
)

# Upload Metrics
CHUNKS_UPLOADED = Counter(
    "docgate_chunks_uploaded_total",
    "Chunk upload outcomes",
    ["status"]
)

INGEST_REQUESTS = Counter(
    "docgate_ingest_requests_total",
    "Batch requests sent to the ingest endpoint",
    ["status"]
)

INGEST_LATENCY = Histogram(
    "docgate_ingest_latency_seconds",
    "Ingest batch request latency in seconds",
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0]
)

# Event Metrics
EVENTS_DROPPED = Counter(
    "docgate_events_dropped_total",
    "Events dropped because a subscriber queue was full"
)

WS_SUBSCRIBERS = Gauge(
    "docgate_ws_subscribers",
    "Connected event subscribers"
)


def get_metrics():
    """Return latest metrics in Prometheus format."""
    return generate_latest(), CONTENT_TYPE_LATEST
