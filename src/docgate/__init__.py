"""docgate: crawl document sources, gate them through human review, upload approved chunks."""

__version__ = "0.1.0"
