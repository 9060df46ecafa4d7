"""Application services: crawl task, review decisions, uploads."""

from docgate.services.crawl import CrawlService
from docgate.services.review import (
    ApprovalResult,
    BatchReviewResult,
    ReviewActionResult,
    ReviewService,
)
from docgate.services.upload import UploadService

__all__ = [
    "ApprovalResult",
    "BatchReviewResult",
    "CrawlService",
    "ReviewActionResult",
    "ReviewService",
    "UploadService",
]
