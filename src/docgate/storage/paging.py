"""Pagination helpers shared by the stores."""

from collections.abc import Sequence
from typing import TypeVar

from docgate.models.base import Page

T = TypeVar("T")

MAX_PAGE_SIZE = 200


def clamp_page(page: int, page_size: int) -> tuple[int, int]:
    """Page is at least 1; page size is 1..200."""
    return max(page, 1), min(max(page_size, 1), MAX_PAGE_SIZE)


def paginate(items: Sequence[T], page: int, page_size: int) -> Page[T]:
    page, page_size = clamp_page(page, page_size)
    start = (page - 1) * page_size
    return Page(
        items=list(items[start : start + page_size]),
        total=len(items),
        page=page,
        page_size=page_size,
    )
