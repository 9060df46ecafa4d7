"""Shared model helpers."""

from datetime import datetime, timezone
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Page(BaseModel, Generic[T]):
    """One page of a filtered, newest-first listing."""

    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size
