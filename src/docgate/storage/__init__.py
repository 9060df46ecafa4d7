"""Storage package."""

from docgate.storage.chunks import ChunkStore
from docgate.storage.database import (
    Base,
    OperationORM,
    create_engine,
    create_session_factory,
    init_database,
)
from docgate.storage.operations import OperationLog, new_operation_id
from docgate.storage.paging import MAX_PAGE_SIZE, clamp_page, paginate
from docgate.storage.reviews import ReviewStore

__all__ = [
    "MAX_PAGE_SIZE",
    "Base",
    "ChunkStore",
    "OperationLog",
    "OperationORM",
    "ReviewStore",
    "clamp_page",
    "create_engine",
    "create_session_factory",
    "init_database",
    "new_operation_id",
    "paginate",
]
