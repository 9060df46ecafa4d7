"""Database setup with SQLAlchemy async support (SQLite for local, Postgres for prod)."""

from __future__ import annotations

from sqlalchemy import JSON as SA_JSON
from sqlalchemy import Column, DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from docgate.config import get_settings


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def _json_type():
    """JSONB on Postgres, JSON elsewhere."""
    return SA_JSON().with_variant(PG_JSONB, "postgresql")


class OperationORM(Base):
    """Operations table - one row per upload operation."""

    __tablename__ = "operations"

    operation_id = Column(String, primary_key=True)  # "op_<hex>"
    source_id = Column(String, nullable=False)
    status = Column(String, nullable=False, default="processing")
    docs_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)
    remote_operation_id = Column(String, nullable=True)
    error = Column(Text, nullable=True)

    # version / lang / crawlerVersion; named to avoid clashing with SQLAlchemy's "metadata"
    op_metadata = Column(_json_type(), default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_operations_source", "source_id"),
        Index("idx_operations_created", "created_at"),
    )


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """Create an async engine for `database_url` (defaults to settings)."""
    settings = get_settings()
    db_url = database_url or settings.database_url

    engine_kwargs = {
        "echo": settings.debug,
    }

    # Pooling options should NOT be forced on SQLite.
    if not _is_sqlite(db_url):
        engine_kwargs.update(
            {
                "pool_pre_ping": True,
                "pool_size": 5,
                "max_overflow": 5,
            }
        )

    return create_async_engine(db_url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_database(engine: AsyncEngine) -> None:
    """Create tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
