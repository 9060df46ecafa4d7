"""Durable log of upload operations."""

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docgate.errors import NotFoundError
from docgate.models.base import Page
from docgate.models.upload import OperationRecord
from docgate.storage.database import OperationORM
from docgate.storage.paging import clamp_page

logger = structlog.get_logger()


def new_operation_id() -> str:
    return f"op_{uuid.uuid4().hex}"


class OperationLog:
    """
    Repository for upload operations.

    Each call opens its own session, so the log can be shared by the API
    and background upload tasks.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def start(
        self,
        source_id: str,
        docs_count: int,
        version: str | None = None,
        lang: str | None = None,
        crawler_version: str | None = None,
    ) -> OperationRecord:
        """Record a new operation in `processing` state."""
        orm = OperationORM(
            operation_id=new_operation_id(),
            source_id=source_id,
            status="processing",
            docs_count=docs_count,
            failed_count=0,
            op_metadata={"version": version, "lang": lang, "crawlerVersion": crawler_version},
            created_at=datetime.now(timezone.utc),
        )
        async with self.session_factory() as session:
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            record = self._to_model(orm)

        logger.info("operation_started", operation_id=record.operation_id, source_id=source_id)
        return record

    async def complete(
        self,
        operation_id: str,
        docs_count: int,
        failed_count: int,
        remote_operation_id: str | None = None,
    ) -> OperationRecord:
        return await self._finish(
            operation_id,
            status="completed",
            docs_count=docs_count,
            failed_count=failed_count,
            remote_operation_id=remote_operation_id or None,
        )

    async def fail(self, operation_id: str, error: str, failed_count: int | None = None) -> OperationRecord:
        return await self._finish(operation_id, status="failed", error=error, failed_count=failed_count)

    async def _finish(self, operation_id: str, status: str, **values) -> OperationRecord:
        async with self.session_factory() as session:
            orm = await session.get(OperationORM, operation_id)
            if orm is None:
                raise NotFoundError(f"operation not found: {operation_id}")
            orm.status = status
            orm.completed_at = datetime.now(timezone.utc)
            for key, value in values.items():
                if value is not None:
                    setattr(orm, key, value)
            await session.commit()
            await session.refresh(orm)
            record = self._to_model(orm)

        logger.info(
            "operation_finished",
            operation_id=operation_id,
            status=status,
            docs_count=record.docs_count,
            failed_count=record.failed_count,
        )
        return record

    async def get(self, operation_id: str) -> OperationRecord | None:
        async with self.session_factory() as session:
            orm = await session.get(OperationORM, operation_id)
            return self._to_model(orm) if orm else None

    async def query(
        self,
        source_id: str | None = None,
        status: str | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Page[OperationRecord]:
        """Operations newest first, optionally filtered."""
        page, page_size = clamp_page(page, page_size)

        query = select(OperationORM)
        count_query = select(func.count()).select_from(OperationORM)
        if source_id:
            query = query.where(OperationORM.source_id == source_id)
            count_query = count_query.where(OperationORM.source_id == source_id)
        if status:
            query = query.where(OperationORM.status == status)
            count_query = count_query.where(OperationORM.status == status)

        query = (
            query.order_by(OperationORM.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )

        async with self.session_factory() as session:
            total = (await session.execute(count_query)).scalar_one()
            rows = (await session.execute(query)).scalars().all()

        return Page[OperationRecord](
            items=[self._to_model(orm) for orm in rows],
            total=total,
            page=page,
            page_size=page_size,
        )

    def _to_model(self, orm: OperationORM) -> OperationRecord:
        meta = orm.op_metadata or {}
        return OperationRecord(
            operation_id=orm.operation_id,
            source_id=orm.source_id,
            status=orm.status,
            docs_count=orm.docs_count,
            failed_count=orm.failed_count,
            version=meta.get("version"),
            lang=meta.get("lang"),
            crawler_version=meta.get("crawlerVersion"),
            remote_operation_id=orm.remote_operation_id,
            error=orm.error,
            created_at=orm.created_at,
            completed_at=orm.completed_at,
        )
