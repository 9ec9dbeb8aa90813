"""Database-backed file metadata repository using SQLModel + AsyncSession."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func
from sqlmodel import col, delete, select
from sqlmodel.ext.asyncio.session import AsyncSession

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

from filevault.exceptions import DuplicateIdError, NotFoundError
from filevault.models.database import FileRecord

logger = structlog.get_logger(__name__)

_UPDATABLE_FIELDS = frozenset(
    {"stored_name", "directory", "relative_path", "original_name", "size_bytes", "extension"}
)


class FileRepository:
    """Durable mapping from file id to FileRecord.

    Every call opens its own session; there are no multi-row transactions.
    Directory filters are exact matches: ``""`` is the root, and callers
    that want every directory use ``list_all``.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def insert(self, record: FileRecord) -> FileRecord:
        async with AsyncSession(self._engine, expire_on_commit=False) as session:
            if await session.get(FileRecord, record.id) is not None:
                msg = f"File id already exists: {record.id}"
                raise DuplicateIdError(msg)
            session.add(record)
            await session.commit()
            await session.refresh(record)
        logger.info("file_record_inserted", id=record.id, path=record.relative_path)
        return record

    async def get(self, file_id: str) -> FileRecord:
        async with AsyncSession(self._engine) as session:
            record = await session.get(FileRecord, file_id)
        if record is None:
            msg = f"File not found: {file_id}"
            raise NotFoundError(msg)
        return record

    async def list_all(self) -> list[FileRecord]:
        async with AsyncSession(self._engine) as session:
            statement = select(FileRecord).order_by(col(FileRecord.uploaded_at).desc())
            results = await session.execute(statement)
            return list(results.scalars().all())

    async def list_by_directory(self, directory: str) -> list[FileRecord]:
        async with AsyncSession(self._engine) as session:
            statement = (
                select(FileRecord)
                .where(col(FileRecord.directory) == directory)
                .order_by(col(FileRecord.uploaded_at).desc())
            )
            results = await session.execute(statement)
            return list(results.scalars().all())

    async def search(self, directory: str, term: str | None = None) -> list[FileRecord]:
        """Records in ``directory`` whose original name contains ``term`` (case-insensitive).

        SQL LOWER() only folds ASCII, so the substring match runs in Python.
        """
        records = await self.list_by_directory(directory)
        needle = (term or "").strip().casefold()
        if not needle:
            return records
        return [r for r in records if needle in r.original_name.casefold()]

    async def update(self, file_id: str, **updates: Any) -> FileRecord:
        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Cannot update fields: {sorted(unknown)}"
            raise ValueError(msg)
        async with AsyncSession(self._engine, expire_on_commit=False) as session:
            record = await session.get(FileRecord, file_id)
            if record is None:
                msg = f"File not found: {file_id}"
                raise NotFoundError(msg)
            for key, value in updates.items():
                setattr(record, key, value)
            session.add(record)
            await session.commit()
            await session.refresh(record)
        logger.debug("file_record_updated", id=file_id, fields=sorted(updates))
        return record

    async def delete(self, file_id: str) -> None:
        async with AsyncSession(self._engine) as session:
            record = await session.get(FileRecord, file_id)
            if record is None:
                msg = f"File not found: {file_id}"
                raise NotFoundError(msg)
            await session.delete(record)
            await session.commit()
        logger.info("file_record_deleted", id=file_id)

    async def delete_by_path_prefix(self, prefix: str) -> int:
        """Delete every record stored under ``prefix/``. Returns the number removed."""
        pattern = prefix.rstrip("/") + "/"
        async with AsyncSession(self._engine) as session:
            statement = delete(FileRecord).where(
                col(FileRecord.relative_path).startswith(pattern, autoescape=True)
            )
            result = await session.execute(statement)
            await session.commit()
        removed = result.rowcount or 0
        logger.info("file_records_deleted_by_prefix", prefix=prefix, count=removed)
        return removed

    async def count_and_total_size(self) -> tuple[int, int]:
        async with AsyncSession(self._engine) as session:
            statement = select(func.count(), func.coalesce(func.sum(FileRecord.size_bytes), 0))
            result = await session.execute(statement.select_from(FileRecord))
            count, total = result.one()
        return int(count), int(total)
