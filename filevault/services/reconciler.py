"""Startup reconciliation of file metadata against the upload root."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from filevault.exceptions import InvalidPathError, NotFoundError
from filevault.models.database import FileRecord
from filevault.storage import paths
from filevault.utils.sanitize import split_extension

if TYPE_CHECKING:
    from filevault.storage.local_store import DiskFile, LocalFileStore
    from filevault.storage.repositories.files import FileRepository

logger = structlog.get_logger(__name__)


@dataclass
class ReconcileReport:
    """Outcome of a reconciliation pass."""

    kept: int = 0
    pruned: list[str] = field(default_factory=list)
    discovered: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class FilesystemReconciler:
    """Bring the metadata table in line with the files that exist on disk.

    The filesystem wins: records pointing at missing files are deleted, and
    files with no record get one synthesized from ``stat``.
    """

    def __init__(self, store: LocalFileStore, repo: FileRepository) -> None:
        self._store = store
        self._repo = repo

    async def reconcile(self) -> ReconcileReport:
        report = ReconcileReport()
        known_paths = await self._prune_missing(report)

        for disk_file in await self._store.walk_files():
            if disk_file.relative_path in known_paths:
                continue
            if not self._is_canonical(disk_file.relative_path):
                # Names the resolver would rewrite (e.g. containing backslashes) cannot be addressed
                report.skipped.append(disk_file.relative_path)
                logger.warning("reconcile_skipped_file", path=disk_file.relative_path)
                continue
            record = await self._repo.insert(self._record_for(disk_file))
            known_paths.add(record.relative_path)
            report.discovered.append(record.relative_path)

        logger.info(
            "reconcile_done",
            kept=report.kept,
            pruned=len(report.pruned),
            discovered=len(report.discovered),
            skipped=len(report.skipped),
        )
        return report

    async def _prune_missing(self, report: ReconcileReport) -> set[str]:
        known_paths: set[str] = set()
        for record in await self._repo.list_all():
            if await self._exists(record.relative_path):
                known_paths.add(record.relative_path)
                report.kept += 1
                continue
            try:
                await self._repo.delete(record.id)
            except NotFoundError:
                pass
            report.pruned.append(record.relative_path)
            logger.info("reconcile_pruned_record", id=record.id, path=record.relative_path)
        return known_paths

    async def _exists(self, relative_path: str) -> bool:
        if not self._is_canonical(relative_path):
            return False
        try:
            return await self._store.is_file(relative_path)
        except InvalidPathError:
            # Resolves outside the root, e.g. through a symlink
            return False

    @staticmethod
    def _is_canonical(relative_path: str) -> bool:
        try:
            return paths.normalize(relative_path) == relative_path
        except InvalidPathError:
            return False

    @staticmethod
    def _record_for(disk_file: DiskFile) -> FileRecord:
        _, extension = split_extension(disk_file.name)
        modified = datetime.fromtimestamp(disk_file.modified_at, UTC)
        return FileRecord(
            stored_name=disk_file.name,
            directory=disk_file.directory,
            relative_path=disk_file.relative_path,
            original_name=disk_file.name,
            size_bytes=disk_file.size_bytes,
            uploaded_at=modified,
            extension=extension,
        )
