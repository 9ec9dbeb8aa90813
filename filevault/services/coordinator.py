"""High-level file operations keeping the filesystem and metadata in sync.

Every mutation touches the filesystem first and the metadata table second, so
a crash in between leaves at most an orphan file on disk, which the next
startup reconciliation picks up. No locking is done across concurrent
requests for the same id or path.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import structlog

from filevault.exceptions import (
    DuplicateDirectoryError,
    FileConflictError,
    InvalidPathError,
    InvalidRequestError,
    NoFilesError,
    NotFoundError,
    PayloadTooLargeError,
    TooManyFilesError,
    UnsupportedTypeError,
)
from filevault.models.database import FileRecord
from filevault.storage import paths
from filevault.utils.sanitize import (
    build_stored_name,
    extract_suffix,
    new_suffix,
    repair_filename_encoding,
    split_extension,
)

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Sequence

    from filevault.config.settings import Settings
    from filevault.storage.local_store import LocalFileStore
    from filevault.storage.mirror import MirrorDispatcher
    from filevault.storage.protected_dirs import AccessGuard
    from filevault.storage.repositories.files import FileRepository

logger = structlog.get_logger(__name__)


class UploadSource(Protocol):
    """Anything shaped like a Starlette ``UploadFile``."""

    filename: str | None

    async def read(self, size: int = -1) -> bytes: ...


@dataclass(frozen=True)
class StorageStats:
    total_files: int
    total_bytes: int
    disk_used: int
    disk_available: int


class FileOperationCoordinator:
    """Orchestrates uploads, renames, moves, deletes and directory management."""

    def __init__(
        self,
        settings: Settings,
        store: LocalFileStore,
        repo: FileRepository,
        guard: AccessGuard,
        mirror: MirrorDispatcher,
    ) -> None:
        self._settings = settings
        self._store = store
        self._repo = repo
        self._guard = guard
        self._mirror = mirror

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def upload(
        self,
        directory: str | None,
        files: Sequence[UploadSource],
        secret: str | None = None,
    ) -> list[FileRecord]:
        target_dir = paths.normalize(directory)
        files = [f for f in files if f.filename]
        if not files:
            raise NoFilesError("No files uploaded")
        if len(files) > self._settings.max_files_per_upload:
            msg = f"Too many files: at most {self._settings.max_files_per_upload} per upload"
            raise TooManyFilesError(msg)

        names = [repair_filename_encoding(f.filename or "") for f in files]
        for name in names:
            self._check_extension(split_extension(name)[1], name)

        self._guard.require(target_dir, secret)
        await self._store.make_dir(target_dir)

        written: list[str] = []
        pending: list[FileRecord] = []
        for upload, original_name in zip(files, names, strict=True):
            data = await upload.read(self._settings.max_file_size + 1)
            if len(data) > self._settings.max_file_size:
                for relative in written:
                    await self._store.unlink(relative)
                limit_mb = self._settings.max_file_size // (1024 * 1024)
                msg = f"File too large: {original_name} exceeds {limit_mb} MB"
                raise PayloadTooLargeError(msg)

            base, extension = split_extension(original_name)
            stored_name = build_stored_name(base, new_suffix(), extension)
            relative = paths.join(target_dir, stored_name)
            await self._store.write(relative, data)
            written.append(relative)
            pending.append(
                FileRecord(
                    stored_name=stored_name,
                    directory=target_dir,
                    relative_path=relative,
                    original_name=original_name,
                    size_bytes=len(data),
                    extension=extension,
                )
            )

        records = [await self._repo.insert(record) for record in pending]
        for record in records:
            self._mirror.dispatch(record.relative_path, self._store.path_for(record.relative_path))
        logger.info("files_uploaded", directory=target_dir, count=len(records))
        return records

    async def rename(self, file_id: str, new_name: str | None, secret: str | None = None) -> FileRecord:
        new_name = repair_filename_encoding((new_name or "").strip())
        if not new_name:
            raise InvalidRequestError("New name is required")
        if "/" in new_name or "\\" in new_name:
            raise InvalidRequestError("New name cannot contain path separators")

        record = await self._repo.get(file_id)
        self._guard.require(record.directory, secret)

        base, extension = split_extension(new_name)
        if extension:
            self._check_extension(extension, new_name)
            display_name = new_name
        else:
            extension = record.extension
            display_name = f"{new_name}{extension}"
        suffix = extract_suffix(record.stored_name) or new_suffix()
        stored_name = build_stored_name(base, suffix, extension)
        relative = paths.join(record.directory, stored_name)

        if relative != record.relative_path:
            if not await self._store.is_file(record.relative_path):
                raise NotFoundError("File missing on disk")
            if await self._store.is_file(relative):
                raise FileConflictError("A file with that name already exists")
            await self._store.rename(record.relative_path, relative)

        updated = await self._repo.update(
            file_id,
            stored_name=stored_name,
            relative_path=relative,
            original_name=display_name,
            extension=extension,
        )
        logger.info("file_renamed", id=file_id, path=relative)
        return updated

    async def move(self, file_id: str, new_dir: str | None, secret: str | None = None) -> FileRecord:
        if new_dir is None:
            raise InvalidRequestError("Destination directory is required")
        destination = paths.normalize(new_dir)

        record = await self._repo.get(file_id)
        self._guard.require(record.directory, secret)
        self._guard.require(destination, secret)

        if destination == record.directory:
            return record
        relative = paths.join(destination, record.stored_name)
        if not await self._store.is_file(record.relative_path):
            raise NotFoundError("File missing on disk")
        if await self._store.is_file(relative):
            raise FileConflictError("Destination already contains a file with that name")

        await self._store.make_dir(destination)
        await self._store.rename(record.relative_path, relative)
        updated = await self._repo.update(file_id, directory=destination, relative_path=relative)
        logger.info("file_moved", id=file_id, source=record.directory, destination=destination)
        return updated

    async def delete_file(self, file_id: str, secret: str | None = None) -> None:
        record = await self._repo.get(file_id)
        self._guard.require(record.directory, secret)
        if not await self._store.unlink(record.relative_path):
            logger.info("file_already_missing", id=file_id, path=record.relative_path)
        await self._repo.delete(file_id)
        logger.info("file_deleted", id=file_id, path=record.relative_path)

    async def download_target(self, file_id: str, secret: str | None = None) -> tuple[FileRecord, pathlib.Path]:
        record = await self._repo.get(file_id)
        self._guard.require(record.directory, secret)
        if not await self._store.is_file(record.relative_path):
            raise NotFoundError("File missing on disk")
        return record, self._store.path_for(record.relative_path)

    async def list_files(
        self,
        directory: str | None = None,
        search: str | None = None,
        secret: str | None = None,
    ) -> list[FileRecord]:
        # An absent directory means the root only, never every directory
        target_dir = paths.normalize(directory)
        self._guard.require(target_dir, secret)
        return await self._repo.search(target_dir, search)

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    async def create_directory(
        self,
        name: str | None,
        password: str | None = None,
        secret: str | None = None,
    ) -> str:
        directory = paths.normalize(name)
        if not directory:
            raise InvalidPathError("Directory name is required")
        if await self._store.is_dir(directory) or await self._store.is_file(directory):
            raise DuplicateDirectoryError("Directory already exists")
        self._guard.require(paths.parent_of(directory), secret)

        await self._store.make_dir(directory)
        if password:
            await self._guard.protect(directory, password)
        logger.info("directory_created", directory=directory, protected=bool(password))
        return directory

    async def delete_directory(self, name: str | None, secret: str | None = None) -> str:
        directory = paths.normalize(name)
        if not directory:
            raise InvalidPathError("Cannot delete the upload root")
        self._guard.require(directory, secret)
        if not await self._store.is_dir(directory):
            raise NotFoundError("Directory not found")

        await self._store.remove_tree(directory)
        removed = await self._repo.delete_by_path_prefix(directory)
        await self._guard.unprotect(directory)
        logger.info("directory_deleted", directory=directory, records_removed=removed)
        return directory

    async def list_directories(self, directory: str | None = None, secret: str | None = None) -> list[str]:
        target_dir = paths.normalize(directory)
        self._guard.require(target_dir, secret)
        if not await self._store.is_dir(target_dir):
            raise NotFoundError("Directory not found")
        return await self._store.list_subdirectories(target_dir)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def stats(self) -> StorageStats:
        count, total = await self._repo.count_and_total_size()
        used, available = await self._store.disk_usage()
        return StorageStats(
            total_files=count,
            total_bytes=total,
            disk_used=used,
            disk_available=available,
        )

    def _check_extension(self, extension: str, name: str) -> None:
        if extension not in self._settings.allowed_extensions:
            allowed = ", ".join(sorted(self._settings.allowed_extensions))
            msg = f"Unsupported file type for {name!r}. Allowed: {allowed}"
            raise UnsupportedTypeError(msg)
