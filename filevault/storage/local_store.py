"""Local filesystem primitives for the upload root."""

from __future__ import annotations

import asyncio
import os
import pathlib  # noqa: TC003 - used at runtime for Path operations
import shutil
from dataclasses import dataclass

import structlog

from filevault.exceptions import InvalidPathError
from filevault.storage import paths

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DiskFile:
    """A regular file found while walking the upload root."""

    relative_path: str
    directory: str
    name: str
    size_bytes: int
    modified_at: float


class LocalFileStore:
    """Filesystem operations on the upload root with path traversal protection."""

    def __init__(self, root: pathlib.Path) -> None:
        self._root = root.resolve()

    @property
    def root(self) -> pathlib.Path:
        return self._root

    def ensure_root(self) -> None:
        self._root.mkdir(parents=True, exist_ok=True)

    def path_for(self, relative: str) -> pathlib.Path:
        """Resolve a relative path inside the root."""
        return paths.resolve(self._root, relative)

    async def write(self, relative: str, data: bytes) -> None:
        path = self.path_for(relative)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)
        logger.debug("local_store_write", path=relative, size=len(data))

    async def is_file(self, relative: str) -> bool:
        return await asyncio.to_thread(self.path_for(relative).is_file)

    async def is_dir(self, relative: str) -> bool:
        return await asyncio.to_thread(self.path_for(relative).is_dir)

    async def rename(self, source: str, target: str) -> None:
        """Rename or move a file; the target's parent is created if missing."""
        src = self.path_for(source)
        dst = self.path_for(target)

        def _move() -> None:
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(src), str(dst))

        await asyncio.to_thread(_move)
        logger.debug("local_store_move", source=source, target=target)

    async def unlink(self, relative: str) -> bool:
        """Delete a file. Returns False when it was already gone."""
        path = self.path_for(relative)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        return True

    async def make_dir(self, relative: str) -> None:
        """Create a directory and its parents; a regular file in the way is a bad path."""
        path = self.path_for(relative)
        try:
            await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
        except (FileExistsError, NotADirectoryError) as e:
            msg = f"Not a directory: {relative}"
            raise InvalidPathError(msg) from e

    async def remove_tree(self, relative: str) -> None:
        await asyncio.to_thread(shutil.rmtree, self.path_for(relative))

    async def list_subdirectories(self, relative: str) -> list[str]:
        """Immediate, non-reserved subdirectory names of a directory."""
        base = self.path_for(relative)

        def _list() -> list[str]:
            return sorted(
                entry.name
                for entry in base.iterdir()
                if entry.is_dir() and not entry.name.startswith(".")
            )

        return await asyncio.to_thread(_list)

    async def walk_files(self) -> list[DiskFile]:
        """All regular files under the root, skipping symlinks and dot-prefixed entries."""

        def _walk() -> list[DiskFile]:
            found: list[DiskFile] = []
            for dirpath, dirnames, filenames in os.walk(self._root):
                dirnames[:] = [d for d in dirnames if not d.startswith(".")]
                current = pathlib.Path(dirpath)
                directory = current.relative_to(self._root).as_posix()
                directory = "" if directory == "." else directory
                for name in filenames:
                    if name.startswith("."):
                        continue
                    full = current / name
                    if full.is_symlink() or not full.is_file():
                        continue
                    stat = full.stat()
                    found.append(
                        DiskFile(
                            relative_path=paths.join(directory, name),
                            directory=directory,
                            name=name,
                            size_bytes=stat.st_size,
                            modified_at=stat.st_mtime,
                        )
                    )
            return found

        return await asyncio.to_thread(_walk)

    async def disk_usage(self) -> tuple[int, int]:
        """Return (used, available) bytes on the volume holding the root."""
        usage = await asyncio.to_thread(shutil.disk_usage, self._root)
        return usage.used, usage.free
