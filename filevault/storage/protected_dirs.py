"""Password protection for directories, persisted as a JSON side table."""

from __future__ import annotations

import asyncio
import json
import os
import pathlib  # noqa: TC003 - used at runtime for Path operations
import tempfile

import structlog
from werkzeug.security import check_password_hash, generate_password_hash

from filevault.exceptions import AccessDeniedError, StorageError
from filevault.storage.paths import normalize, parent_of

logger = structlog.get_logger(__name__)


def hash_secret(secret: str) -> str:
    """Salted, work-factored hash in werkzeug's "method$salt$hash" format."""
    return generate_password_hash(secret)


class AccessGuard:
    """Maps directories to password hashes with nearest-ancestor inheritance.

    Entries live in a flat dict keyed by normalized path. Every mutation
    rewrites the whole side file; concurrent writers are last-writer-wins.
    """

    def __init__(self, path: pathlib.Path) -> None:
        self._path = path
        self._entries: dict[str, str] = {}

    @property
    def entries(self) -> dict[str, str]:
        return dict(self._entries)

    async def load(self) -> None:
        """Load the side table from disk; a missing file means no protection."""
        if not self._path.exists():
            self._entries = {}
            return
        try:
            raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
            data = json.loads(raw) if raw.strip() else {}
        except (OSError, json.JSONDecodeError) as e:
            msg = f"Cannot read protected directories from {self._path}: {e}"
            raise StorageError(msg) from e
        if not isinstance(data, dict):
            msg = f"Protected directories file {self._path} must hold a JSON object"
            raise StorageError(msg)
        self._entries = {normalize(k): str(v) for k, v in data.items()}
        logger.info("protected_dirs_loaded", count=len(self._entries))

    def governing_entry(self, directory: str) -> tuple[str, str] | None:
        """Return the (path, hash) entry of the closest protected ancestor."""
        candidate = normalize(directory)
        while True:
            password_hash = self._entries.get(candidate)
            if password_hash is not None:
                return candidate, password_hash
            if not candidate:
                return None
            candidate = parent_of(candidate)

    def is_protected(self, directory: str) -> bool:
        return self.governing_entry(directory) is not None

    def verify(self, directory: str, secret: str | None) -> bool:
        entry = self.governing_entry(directory)
        if entry is None:
            return True
        if not secret:
            return False
        return check_password_hash(entry[1], secret)

    def require(self, directory: str, secret: str | None) -> None:
        """Raise AccessDeniedError unless ``secret`` unlocks ``directory``."""
        if not self.verify(directory, secret):
            logger.warning("access_denied", directory=directory, supplied=bool(secret))
            raise AccessDeniedError("Access denied: directory is password protected")

    async def protect(self, directory: str, secret: str) -> None:
        key = normalize(directory)
        self._entries[key] = hash_secret(secret)
        await self._save()
        logger.info("directory_protected", directory=key)

    async def unprotect(self, directory: str) -> None:
        key = normalize(directory)
        if self._entries.pop(key, None) is None:
            return
        await self._save()
        logger.info("directory_unprotected", directory=key)

    async def _save(self) -> None:
        payload = json.dumps(self._entries, indent=2, sort_keys=True)
        await asyncio.to_thread(self._write_atomic, payload)

    def _write_atomic(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".protected-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self._path)
        except OSError:
            pathlib.Path(tmp_name).unlink(missing_ok=True)
            raise
