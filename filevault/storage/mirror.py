"""External mirror sink for stored files (best-effort, fire-and-forget)."""

from __future__ import annotations

import asyncio
import ftplib  # nosec B402 - mirroring target is an operator-configured FTP server
import posixpath
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import structlog

from filevault.exceptions import MirrorError

if TYPE_CHECKING:
    import pathlib

    from filevault.config.settings import Settings

logger = structlog.get_logger(__name__)


class MirrorSink(ABC):
    """Abstract base class for remote copies of uploaded files."""

    @abstractmethod
    async def put(self, relative_path: str, local_path: pathlib.Path) -> None:
        """Copy the local file to the sink under ``relative_path``."""


class FtpMirrorSink(MirrorSink):
    """Mirror files to an FTP server, one connection per upload."""

    def __init__(
        self,
        host: str,
        port: int = 21,
        user: str = "anonymous",
        password: str = "",
        remote_dir: str = "/",
        timeout: int = 30,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._remote_dir = remote_dir or "/"
        self._timeout = timeout

    async def put(self, relative_path: str, local_path: pathlib.Path) -> None:
        try:
            await asyncio.to_thread(self._store, relative_path, local_path)
        except (OSError, ftplib.Error) as e:
            msg = f"FTP mirror of {relative_path} failed: {e}"
            raise MirrorError(msg) from e

    def _store(self, relative_path: str, local_path: pathlib.Path) -> None:
        remote_path = posixpath.join(self._remote_dir, relative_path)
        with ftplib.FTP(timeout=self._timeout) as ftp:  # nosec B321
            ftp.connect(self._host, self._port)
            ftp.login(self._user, self._password)
            self._ensure_remote_dirs(ftp, posixpath.dirname(remote_path))
            with local_path.open("rb") as fh:
                ftp.storbinary(f"STOR {posixpath.basename(remote_path)}", fh)

    @staticmethod
    def _ensure_remote_dirs(ftp: ftplib.FTP, remote_dir: str) -> None:
        ftp.cwd("/")
        for part in [p for p in remote_dir.split("/") if p]:
            try:
                ftp.cwd(part)
            except ftplib.error_perm:
                ftp.mkd(part)
                ftp.cwd(part)


class MirrorDispatcher:
    """Dispatch mirror uploads as detached tasks; failures are only logged."""

    def __init__(self, sink: MirrorSink | None) -> None:
        self._sink = sink
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def enabled(self) -> bool:
        return self._sink is not None

    def dispatch(self, relative_path: str, local_path: pathlib.Path) -> None:
        if self._sink is None:
            return
        task = asyncio.create_task(self._run(self._sink, relative_path, local_path))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, sink: MirrorSink, relative_path: str, local_path: pathlib.Path) -> None:
        try:
            await sink.put(relative_path, local_path)
            logger.info("mirror_done", path=relative_path)
        except MirrorError as e:
            logger.warning("mirror_failed", path=relative_path, error=str(e))
        except Exception as e:
            logger.error("mirror_unexpected_error", path=relative_path, error=str(e))

    async def drain(self) -> None:
        """Wait for in-flight mirror uploads (used on shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def create_mirror_sink(settings: Settings) -> MirrorSink | None:
    """Factory: an FTP sink when configured, otherwise no mirroring."""
    if not settings.mirror_enabled:
        return None
    return FtpMirrorSink(
        host=settings.ftp_host,
        port=settings.ftp_port,
        user=settings.ftp_user,
        password=settings.ftp_password,
        remote_dir=settings.ftp_remote_dir,
        timeout=settings.ftp_timeout_seconds,
    )
