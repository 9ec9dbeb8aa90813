"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel

from filevault.config.settings import Settings
from filevault.models import database as _models  # noqa: F401 - registers tables
from filevault.services.coordinator import FileOperationCoordinator
from filevault.storage.local_store import LocalFileStore
from filevault.storage.mirror import MirrorDispatcher
from filevault.storage.protected_dirs import AccessGuard
from filevault.storage.repositories.files import FileRepository
from filevault.web.app import create_app


@pytest.fixture()
def upload_root(tmp_path: Path) -> Path:
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture()
def settings(tmp_path: Path, upload_root: Path) -> Settings:
    return Settings(
        _env_file=None,
        uploads_dir=str(upload_root),
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'metadata.db'}",
        upload_rate_limit=1000,
        debug=True,
    )


@pytest.fixture()
async def async_engine(tmp_path: Path):
    """SQLite engine in tmp_path with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'repo.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def file_repo(async_engine) -> FileRepository:
    return FileRepository(async_engine)


@pytest.fixture()
def local_store(upload_root: Path) -> LocalFileStore:
    return LocalFileStore(upload_root)


@pytest.fixture()
def access_guard(upload_root: Path) -> AccessGuard:
    return AccessGuard(upload_root / ".protected_dirs.json")


@pytest.fixture()
def coordinator(
    settings: Settings,
    local_store: LocalFileStore,
    file_repo: FileRepository,
    access_guard: AccessGuard,
) -> FileOperationCoordinator:
    return FileOperationCoordinator(
        settings=settings,
        store=local_store,
        repo=file_repo,
        guard=access_guard,
        mirror=MirrorDispatcher(None),
    )


@pytest.fixture()
def app(settings: Settings):
    """Create a fresh app instance bound to an isolated upload root."""
    return create_app(settings)


@pytest.fixture()
async def client(app):
    """An AsyncClient against the app with its startup reconciliation run."""
    async with LifespanManager(app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
