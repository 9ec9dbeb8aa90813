"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from filevault.config.logging import setup_logging
from filevault.config.settings import Settings, get_settings
from filevault.exceptions import FileVaultError
from filevault.services.coordinator import FileOperationCoordinator
from filevault.services.reconciler import FilesystemReconciler
from filevault.storage.database import create_engine, init_db
from filevault.storage.local_store import LocalFileStore
from filevault.storage.mirror import MirrorDispatcher, create_mirror_sink
from filevault.storage.protected_dirs import AccessGuard
from filevault.storage.repositories.files import FileRepository
from filevault.web.middleware import (
    RateLimitMiddleware,
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
)
from filevault.web.routes.directories import router as directories_router
from filevault.web.routes.files import router as files_router
from filevault.web.routes.stats import router as stats_router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from contextlib import AbstractAsyncContextManager

logger = structlog.get_logger(__name__)


def _lifespan(settings: Settings) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Build the startup/shutdown hook bound to ``settings``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Any failure here aborts startup rather than serving a half-initialized process
        store = LocalFileStore(settings.upload_root)
        store.ensure_root()

        engine = create_engine(settings.resolved_database_url, echo=settings.debug)
        await init_db(engine)

        repo = FileRepository(engine)
        guard = AccessGuard(settings.protected_dirs_path)
        await guard.load()

        report = await FilesystemReconciler(store, repo).reconcile()
        mirror = MirrorDispatcher(create_mirror_sink(settings))

        app.state.settings = settings
        app.state.engine = engine
        app.state.reconcile_report = report
        app.state.mirror = mirror
        app.state.coordinator = FileOperationCoordinator(
            settings=settings,
            store=store,
            repo=repo,
            guard=guard,
            mirror=mirror,
        )
        logger.info("app_started", root=str(store.root), mirror=mirror.enabled)

        yield

        await mirror.drain()
        await engine.dispose()
        logger.info("app_stopped")

    return lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    setup_logging(
        log_level=settings.log_level,
        json_output=not settings.debug,
        upload_root=str(settings.upload_root),
        quiet_loggers=settings.quiet_loggers,
    )

    app = FastAPI(
        title="FileVault",
        description="Personal file hosting with protected directories",
        version="0.1.0",
        lifespan=_lifespan(settings),
    )

    @app.exception_handler(FileVaultError)
    async def filevault_error_handler(request: Request, exc: FileVaultError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": jsonable_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", path=request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # Middleware order matters: last added runs first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID", "Password"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.upload_rate_limit,
        window_seconds=settings.upload_rate_window_seconds,
        prefix="/upload",
    )
    app.add_middleware(RequestIDMiddleware)

    app.include_router(files_router)
    app.include_router(directories_router)
    app.include_router(stats_router)

    @app.get("/health")
    async def health_check(request: Request) -> dict[str, object]:
        from filevault.web.health import check_health

        return await check_health(request.app.state.engine, request.app.state.mirror.enabled)

    # Front-end assets, if present; mounted last so API routes win
    static_dir = Path(__file__).parent / "static"
    if static_dir.exists():
        app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")

    logger.info("app_created")
    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()]
