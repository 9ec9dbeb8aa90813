"""FastAPI dependency injection and shared state."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request

if TYPE_CHECKING:
    from filevault.services.coordinator import FileOperationCoordinator

PASSWORD_FIELD = "password"


def get_coordinator(request: Request) -> FileOperationCoordinator:
    """Return the coordinator built during application startup."""
    return request.app.state.coordinator  # type: ignore[no-any-return]


def get_credential(request: Request, body_password: str | None = None) -> str | None:
    """Directory password from the header, then the query string, then the body."""
    return (
        request.headers.get(PASSWORD_FIELD)
        or request.query_params.get(PASSWORD_FIELD)
        or body_password
        or None
    )


def query_credential(request: Request) -> str | None:
    """Dependency for routes without a request body."""
    return get_credential(request)
