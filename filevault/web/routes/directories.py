"""Directory create, delete and listing routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from filevault.models.api import CreateDirectoryRequest, MessageResponse
from filevault.services.coordinator import FileOperationCoordinator  # noqa: TC001 - resolved by FastAPI
from filevault.web.dependencies import get_coordinator, get_credential, query_credential

router = APIRouter(prefix="/directories", tags=["directories"])


@router.post("", response_model=MessageResponse)
async def create_directory(
    body: CreateDirectoryRequest,
    request: Request,
    coordinator: FileOperationCoordinator = Depends(get_coordinator),
) -> dict[str, str]:
    # body.password protects the new directory; the header or query credential unlocks its parent
    secret = get_credential(request)
    directory = await coordinator.create_directory(body.name, password=body.password, secret=secret)
    return {"message": f"Directory {directory} created"}


@router.get("", response_model=list[str])
async def list_directories(
    dir: str = "",  # noqa: A002 - query parameter name
    secret: str | None = Depends(query_credential),
    coordinator: FileOperationCoordinator = Depends(get_coordinator),
) -> list[str]:
    return await coordinator.list_directories(dir, secret=secret)


@router.delete("/{name:path}", response_model=MessageResponse)
async def delete_directory(
    name: str,
    secret: str | None = Depends(query_credential),
    coordinator: FileOperationCoordinator = Depends(get_coordinator),
) -> dict[str, str]:
    directory = await coordinator.delete_directory(name, secret=secret)
    return {"message": f"Directory {directory} deleted"}

