"""File upload, listing, rename, move, download and delete routes."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import FileResponse

from filevault.models.api import (
    FileRecordResponse,
    MessageResponse,
    MoveRequest,
    RenameRequest,
    UploadResponse,
)
from filevault.services.coordinator import FileOperationCoordinator  # noqa: TC001 - resolved by FastAPI
from filevault.web.dependencies import get_coordinator, get_credential, query_credential

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["files"])


@router.post("/upload", response_model=UploadResponse)
async def upload_files(
    request: Request,
    files: list[UploadFile] | None = File(default=None),
    dir: str = Form(default=""),  # noqa: A002 - multipart field name
    password: str | None = Form(default=None),
    coordinator: FileOperationCoordinator = Depends(get_coordinator),
) -> dict[str, Any]:
    records = await coordinator.upload(
        dir,
        files or [],
        secret=get_credential(request, password),
    )
    return {
        "message": "Upload completed successfully",
        "files": [FileRecordResponse.from_record(r) for r in records],
    }


@router.get("/files", response_model=list[FileRecordResponse])
async def list_files(
    dir: str = "",  # noqa: A002 - query parameter name
    search: str | None = None,
    secret: str | None = Depends(query_credential),
    coordinator: FileOperationCoordinator = Depends(get_coordinator),
) -> list[FileRecordResponse]:
    records = await coordinator.list_files(dir, search, secret=secret)
    return [FileRecordResponse.from_record(r) for r in records]


@router.patch("/rename/{file_id}", response_model=MessageResponse)
async def rename_file(
    file_id: str,
    body: RenameRequest,
    request: Request,
    coordinator: FileOperationCoordinator = Depends(get_coordinator),
) -> dict[str, str]:
    await coordinator.rename(file_id, body.new_name, secret=get_credential(request, body.password))
    return {"message": "File renamed successfully"}


@router.patch("/move/{file_id}", response_model=MessageResponse)
async def move_file(
    file_id: str,
    body: MoveRequest,
    request: Request,
    coordinator: FileOperationCoordinator = Depends(get_coordinator),
) -> dict[str, str]:
    await coordinator.move(file_id, body.new_dir, secret=get_credential(request, body.password))
    return {"message": "File moved successfully"}


@router.get("/download/{file_id}")
async def download_file(
    file_id: str,
    secret: str | None = Depends(query_credential),
    coordinator: FileOperationCoordinator = Depends(get_coordinator),
) -> FileResponse:
    record, path = await coordinator.download_target(file_id, secret=secret)
    logger.info("file_download", id=file_id)
    return FileResponse(
        path,
        filename=record.original_name,
        content_disposition_type="attachment",
    )


@router.delete("/delete/{file_id}", response_model=MessageResponse)
async def delete_file(
    file_id: str,
    secret: str | None = Depends(query_credential),
    coordinator: FileOperationCoordinator = Depends(get_coordinator),
) -> dict[str, str]:
    await coordinator.delete_file(file_id, secret=secret)
    return {"message": "File deleted successfully"}
