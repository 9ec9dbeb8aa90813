"""API request/response schemas for FastAPI endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from filevault.models.database import FileRecord


class FileRecordResponse(BaseModel):
    id: str
    filename: str
    directory: str
    path: str
    original_name: str = Field(serialization_alias="originalName")
    size: int
    upload_date: str = Field(serialization_alias="uploadDate")
    type: str

    @classmethod
    def from_record(cls, record: FileRecord) -> FileRecordResponse:
        return cls(
            id=record.id,
            filename=record.stored_name,
            directory=record.directory,
            path=record.relative_path,
            original_name=record.original_name,
            size=record.size_bytes,
            upload_date=record.uploaded_at.isoformat(),
            type=record.extension,
        )


class UploadResponse(BaseModel):
    message: str
    files: list[FileRecordResponse]


class MessageResponse(BaseModel):
    message: str


class RenameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_name: str | None = Field(default=None, alias="newName")
    password: str | None = None


class MoveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_dir: str | None = Field(default=None, alias="newDir")
    password: str | None = None


class CreateDirectoryRequest(BaseModel):
    name: str | None = None
    password: str | None = None


class DiskSpace(BaseModel):
    used: str
    available: str


class StatsResponse(BaseModel):
    total_files: int = Field(serialization_alias="totalFiles")
    total_size: str = Field(serialization_alias="totalSize")
    disk_space: DiskSpace = Field(serialization_alias="diskSpace")
