"""SQLModel database table models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


def _utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def _new_uuid() -> str:
    return str(uuid.uuid4())


class FileRecord(SQLModel, table=True):
    __tablename__ = "files"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    stored_name: str
    directory: str = Field(default="", index=True)  # "" is the upload root
    relative_path: str = Field(unique=True, index=True)  # directory/stored_name, "/" separated
    original_name: str
    size_bytes: int = Field(default=0, ge=0)
    uploaded_at: datetime = Field(default_factory=_utc_now, index=True)
    extension: str = ""  # lowercased, leading dot
