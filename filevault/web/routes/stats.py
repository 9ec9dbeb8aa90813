"""Storage statistics route."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from filevault.models.api import DiskSpace, StatsResponse
from filevault.services.coordinator import FileOperationCoordinator  # noqa: TC001 - resolved by FastAPI
from filevault.utils.sanitize import format_bytes
from filevault.web.dependencies import get_coordinator

router = APIRouter(tags=["stats"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    coordinator: FileOperationCoordinator = Depends(get_coordinator),
) -> StatsResponse:
    stats = await coordinator.stats()
    return StatsResponse(
        total_files=stats.total_files,
        total_size=format_bytes(stats.total_bytes),
        disk_space=DiskSpace(
            used=format_bytes(stats.disk_used),
            available=format_bytes(stats.disk_available),
        ),
    )
