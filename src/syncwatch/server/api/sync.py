"""Sync job API routes.

Endpoints:
- GET /api/sync/status: Current status of the sync job
- POST /api/sync: Start a full sync
- POST /api/sync/project/{project_id}: Start a sync of one project
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from syncwatch.server.api.deps import get_job, require_token
from syncwatch.server.schemas import StartSyncResponse, SyncStatusResponse
from syncwatch.server.state import SyncAlreadyRunning, SyncJob, SyncRateLimited

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/sync", tags=["sync"], dependencies=[Depends(require_token)]
)


def _start(job: SyncJob, project_id: str | None) -> JSONResponse | StartSyncResponse:
    try:
        started = job.start(project_id)
    except SyncAlreadyRunning as e:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"success": False, "message": e.message, "status": job.status.value},
        )
    except SyncRateLimited as e:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"success": False, "message": e.message, "status": job.status.value},
            headers={"Retry-After": str(e.retry_after)},
        )

    message = "Sync started" if started else "Project sync already in progress"
    return StartSyncResponse(success=True, message=message, status=job.status.value)


@router.get("/status", response_model=SyncStatusResponse)
def get_status(job: SyncJob = Depends(get_job)) -> SyncStatusResponse:
    """Get the current status of the sync job."""
    return SyncStatusResponse.model_validate(job.snapshot())


@router.post("", response_model=StartSyncResponse)
async def start_sync(job: SyncJob = Depends(get_job)) -> JSONResponse | StartSyncResponse:
    """Start a full sync."""
    return _start(job, None)


@router.post("/project/{project_id}", response_model=StartSyncResponse)
async def start_project_sync(
    project_id: str,
    job: SyncJob = Depends(get_job),
) -> JSONResponse | StartSyncResponse:
    """Start a sync limited to one project."""
    return _start(job, project_id)
