"""FastAPI dependencies for API routes."""

from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from syncwatch.server.state import SyncJob

# Security scheme
security = HTTPBearer(auto_error=False)


def get_job(request: Request) -> SyncJob:
    """Get the sync job from app state."""
    job: SyncJob = request.app.state.job
    return job


def require_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> None:
    """Validate the bearer token when the server is configured with one."""
    expected: str | None = request.app.state.api_token
    if not expected:
        return
    if credentials is None or not secrets.compare_digest(
        credentials.credentials, expected
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
