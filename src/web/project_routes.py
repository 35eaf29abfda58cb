"""API routes for projects: create, list, read, rename, delete and retry.

Every route is scoped to the authenticated user; projects owned by someone
else are reported as forbidden on mutation and as missing on read.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from src.db.errors import (
    ProjectAuthorizationError,
    ProjectNotFoundError,
    ProjectStoreError,
    ProjectValidationError,
)
from src.services.project_service import UploadLimitExceededError
from src.web.auth import get_current_user
from src.web.models import (
    CreateProjectRequest,
    ProjectCountResponse,
    ProjectListResponse,
    ProjectResponse,
    ProjectSummaryResponse,
    RenameProjectRequest,
    RetryJobRequest,
    SuccessResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


def _to_http_error(error: ProjectStoreError) -> HTTPException:
    """Translate a store error into the matching HTTP error."""
    if isinstance(error, ProjectNotFoundError):
        return HTTPException(status_code=404, detail="Project not found")
    if isinstance(error, ProjectAuthorizationError):
        return HTTPException(status_code=403, detail=str(error))
    if isinstance(error, UploadLimitExceededError):
        return HTTPException(
            status_code=403,
            detail={
                "message": str(error),
                "reason": error.result.reason,
                "limit": error.result.limit,
                "current_count": error.result.current_count,
            },
        )
    if isinstance(error, ProjectValidationError):
        return HTTPException(status_code=400, detail=str(error))
    return HTTPException(status_code=500, detail="Project store error")


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(
    request: Request,
    body: CreateProjectRequest,
    current_user: dict = Depends(get_current_user),
):
    """
    Create a project for an uploaded file and start processing.

    Checks the caller's plan limits before anything is written.
    """
    service = request.app.state.project_service
    try:
        project = await asyncio.to_thread(
            service.create_project,
            user_id=current_user["sub"],
            plan=current_user.get("plan"),
            file_url=body.file_url.strip(),
            file_name=body.file_name.strip(),
            file_size=body.file_size,
            mime_type=body.mime_type,
            file_duration=body.file_duration,
        )
    except ProjectStoreError as e:
        raise _to_http_error(e)
    return ProjectResponse.model_validate(project)


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    request: Request,
    limit: int = Query(default=20, ge=1, le=100),
    cursor: Optional[str] = Query(default=None),
    current_user: dict = Depends(get_current_user),
):
    """List the caller's projects, newest first."""
    repository = request.app.state.repository
    try:
        page = await asyncio.to_thread(
            repository.list_user_projects, current_user["sub"], limit, cursor
        )
    except ProjectStoreError as e:
        raise _to_http_error(e)
    return ProjectListResponse(
        projects=[ProjectSummaryResponse.model_validate(p) for p in page.items],
        next_cursor=page.next_cursor,
        is_done=page.is_done,
    )


@router.get("/count", response_model=ProjectCountResponse)
async def get_project_count(
    request: Request,
    include_deleted: bool = Query(default=False),
    current_user: dict = Depends(get_current_user),
):
    repository = request.app.state.repository
    count = await asyncio.to_thread(
        repository.get_user_project_count, current_user["sub"], include_deleted
    )
    return ProjectCountResponse(count=count, include_deleted=include_deleted)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    request: Request,
    project_id: str,
    current_user: dict = Depends(get_current_user),
):
    repository = request.app.state.repository
    project = await asyncio.to_thread(repository.get_project, project_id, current_user["sub"])
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return ProjectResponse.model_validate(project)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def rename_project(
    request: Request,
    project_id: str,
    body: RenameProjectRequest,
    current_user: dict = Depends(get_current_user),
):
    service = request.app.state.project_service
    try:
        project = await asyncio.to_thread(
            service.rename_project, project_id, current_user["sub"], body.display_name
        )
    except ProjectStoreError as e:
        raise _to_http_error(e)
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", response_model=SuccessResponse)
async def delete_project(
    request: Request,
    project_id: str,
    current_user: dict = Depends(get_current_user),
):
    """Soft-delete a project and remove its uploaded file."""
    service = request.app.state.project_service
    try:
        await asyncio.to_thread(service.delete_project, project_id, current_user["sub"])
    except ProjectStoreError as e:
        raise _to_http_error(e)
    return SuccessResponse(message="Project deleted")


@router.post("/{project_id}/retry", response_model=SuccessResponse, status_code=202)
async def retry_job(
    request: Request,
    project_id: str,
    body: RetryJobRequest,
    current_user: dict = Depends(get_current_user),
):
    """Regenerate a single output, e.g. after a failure or a plan upgrade."""
    service = request.app.state.project_service
    try:
        await asyncio.to_thread(
            service.retry_job,
            project_id,
            current_user["sub"],
            body.job,
            current_user.get("plan"),
        )
    except ProjectStoreError as e:
        raise _to_http_error(e)
    return SuccessResponse(message=f"Retrying {body.job.value}")
