"""
Pydantic models for web API request/response validation.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.schemas import JobKey


class CreateProjectRequest(BaseModel):
    """Request model for creating a project from an uploaded file."""
    file_url: str = Field(..., min_length=1, max_length=2048, description="Public URL of the uploaded audio")
    file_name: str = Field(..., min_length=1, max_length=512, description="Original file name")
    file_size: int = Field(default=0, ge=0, description="File size in bytes")
    mime_type: str = Field(default="", max_length=128, description="MIME type of the upload")
    file_duration: Optional[int] = Field(default=None, ge=0, description="Audio duration in seconds")


class RenameProjectRequest(BaseModel):
    """Request model for renaming a project."""
    display_name: str = Field(..., description="New display name (trimmed, 1-200 characters)")


class RetryJobRequest(BaseModel):
    """Request model for regenerating a single output."""
    job: JobKey = Field(..., description="Output to regenerate")


class EventRequest(BaseModel):
    """An event delivered to the workflow."""
    name: str = Field(..., min_length=1, description="Event name, e.g. podcast/uploaded")
    data: Dict[str, Any] = Field(default_factory=dict, description="Event payload")
    id: Optional[str] = Field(default=None, max_length=200, description="Stable event id for deduplication")


class EventAcceptedResponse(BaseModel):
    """Response for an accepted event."""
    id: str
    name: str
    status: str = "accepted"


class ProjectSummaryResponse(BaseModel):
    """Project fields shown in lists."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    display_name: Optional[str] = None
    file_name: str
    file_size: int = 0
    file_duration: Optional[int] = None
    status: str
    job_status: Dict[str, str] = Field(default_factory=dict)
    created_at: datetime
    completed_at: Optional[datetime] = None


class ProjectResponse(ProjectSummaryResponse):
    """Full project including generated outputs."""
    input_url: str
    file_format: str = ""
    mime_type: str = ""
    transcript: Optional[Dict[str, Any]] = None
    summary: Optional[Dict[str, Any]] = None
    social_posts: Optional[Dict[str, Any]] = None
    titles: Optional[Dict[str, Any]] = None
    hashtags: Optional[List[str]] = None
    key_moments: Optional[List[Dict[str, Any]]] = None
    youtube_timestamps: Optional[List[Dict[str, Any]]] = None
    job_errors: Optional[Dict[str, str]] = None
    error: Optional[Dict[str, Any]] = None
    updated_at: Optional[datetime] = None


class ProjectListResponse(BaseModel):
    """One page of projects."""
    projects: List[ProjectSummaryResponse]
    next_cursor: Optional[str] = None
    is_done: bool = True


class ProjectCountResponse(BaseModel):
    """Project counter value."""
    count: int
    include_deleted: bool = False


class SuccessResponse(BaseModel):
    """Generic success acknowledgement."""
    success: bool = True
    message: Optional[str] = None
