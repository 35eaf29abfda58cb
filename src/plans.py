"""Plan tiers: generator gating and upload limits."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from src.schemas import JobKey, Plan

logger = logging.getLogger(__name__)

MB = 1024 * 1024

# Jobs unlocked by each tier, cumulative
PLAN_JOBS: Dict[Plan, List[JobKey]] = {
    Plan.FREE: [JobKey.SUMMARY],
    Plan.PRO: [
        JobKey.SUMMARY,
        JobKey.SOCIAL_POSTS,
        JobKey.TITLES,
        JobKey.HASHTAGS,
    ],
    Plan.ULTRA: [
        JobKey.SUMMARY,
        JobKey.SOCIAL_POSTS,
        JobKey.TITLES,
        JobKey.HASHTAGS,
        JobKey.KEY_MOMENTS,
        JobKey.YOUTUBE_TIMESTAMPS,
    ],
}


@dataclass(frozen=True)
class PlanLimits:
    """Upload limits for a plan. None means unlimited."""

    max_file_size: int
    max_duration: Optional[int]  # seconds
    max_projects: Optional[int]


PLAN_LIMITS: Dict[Plan, PlanLimits] = {
    Plan.FREE: PlanLimits(max_file_size=10 * MB, max_duration=10 * 60, max_projects=3),
    Plan.PRO: PlanLimits(max_file_size=200 * MB, max_duration=2 * 60 * 60, max_projects=30),
    Plan.ULTRA: PlanLimits(max_file_size=3 * 1024 * MB, max_duration=None, max_projects=None),
}


def normalize_plan(plan: Any) -> Plan:
    """Map a raw plan value to a Plan, falling back to free for anything unknown."""
    if isinstance(plan, Plan):
        return plan
    if isinstance(plan, str):
        try:
            return Plan(plan.strip().lower())
        except ValueError:
            pass
    if plan is not None:
        logger.warning(f"Unknown plan {plan!r}, falling back to free")
    return Plan.FREE


def jobs_for_plan(plan: Any) -> List[JobKey]:
    """Return the generation jobs enabled for a plan, in execution order."""
    return list(PLAN_JOBS[normalize_plan(plan)])


def plan_allows_job(plan: Any, job: JobKey) -> bool:
    return job in PLAN_JOBS[normalize_plan(plan)]


def minimum_plan_for_job(job: JobKey) -> Plan:
    """Return the lowest tier that includes the job."""
    for plan in (Plan.FREE, Plan.PRO, Plan.ULTRA):
        if job in PLAN_JOBS[plan]:
            return plan
    return Plan.ULTRA


@dataclass
class UploadValidationResult:
    """Outcome of an upload limit check.

    Attributes:
        allowed: Whether the upload may proceed.
        reason: One of `file_size`, `duration` or `project_limit` when rejected.
        message: User-facing explanation when rejected.
        current_count: Project count used for the check, when relevant.
        limit: The limit that was exceeded.
    """

    allowed: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    current_count: Optional[int] = None
    limit: Optional[int] = None


def check_upload_limits(
    repository,
    user_id: str,
    plan: Any,
    file_size: int,
    duration: Optional[int] = None,
) -> UploadValidationResult:
    """
    Validate an upload against the plan's file size, duration and project count limits.

    Free plans count every project ever created (deleted included) so deleting
    does not free a slot; paid plans count active projects only; ultra has no
    project limit.

    Parameters:
        repository: Project repository used to read the user's counters.
        user_id (str): The uploading user.
        plan: Raw plan value; unknown values are treated as free.
        file_size (int): Size of the upload in bytes.
        duration (Optional[int]): Audio duration in seconds, when known.

    Returns:
        UploadValidationResult: `allowed=True`, or the first limit that was exceeded.
    """
    tier = normalize_plan(plan)
    limits = PLAN_LIMITS[tier]

    if file_size > limits.max_file_size:
        return UploadValidationResult(
            allowed=False,
            reason="file_size",
            message=(
                f"File size ({file_size / MB:.1f}MB) exceeds your plan limit "
                f"of {limits.max_file_size / MB:.0f}MB"
            ),
            limit=limits.max_file_size,
        )

    if duration and limits.max_duration and duration > limits.max_duration:
        return UploadValidationResult(
            allowed=False,
            reason="duration",
            message=(
                f"Duration ({duration // 60} minutes) exceeds your plan limit "
                f"of {limits.max_duration // 60} minutes"
            ),
            limit=limits.max_duration,
        )

    if limits.max_projects is not None:
        include_deleted = tier == Plan.FREE
        count = repository.get_user_project_count(user_id, include_deleted=include_deleted)
        if count >= limits.max_projects:
            scope = "total" if include_deleted else "active"
            return UploadValidationResult(
                allowed=False,
                reason="project_limit",
                message=f"You've reached your plan limit of {limits.max_projects} {scope} projects",
                current_count=count,
                limit=limits.max_projects,
            )

    return UploadValidationResult(allowed=True)
