"""Tests for plan tiers and upload limits."""

from unittest.mock import Mock

import pytest

from src.plans import (
    MB,
    check_upload_limits,
    jobs_for_plan,
    minimum_plan_for_job,
    normalize_plan,
    plan_allows_job,
)
from src.schemas import JobKey, Plan


class TestNormalizePlan:
    """Tests for plan normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("free", Plan.FREE),
            ("PRO", Plan.PRO),
            (" ultra ", Plan.ULTRA),
            (Plan.PRO, Plan.PRO),
            (None, Plan.FREE),
            ("enterprise", Plan.FREE),
            (42, Plan.FREE),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_plan(raw) == expected


class TestJobGating:
    """Tests for which generators each plan unlocks."""

    def test_free_jobs(self):
        assert jobs_for_plan("free") == [JobKey.SUMMARY]

    def test_pro_jobs(self):
        assert jobs_for_plan("pro") == [
            JobKey.SUMMARY,
            JobKey.SOCIAL_POSTS,
            JobKey.TITLES,
            JobKey.HASHTAGS,
        ]

    def test_ultra_includes_everything(self):
        assert set(jobs_for_plan("ultra")) == set(JobKey)

    def test_plan_allows_job(self):
        assert plan_allows_job("pro", JobKey.TITLES)
        assert not plan_allows_job("pro", JobKey.KEY_MOMENTS)
        assert not plan_allows_job("free", JobKey.HASHTAGS)

    def test_minimum_plan_for_job(self):
        assert minimum_plan_for_job(JobKey.SUMMARY) == Plan.FREE
        assert minimum_plan_for_job(JobKey.SOCIAL_POSTS) == Plan.PRO
        assert minimum_plan_for_job(JobKey.YOUTUBE_TIMESTAMPS) == Plan.ULTRA


class TestCheckUploadLimits:
    """Tests for upload limit checks."""

    def _repo(self, count=0):
        repo = Mock()
        repo.get_user_project_count.return_value = count
        return repo

    def test_allowed(self):
        result = check_upload_limits(self._repo(), "user-1", "free", file_size=MB, duration=60)
        assert result.allowed is True
        assert result.reason is None

    def test_file_too_large(self):
        result = check_upload_limits(self._repo(), "user-1", "free", file_size=11 * MB)

        assert result.allowed is False
        assert result.reason == "file_size"
        assert "10MB" in result.message

    def test_duration_too_long(self):
        result = check_upload_limits(self._repo(), "user-1", "free", file_size=MB, duration=11 * 60)

        assert result.allowed is False
        assert result.reason == "duration"
        assert "10 minutes" in result.message

    def test_unknown_duration_is_not_checked(self):
        result = check_upload_limits(self._repo(), "user-1", "free", file_size=MB, duration=None)
        assert result.allowed is True

    def test_free_counts_deleted_projects(self):
        """Test that free plans count every project ever created."""
        repo = self._repo(count=3)

        result = check_upload_limits(repo, "user-1", "free", file_size=MB)

        assert result.allowed is False
        assert result.reason == "project_limit"
        assert result.current_count == 3
        assert result.message == "You've reached your plan limit of 3 total projects"
        repo.get_user_project_count.assert_called_once_with("user-1", include_deleted=True)

    def test_pro_counts_active_projects(self):
        repo = self._repo(count=29)

        result = check_upload_limits(repo, "user-1", "pro", file_size=100 * MB)

        assert result.allowed is True
        repo.get_user_project_count.assert_called_once_with("user-1", include_deleted=False)

    def test_pro_limit_message(self):
        result = check_upload_limits(self._repo(count=30), "user-1", "pro", file_size=MB)
        assert result.message == "You've reached your plan limit of 30 active projects"

    def test_ultra_has_no_project_limit(self):
        repo = self._repo(count=10_000)

        result = check_upload_limits(repo, "user-1", "ultra", file_size=MB, duration=10 * 3600)

        assert result.allowed is True
        repo.get_user_project_count.assert_not_called()
