"""Tests for project service operations and blob cleanup."""

from unittest.mock import Mock

import pytest
import requests

from src.db.errors import ProjectNotFoundError, ProjectValidationError
from src.db.models import Project
from src.schemas import JobKey
from src.services.blob_storage import BlobStorage, BlobStorageError
from src.services.project_service import (
    ProjectService,
    UploadLimitExceededError,
    file_format_from_name,
)
from src.workflow.events import PODCAST_RETRY_JOB, PODCAST_UPLOADED


@pytest.fixture
def blob_storage():
    return Mock(spec=BlobStorage)


@pytest.fixture
def send_event():
    return Mock()


@pytest.fixture
def service(repository, blob_storage, send_event):
    return ProjectService(repository, blob_storage, send_event)


class TestFileFormat:
    """Tests for deriving the file format from a name."""

    @pytest.mark.parametrize(
        "name,expected",
        [("show.MP3", "mp3"), ("a.b.wav", "wav"), ("noext", "unknown"), (".hidden", "unknown")],
    )
    def test_format(self, name, expected):
        assert file_format_from_name(name) == expected


class TestCreateProject:
    """Tests for ProjectService.create_project."""

    def test_creates_and_emits_event(self, service, repository, send_event):
        project = service.create_project(
            user_id="user-1",
            plan="pro",
            file_url="https://blob.example.com/show.mp3",
            file_name="show.mp3",
            file_size=1024,
            mime_type="audio/mpeg",
            file_duration=300,
        )

        assert repository.get_project(project.id, "user-1") is not None
        assert project.file_format == "mp3"
        send_event.assert_called_once()
        name, payload = send_event.call_args.args
        assert name == PODCAST_UPLOADED
        assert payload["projectId"] == project.id
        assert payload["userId"] == "user-1"
        assert payload["plan"] == "pro"
        assert payload["fileUrl"] == "https://blob.example.com/show.mp3"
        assert payload["fileDuration"] == 300

    def test_missing_fields(self, service, send_event):
        with pytest.raises(ProjectValidationError):
            service.create_project(user_id="user-1", plan="free", file_url="", file_name="a.mp3")
        send_event.assert_not_called()

    def test_rejects_over_limit(self, service, repository, send_event):
        """Test that the free tier stops at three projects, deleted ones included."""
        for i in range(3):
            project = service.create_project("user-1", "free", f"https://b/{i}.mp3", f"{i}.mp3")
        repository.delete_project(project.id, "user-1")
        send_event.reset_mock()

        with pytest.raises(UploadLimitExceededError) as exc_info:
            service.create_project("user-1", "free", "https://b/4.mp3", "4.mp3")

        assert exc_info.value.result.reason == "project_limit"
        assert exc_info.value.result.current_count == 3
        send_event.assert_not_called()

    def test_rejects_large_file(self, service):
        with pytest.raises(UploadLimitExceededError) as exc_info:
            service.create_project("user-1", "free", "https://b/a.mp3", "a.mp3", file_size=50 * 1024 * 1024)
        assert exc_info.value.result.reason == "file_size"


class TestDeleteProject:
    """Tests for soft delete with blob cleanup."""

    def test_deletes_blob(self, service, repository, make_project, blob_storage):
        project = make_project()

        service.delete_project(project.id, "user-1")

        blob_storage.delete.assert_called_once_with(project.input_url)
        assert repository.get_project(project.id, "user-1") is None

    def test_blob_failure_records_orphan(self, service, repository, make_project, blob_storage):
        """Test that a failed blob delete leaves the project deleted and flagged."""
        project = make_project()
        blob_storage.delete.side_effect = BlobStorageError("403 forbidden")

        service.delete_project(project.id, "user-1")

        with repository._get_session() as session:
            row = session.get(Project, project.id)
            assert row.deleted_at is not None
            assert row.orphaned_blob is True
            assert row.orphaned_blob_url == project.input_url

    def test_delete_missing(self, service, blob_storage):
        with pytest.raises(ProjectNotFoundError):
            service.delete_project("missing", "user-1")
        blob_storage.delete.assert_not_called()


class TestRetryJob:
    """Tests for requesting a single-output retry."""

    def test_emits_retry_event(self, service, make_project, send_event):
        project = make_project()

        service.retry_job(project.id, "user-1", JobKey.TITLES, "pro")

        name, payload = send_event.call_args.args
        assert name == PODCAST_RETRY_JOB
        assert payload == {
            "projectId": project.id,
            "userId": "user-1",
            "job": "titles",
            "originalPlan": "pro",
            "currentPlan": "pro",
        }

    def test_job_outside_plan(self, service, make_project, send_event):
        project = make_project()

        with pytest.raises(ProjectValidationError):
            service.retry_job(project.id, "user-1", JobKey.KEY_MOMENTS, "free")
        send_event.assert_not_called()

    def test_summary_not_retryable(self, service, make_project):
        project = make_project()

        with pytest.raises(ProjectValidationError):
            service.retry_job(project.id, "user-1", JobKey.SUMMARY, "ultra")

    def test_other_users_project(self, service, make_project):
        project = make_project()

        with pytest.raises(ProjectNotFoundError):
            service.retry_job(project.id, "user-2", JobKey.TITLES, "pro")


class TestBlobStorage:
    """Tests for the blob storage client."""

    def _config(self, token="token-123"):
        config = Mock()
        config.BLOB_READ_WRITE_TOKEN = token
        config.BLOB_API_URL = "https://blob.example.com"
        return config

    def test_delete_posts_url(self):
        session = Mock()
        session.post.return_value = Mock(ok=True, status_code=200)
        storage = BlobStorage(self._config(), session=session)

        storage.delete("https://b/a.mp3")

        args, kwargs = session.post.call_args
        assert args[0] == "https://blob.example.com/delete"
        assert kwargs["headers"]["Authorization"] == "Bearer token-123"
        assert kwargs["json"] == {"urls": ["https://b/a.mp3"]}

    def test_unconfigured(self):
        storage = BlobStorage(self._config(token=""), session=Mock())

        assert storage.is_configured() is False
        with pytest.raises(BlobStorageError):
            storage.delete("https://b/a.mp3")

    def test_http_failure(self):
        session = Mock()
        session.post.return_value = Mock(ok=False, status_code=500, text="oops")

        with pytest.raises(BlobStorageError, match="500"):
            BlobStorage(self._config(), session=session).delete("https://b/a.mp3")

    def test_connection_failure(self):
        session = Mock()
        session.post.side_effect = requests.ConnectionError("down")

        with pytest.raises(BlobStorageError):
            BlobStorage(self._config(), session=session).delete("https://b/a.mp3")
