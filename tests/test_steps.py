"""Tests for durable step execution."""

from unittest.mock import Mock

import pytest

from src.workflow.errors import NonRetriableError, WorkflowValidationError
from src.workflow.steps import StepRunner


class TestStepRunner:
    """Tests for StepRunner against a real step log."""

    def test_runs_and_commits(self, repository):
        steps = StepRunner(repository, "run-1")

        assert steps.run("add", lambda: 1 + 1) == 2
        assert steps.completed("add")
        assert steps.cached_result("add") == 2

    def test_replay_skips_committed_step(self, repository):
        """Test that a second run with the same id returns the stored result."""
        fn = Mock(return_value={"value": 1})
        StepRunner(repository, "run-1").run("work", fn)

        replay = Mock(return_value={"value": 2})
        result = StepRunner(repository, "run-1").run("work", replay)

        assert result == {"value": 1}
        replay.assert_not_called()

    def test_different_run_executes_again(self, repository):
        StepRunner(repository, "run-1").run("work", lambda: 1)
        assert StepRunner(repository, "run-2").run("work", lambda: 2) == 2

    def test_failed_step_is_not_committed(self, repository):
        steps = StepRunner(repository, "run-1")

        with pytest.raises(RuntimeError):
            steps.run("boom", Mock(side_effect=RuntimeError("nope")))

        assert not steps.completed("boom")

    def test_retries_within_step(self, repository):
        fn = Mock(side_effect=[RuntimeError("flaky"), "ok"])
        steps = StepRunner(repository, "run-1", max_attempts=2)

        assert steps.run("flaky", fn) == "ok"
        assert fn.call_count == 2
        assert repository.get_step("run-1", "flaky").attempts == 2

    def test_non_retriable_not_retried(self, repository):
        fn = Mock(side_effect=WorkflowValidationError("bad input"))
        steps = StepRunner(repository, "run-1", max_attempts=3)

        with pytest.raises(NonRetriableError):
            steps.run("validate", fn)
        assert fn.call_count == 1

    def test_without_run_id_nothing_is_persisted(self):
        repository = Mock()
        steps = StepRunner(repository, None)

        assert steps.run("work", lambda: 5) == 5
        assert steps.completed("work") is False
        assert steps.cached_result("work") is None
        repository.get_step.assert_not_called()
        repository.save_step.assert_not_called()

    def test_invalid_max_attempts(self, repository):
        with pytest.raises(ValueError):
            StepRunner(repository, "run-1", max_attempts=0)


class TestRunSettled:
    """Tests for steps whose failure is committed as an outcome."""

    def test_fulfilled_outcome(self, repository):
        outcome = StepRunner(repository, "run-1").run_settled("work", lambda: [1, 2])

        assert outcome == {"status": "fulfilled", "value": [1, 2]}
        assert repository.get_step("run-1", "work").result == outcome

    def test_rejected_outcome_is_committed(self, repository):
        """Test that a failed step settles once and is not re-run on replay."""
        fn = Mock(side_effect=RuntimeError("model down"))
        steps = StepRunner(repository, "run-1", max_attempts=2)

        outcome = steps.run_settled("work", fn)

        assert outcome == {"status": "rejected", "error": "model down"}
        assert fn.call_count == 2
        assert repository.get_step("run-1", "work").attempts == 2

        replay = Mock(return_value="late success")
        assert StepRunner(repository, "run-1").run_settled("work", replay) == outcome
        replay.assert_not_called()

    def test_non_retriable_settles_after_one_attempt(self, repository):
        fn = Mock(side_effect=WorkflowValidationError("bad input"))

        outcome = StepRunner(repository, "run-1", max_attempts=3).run_settled("work", fn)

        assert outcome["status"] == "rejected"
        assert fn.call_count == 1

    def test_empty_error_message_uses_class_name(self, repository):
        outcome = StepRunner(repository, "run-1").run_settled(
            "work", Mock(side_effect=TimeoutError())
        )

        assert outcome == {"status": "rejected", "error": "TimeoutError"}
