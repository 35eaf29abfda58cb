"""Durable step execution backed by the workflow step log.

A step is a named, idempotent unit of work inside a workflow run. Its result
is committed to the step log once it succeeds; when the run is re-executed
with the same run id the committed result is returned instead of running the
step again. Step results must be JSON-serializable.
"""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from src.db.repository import ProjectRepositoryInterface

from .errors import NonRetriableError

logger = logging.getLogger(__name__)

STEP_FULFILLED = "fulfilled"
STEP_REJECTED = "rejected"


class StepRunner:
    """Runs named steps for one workflow run.

    Example:
        steps = StepRunner(repository, run_id="evt-123")
        transcript = steps.run("generate-transcription", lambda: client.transcribe(url).to_json_dict())
    """

    def __init__(
        self,
        repository: ProjectRepositoryInterface,
        run_id: Optional[str],
        max_attempts: int = 1,
    ):
        """
        Args:
            repository: Store holding the step log.
            run_id: Identifier shared by every attempt of the run, or None to disable the step log.
            max_attempts: Attempts per step before its error is raised.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.repository = repository
        self.run_id = run_id
        self.max_attempts = max_attempts

    def completed(self, name: str) -> bool:
        """Whether the step was already committed for this run."""
        if self.run_id is None:
            return False
        return self.repository.get_step(self.run_id, name) is not None

    def cached_result(self, name: str) -> Any:
        """Return the committed result of a step, or None if it has not completed."""
        if self.run_id is None:
            return None
        record = self.repository.get_step(self.run_id, name)
        return record.result if record is not None else None

    def run(self, name: str, fn: Callable[[], Any]) -> Any:
        """
        Execute a step at most once per run.

        Args:
            name: Step name, unique within the run.
            fn: Zero-argument callable producing a JSON-serializable result.

        Returns:
            The step's result, from the step log when already committed.

        Raises:
            Exception: The step's last error once attempts are exhausted;
                NonRetriableError is raised immediately.
        """
        if self.run_id is not None:
            record = self.repository.get_step(self.run_id, name)
            if record is not None:
                logger.info(f"[{self.run_id}] Step '{name}' already completed, skipping")
                return record.result

        result, attempts = self._call(name, fn)
        self._commit(name, result, attempts)
        return result

    def run_settled(self, name: str, fn: Callable[[], Any]) -> Dict[str, Any]:
        """
        Execute a step whose failure is an outcome rather than an error.

        Both outcomes are committed, so a replay sees the same settlement as
        the first attempt and never re-runs the step.

        Returns:
            `{"status": "fulfilled", "value": ...}` or
            `{"status": "rejected", "error": message}`.
        """
        if self.run_id is not None:
            record = self.repository.get_step(self.run_id, name)
            if record is not None:
                logger.info(f"[{self.run_id}] Step '{name}' already settled, skipping")
                return record.result

        try:
            value, attempts = self._call(name, fn)
            outcome = {"status": STEP_FULFILLED, "value": value}
        except Exception as e:
            attempts = 1 if isinstance(e, NonRetriableError) else self.max_attempts
            outcome = {"status": STEP_REJECTED, "error": str(e) or e.__class__.__name__}

        self._commit(name, outcome, attempts)
        return outcome

    def _call(self, name: str, fn: Callable[[], Any]) -> Tuple[Any, int]:
        attempt = 0
        while True:
            attempt += 1
            try:
                return fn(), attempt
            except NonRetriableError:
                raise
            except Exception as e:
                if attempt >= self.max_attempts:
                    raise
                logger.warning(
                    f"[{self.run_id}] Step '{name}' failed on attempt "
                    f"{attempt}/{self.max_attempts}: {e}"
                )

    def _commit(self, name: str, result: Any, attempts: int) -> None:
        if self.run_id is not None:
            self.repository.save_step(self.run_id, name, result, attempts=attempts)
        logger.debug(f"[{self.run_id}] Step '{name}' completed")
