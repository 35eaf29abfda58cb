"""Event dispatch with run-level retries.

Routes inbound events to their workflow by name. A failed run is retried
with the same run id, so steps it already committed are not executed again.
Validation errors and unknown projects are not retried.
"""

import logging
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from src.db.errors import ProjectAuthorizationError, ProjectNotFoundError
from src.workflow.config import WorkflowConfig
from src.workflow.errors import NonRetriableError

logger = logging.getLogger(__name__)

PODCAST_UPLOADED = "podcast/uploaded"
PODCAST_RETRY_JOB = "podcast/retry-job"

_NOT_RETRIED = (NonRetriableError, ProjectNotFoundError, ProjectAuthorizationError)


class UnknownEventError(NonRetriableError):
    """Raised when no handler is registered for an event name."""


Handler = Callable[[Dict[str, Any], Optional[str]], Any]


class EventDispatcher:
    """Maps event names to workflow handlers.

    Example:
        dispatcher = EventDispatcher(workflow_config)
        dispatcher.register(PODCAST_UPLOADED, processor.process)
        dispatcher.dispatch(PODCAST_UPLOADED, {"projectId": ..., ...})
    """

    def __init__(
        self,
        workflow_config: Optional[WorkflowConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.workflow_config = workflow_config or WorkflowConfig()
        self._handlers: Dict[str, Handler] = {}
        self._sleep = sleep

    def register(self, name: str, handler: Handler) -> None:
        self._handlers[name] = handler

    @property
    def event_names(self) -> list[str]:
        return sorted(self._handlers)

    def dispatch(self, name: str, data: Dict[str, Any], event_id: Optional[str] = None) -> Any:
        """
        Run the handler for an event, retrying failed runs.

        Args:
            name: Event name.
            data: Event payload.
            event_id: Stable id of the event; a new one is generated when omitted.

        Returns:
            The handler's return value.

        Raises:
            UnknownEventError: If no handler is registered for `name`.
            Exception: The handler's error when it is not retriable or retries are exhausted.
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownEventError(f"No handler registered for event '{name}'")

        run_id = f"{name}:{event_id or uuid.uuid4()}"
        max_attempts = 1 + self.workflow_config.max_workflow_retries

        for attempt in range(1, max_attempts + 1):
            try:
                return handler(data, run_id)
            except _NOT_RETRIED as e:
                logger.error(f"[{run_id}] Not retrying: {e}")
                raise
            except Exception as e:
                if attempt >= max_attempts:
                    logger.error(f"[{run_id}] Failed after {attempt} attempts: {e}")
                    raise
                delay = self.workflow_config.retry_delay_seconds * 2 ** (attempt - 1)
                logger.warning(
                    f"[{run_id}] Attempt {attempt}/{max_attempts} failed: {e}; retrying in {delay}s"
                )
                self._sleep(delay)


class BackgroundEventSender:
    """Delivers events to a dispatcher on a background thread pool.

    Callers get control back immediately; failures are logged once the
    dispatcher has exhausted its retries.
    """

    def __init__(self, dispatcher: EventDispatcher, max_workers: int = 4):
        self.dispatcher = dispatcher
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="events")

    def send(self, name: str, data: Dict[str, Any], event_id: Optional[str] = None) -> Future:
        event_id = event_id or str(uuid.uuid4())
        logger.info(f"Queued event {name} ({event_id})")
        future = self._executor.submit(self.dispatcher.dispatch, name, data, event_id)
        future.add_done_callback(lambda f: self._log_outcome(name, event_id, f))
        return future

    def __call__(self, name: str, data: Dict[str, Any]) -> None:
        self.send(name, data)

    @staticmethod
    def _log_outcome(name: str, event_id: str, future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.error(f"Event {name} ({event_id}) failed: {error}")
        else:
            logger.info(f"Event {name} ({event_id}) completed")

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
