"""Best-effort dispatch of post-payment side effects.

Side effects (invoice generation, confirmation email) are queued by the
reconciliation engine and run after the webhook has been acknowledged.
Each task is retried with exponential backoff; a task that keeps failing
is logged and dropped without affecting the others.
"""

import queue
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from storefront.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 100
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 0.5


@dataclass
class SideEffectTask:
    """A named callable with its arguments."""

    name: str
    func: Callable[..., Any]
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)

    def run(self) -> Any:
        return self.func(*self.args, **self.kwargs)


class SideEffectDispatcher:
    """Bounded in-process queue of retryable side-effect tasks.

    Usage:
        dispatcher = SideEffectDispatcher()
        dispatcher.submit(SideEffectTask("invoice", invoices.generate_for_order, (order,)))
        dispatcher.drain()  # e.g. from a FastAPI background task
    """

    def __init__(
        self,
        maxsize: int = DEFAULT_QUEUE_SIZE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize dispatcher.

        Args:
            maxsize: Queue capacity; submissions beyond it are dropped
            max_attempts: Attempts per task before giving up
            base_delay: First backoff delay in seconds (doubles per attempt)
            sleep: Sleep function (injected in tests)
        """
        self._queue: queue.Queue[SideEffectTask] = queue.Queue(maxsize=maxsize)
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    @property
    def pending(self) -> int:
        """Number of queued tasks."""
        return self._queue.qsize()

    def submit(self, task: SideEffectTask) -> bool:
        """Queue a task without blocking.

        Returns:
            True if queued, False if the queue was full and the task dropped.
        """
        try:
            self._queue.put_nowait(task)
        except queue.Full:
            logger.warning("Side-effect queue full, dropping task %s", task.name)
            return False
        logger.debug("Queued side effect %s", task.name)
        return True

    def drain(self) -> dict[str, bool]:
        """Run every queued task.

        Returns:
            Mapping of task name to whether it eventually succeeded.
        """
        results: dict[str, bool] = {}
        while True:
            try:
                task = self._queue.get_nowait()
            except queue.Empty:
                break
            try:
                results[task.name] = self._run_with_retry(task)
            finally:
                self._queue.task_done()
        return results

    def _run_with_retry(self, task: SideEffectTask) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            try:
                task.run()
                logger.info("Side effect %s completed (attempt %d)", task.name, attempt)
                return True
            except Exception as e:
                if attempt == self.max_attempts:
                    logger.error(
                        "Side effect %s failed after %d attempts: %s",
                        task.name,
                        attempt,
                        e,
                        exc_info=True,
                    )
                    return False
                delay = self.base_delay * (2 ** (attempt - 1))
                logger.warning(
                    "Side effect %s failed (attempt %d), retrying in %.2fs: %s",
                    task.name,
                    attempt,
                    delay,
                    e,
                )
                self._sleep(delay)
        return False
