"""Fire-and-forget background tasks (post-commit file moves). Fixed-size thread pool."""

import atexit
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from apps.catalog.config import config

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=config.BACKGROUND_WORKERS, thread_name_prefix="catalog-bg")
atexit.register(_executor.shutdown, wait=False)

TaskRunner = Callable[[Callable[[], None]], None]


def _log_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Background task failed: %s", exc, exc_info=exc)


def submit_task(task: Callable[[], None]) -> None:
    """Run task on the background pool. Failures are logged, never raised to the caller."""
    logger.debug("Submitting background task %s (queued=%s)", task, _executor._work_queue.qsize())
    future = _executor.submit(task)
    future.add_done_callback(_log_failure)


def run_inline(task: Callable[[], None]) -> None:
    """Synchronous runner (tests, cron scripts)."""
    task()
