import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

logger = logging.getLogger(__name__)


class BackgroundTaskPool:
    """Bounded pool for work that outlives the request that started it.

    Nothing waits on the returned futures; failures are only logged.
    """

    def __init__(self, max_workers: int = 8):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="remindme-bg"
        )

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        name = getattr(fn, "__name__", repr(fn))
        future = self._executor.submit(fn, *args, **kwargs)
        future.add_done_callback(lambda f: _log_failure(name, f))
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def _log_failure(name: str, future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error(f"Background task {name} failed: {exc}", exc_info=exc)
