"""Detached persistence writes.

Store writes never block or unwind session state. Each write runs as a
future on an executor; a failure is logged under the write's label and
dropped. The default executor has a single worker so writes land in the
order they were submitted. A write counts as pending until its
``on_success`` callback has returned, so follow-up writes queued from a
callback are covered by ``flush``.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

__all__ = ["BackgroundWriter", "InlineExecutor"]

logger = logging.getLogger(__name__)


class InlineExecutor(Executor):
    """Run submitted callables immediately on the calling thread."""

    def submit(self, fn, /, *args, **kwargs):  # type: ignore[override]
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:  # noqa: BLE001 - stored on the future
            future.set_exception(exc)
        return future


class BackgroundWriter:
    """Submit fire-and-forget writes and report their failures to the log."""

    def __init__(self, executor: Optional[Executor] = None) -> None:
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="study-assistant-writer"
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def submit(
        self,
        label: str,
        fn: Callable[..., Any],
        *args: Any,
        on_success: Optional[Callable[[Any], None]] = None,
    ) -> Future:
        future = self._executor.submit(fn, *args)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(
            lambda done: self._finish(label, done, on_success)
        )
        return future

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every write, and any write it queues, has finished."""

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._idle:
            while self._pending:
                remaining = None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return
                self._idle.wait(remaining)

    def close(self) -> None:
        self.flush()
        self._executor.shutdown(wait=True)

    def _finish(
        self,
        label: str,
        future: Future,
        on_success: Optional[Callable[[Any], None]],
    ) -> None:
        try:
            self._report(label, future, on_success)
        finally:
            with self._idle:
                self._pending.discard(future)
                if not self._pending:
                    self._idle.notify_all()

    def _report(
        self,
        label: str,
        future: Future,
        on_success: Optional[Callable[[Any], None]],
    ) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning(
                "Background write failed: %s",
                label,
                exc_info=(type(exc), exc, exc.__traceback__),
                extra={"write": label},
            )
            return
        logger.debug("Background write finished: %s", label)
        if on_success is None:
            return
        try:
            on_success(future.result())
        except Exception:
            logger.exception(
                "Background write callback failed: %s",
                label,
                extra={"write": label},
            )
