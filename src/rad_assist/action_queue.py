from __future__ import annotations

import logging
import queue
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator

from rad_assist.actions import ActionRequest

LOGGER = logging.getLogger(__name__)

ActionHook = Callable[[ActionRequest], None]
ErrorHook = Callable[[ActionRequest, Exception], None]


class ActionQueue:
    """FIFO of action requests drained by a single worker thread.

    Only one action runs at a time. The execution lock is also offered to
    pollers through :meth:`idle_window` so a scrape never overlaps an action.
    """

    def __init__(
        self,
        execute: ActionHook,
        on_error: ErrorHook | None = None,
        before_action: ActionHook | None = None,
        after_action: ActionHook | None = None,
        wake_interval_s: float = 0.5,
    ) -> None:
        self._execute = execute
        self._on_error = on_error
        self._before_action = before_action
        self._after_action = after_action
        self.wake_interval_s = wake_interval_s

        self._queue: queue.Queue[ActionRequest] = queue.Queue()
        self._exec_lock = threading.Lock()
        self._busy = threading.Event()
        self._stop = threading.Event()
        self._worker: threading.Thread | None = None

    @property
    def is_busy(self) -> bool:
        return self._busy.is_set()

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(self, request: ActionRequest) -> None:
        LOGGER.info("Action queued: %s (source: %s)", request.kind.value, request.source)
        self._queue.put(request)

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._worker = threading.Thread(target=self._worker_loop, name="action-worker", daemon=True)
        self._worker.start()

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        if self._worker and self._worker.is_alive():
            self._worker.join(timeout=timeout)
        self._worker = None

    def wait_until_idle(self, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    @contextmanager
    def idle_window(self) -> Iterator[bool]:
        """Yield True while holding the execution lock, False if an action is running."""
        acquired = self._exec_lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._exec_lock.release()

    def _worker_loop(self) -> None:
        while not self._stop.is_set():
            try:
                request = self._queue.get(timeout=self.wake_interval_s)
            except queue.Empty:
                continue

            try:
                with self._exec_lock:
                    self._busy.set()
                    try:
                        self._run_one(request)
                    finally:
                        self._busy.clear()
            finally:
                self._queue.task_done()

    def _run_one(self, request: ActionRequest) -> None:
        try:
            if self._before_action is not None:
                self._before_action(request)
            self._execute(request)
        except Exception as exc:
            LOGGER.exception("Action failed: %s (source: %s)", request.kind.value, request.source)
            if self._on_error is not None:
                try:
                    self._on_error(request, exc)
                except Exception:
                    LOGGER.exception("Action error handler failed")
        finally:
            if self._after_action is not None:
                try:
                    self._after_action(request)
                except Exception:
                    LOGGER.exception("Post-action cleanup failed")


__all__ = ["ActionQueue"]
