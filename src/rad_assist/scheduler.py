from __future__ import annotations

import logging
import threading
from typing import Callable

LOGGER = logging.getLogger(__name__)


class RepeatingTimer:
    """Calls ``callback`` every ``interval_s`` seconds on a daemon thread.

    ``set_interval`` re-arms the timer immediately. ``stop`` lets a running
    callback finish and then stops re-arming.
    """

    def __init__(self, interval_s: float, callback: Callable[[], object], name: str) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.name = name
        self._interval_s = interval_s
        self._callback = callback

        self._lock = threading.Lock()
        self._wakeup = threading.Event()
        self._stop = threading.Event()
        self._rearmed = False
        self._thread: threading.Thread | None = None

    @property
    def interval_s(self) -> float:
        with self._lock:
            return self._interval_s

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._wakeup.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        self._wakeup.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None

    def set_interval(self, interval_s: float) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        with self._lock:
            if interval_s == self._interval_s:
                return
            self._interval_s = interval_s
            self._rearmed = True
            # Set under the lock so _run cannot clear it between the flag and the event.
            self._wakeup.set()
        LOGGER.debug("Timer %s re-armed at %.3fs", self.name, interval_s)

    def _run(self) -> None:
        while not self._stop.is_set():
            self._wakeup.wait(self.interval_s)
            if self._stop.is_set():
                return

            with self._lock:
                rearmed = self._rearmed
                self._rearmed = False
                self._wakeup.clear()
            if rearmed:
                continue

            try:
                self._callback()
            except Exception:
                LOGGER.exception("Timer %s callback failed", self.name)


__all__ = ["RepeatingTimer"]
