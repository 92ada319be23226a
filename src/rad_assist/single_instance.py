from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path
from typing import IO

from rad_assist.config import APP_DIR

LOGGER = logging.getLogger(__name__)

LOCK_PATH = APP_DIR / "rad_assist.lock"


class InstanceLock:
    """Advisory lock file so two assistants never drive the same reporting app."""

    def __init__(self, path: Path = LOCK_PATH) -> None:
        self.path = path
        self._handle: IO[str] | None = None

    @property
    def held(self) -> bool:
        return self._handle is not None

    def acquire(self) -> bool:
        if self._handle is not None:
            return True

        self.path.parent.mkdir(parents=True, exist_ok=True)
        handle = self.path.open("a+", encoding="utf-8")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            handle.close()
            LOGGER.warning("Another instance holds %s (pid %s)", self.path, self.owner_pid())
            return False

        handle.seek(0)
        handle.truncate(0)
        handle.write(str(os.getpid()))
        handle.flush()
        self._handle = handle
        return True

    def release(self) -> None:
        if self._handle is None:
            return
        try:
            fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        except OSError:
            LOGGER.debug("Unlock of %s failed", self.path, exc_info=True)
        try:
            self._handle.close()
        finally:
            self._handle = None

    def owner_pid(self) -> int | None:
        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except OSError:
            return None
        return int(raw) if raw.isdigit() else None

    def __enter__(self) -> bool:
        return self.acquire()

    def __exit__(self, *exc_info: object) -> None:
        self.release()


__all__ = ["LOCK_PATH", "InstanceLock"]
