from __future__ import annotations

import logging
import subprocess
import threading
import time
from typing import Callable

from rad_assist.ports import Clipboard, Keyboard

LOGGER = logging.getLogger(__name__)

# Shared by every code path that pastes through the clipboard.
PASTE_LOCK = threading.Lock()

CLIPBOARD_SETTLE_S = 0.05
PASTE_SETTLE_S = 0.20


class MacClipboard:
    def get_clipboard_text(self) -> str | None:
        result = subprocess.run(
            ["pbpaste"],
            check=False,
            capture_output=True,
            text=True,
            timeout=10,
        )
        if result.returncode != 0:
            return None
        return result.stdout

    def set_clipboard_text(self, text: str) -> None:
        subprocess.run(["pbcopy"], input=text, text=True, check=True, timeout=10)


class ClipboardPaster:
    def __init__(
        self,
        clipboard: Clipboard,
        keyboard: Keyboard,
        paste_keystroke: str = "cmd+v",
        lock: threading.Lock = PASTE_LOCK,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.clipboard = clipboard
        self.keyboard = keyboard
        self.paste_keystroke = paste_keystroke
        self._lock = lock
        self._sleep = sleep
        self.last_paste_time: float | None = None

    def paste(self, text: str, restore_clipboard: bool = True) -> None:
        if not text:
            return

        with self._lock:
            original = self.clipboard.get_clipboard_text()
            pasted = False
            try:
                self.clipboard.set_clipboard_text(text)
                self._sleep(CLIPBOARD_SETTLE_S)
                self.keyboard.emit_keystroke(self.paste_keystroke)
                pasted = True
                self.last_paste_time = time.monotonic()
            except Exception:
                if restore_clipboard:
                    self._restore(original)
                raise
            finally:
                if pasted and restore_clipboard:
                    # The target app reads the clipboard asynchronously after the keystroke.
                    self._sleep(PASTE_SETTLE_S)
                    self._restore(original)

    def _restore(self, original: str | None) -> None:
        if original is None:
            return
        try:
            self.clipboard.set_clipboard_text(original)
        except Exception:
            LOGGER.warning("Could not restore clipboard contents", exc_info=True)


__all__ = ["PASTE_LOCK", "ClipboardPaster", "MacClipboard"]
