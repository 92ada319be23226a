from __future__ import annotations

import logging
import subprocess
import time

LOGGER = logging.getLogger(__name__)

CMD_MASK = 1 << 20
OPTION_MASK = 1 << 19
CONTROL_MASK = 1 << 18
SHIFT_MASK = 1 << 17

MODIFIER_MASKS = {
    "cmd": CMD_MASK,
    "command": CMD_MASK,
    "alt": OPTION_MASK,
    "option": OPTION_MASK,
    "opt": OPTION_MASK,
    "ctrl": CONTROL_MASK,
    "control": CONTROL_MASK,
    "shift": SHIFT_MASK,
}

# Left and right variants of cmd, shift, option, control.
MODIFIER_KEYCODES = (55, 54, 56, 60, 58, 61, 59, 62)

# ANSI layout virtual keycodes.
KEYCODES = {
    "a": 0, "s": 1, "d": 2, "f": 3, "h": 4, "g": 5, "z": 6, "x": 7, "c": 8, "v": 9,
    "b": 11, "q": 12, "w": 13, "e": 14, "r": 15, "y": 16, "t": 17,
    "1": 18, "2": 19, "3": 20, "4": 21, "6": 22, "5": 23, "=": 24, "9": 25, "7": 26,
    "-": 27, "8": 28, "0": 29, "]": 30, "o": 31, "u": 32, "[": 33, "i": 34, "p": 35,
    "return": 36, "enter": 36, "l": 37, "j": 38, "'": 39, "k": 40, ";": 41, "\\": 42,
    ",": 43, "/": 44, "n": 45, "m": 46, ".": 47, "tab": 48, "space": 49, "`": 50,
    "backspace": 51, "delete": 51, "escape": 53, "esc": 53,
    "f1": 122, "f2": 120, "f3": 99, "f4": 118, "f5": 96, "f6": 97, "f7": 98, "f8": 100,
    "f9": 101, "f10": 109, "f11": 103, "f12": 111,
    "home": 115, "pageup": 116, "forwarddelete": 117, "end": 119, "pagedown": 121,
    "left": 123, "right": 124, "down": 125, "up": 126,
}

KEY_TAP_GAP_S = 0.02


def parse_combo(combo: str) -> tuple[int, int]:
    """Turn ``"ctrl+alt+r"`` into ``(keycode, modifier_flags)``."""
    parts = [part for part in combo.lower().replace(" ", "").split("+") if part]
    if not parts:
        raise ValueError(f"Empty key combo: {combo!r}")

    *modifiers, key = parts
    flags = 0
    for modifier in modifiers:
        mask = MODIFIER_MASKS.get(modifier)
        if mask is None:
            raise ValueError(f"Unknown modifier {modifier!r} in {combo!r}")
        flags |= mask

    keycode = KEYCODES.get(key)
    if keycode is None:
        raise ValueError(f"Unknown key {key!r} in {combo!r}")
    return keycode, flags


def _load_quartz():  # type: ignore[no-untyped-def]
    import Quartz

    return Quartz


class QuartzKeyboard:
    """Synthetic keystrokes and app focus through Quartz and AppKit."""

    def __init__(self, app_name: str) -> None:
        self.app_name = app_name
        self._saved_pid: int | None = None

    def emit_keystroke(self, combo: str) -> None:
        keycode, flags = parse_combo(combo)
        LOGGER.debug("Sending keystroke %s", combo)
        self._post_key(keycode, flags)

    def press_key(self, key: str, times: int = 1) -> None:
        keycode, flags = parse_combo(key)
        for _ in range(max(0, times)):
            self._post_key(keycode, flags)
            time.sleep(KEY_TAP_GAP_S)

    def release_modifiers(self) -> None:
        quartz = _load_quartz()
        for keycode in MODIFIER_KEYCODES:
            up = quartz.CGEventCreateKeyboardEvent(None, keycode, False)
            if up is None:
                continue
            quartz.CGEventSetFlags(up, 0)
            quartz.CGEventPost(quartz.kCGHIDEventTap, up)

    def activate_external_app(self) -> None:
        script = f'tell application "{self.app_name}" to activate'
        result = subprocess.run(
            ["osascript", "-e", script],
            check=False,
            capture_output=True,
            text=True,
            timeout=10,
        )
        if result.returncode != 0:
            raise RuntimeError(f"Could not activate {self.app_name}: {result.stderr.strip()}")

    def save_focus(self) -> None:
        self._saved_pid = self._frontmost_app_pid()

    def restore_focus(self) -> None:
        pid = self._saved_pid
        self._saved_pid = None
        if pid is None:
            return
        try:
            from AppKit import NSApplicationActivateIgnoringOtherApps, NSRunningApplication

            app = NSRunningApplication.runningApplicationWithProcessIdentifier_(pid)
            if app is not None:
                app.activateWithOptions_(NSApplicationActivateIgnoringOtherApps)
        except Exception:
            LOGGER.debug("Focus restore failed for pid %s", pid, exc_info=True)

    def _frontmost_app_pid(self) -> int | None:
        try:
            from AppKit import NSWorkspace

            app = NSWorkspace.sharedWorkspace().frontmostApplication()
            if app is None:
                return None
            pid = int(app.processIdentifier())
            return pid if pid > 0 else None
        except Exception:
            LOGGER.debug("Frontmost app lookup failed", exc_info=True)
            return None

    def _post_key(self, keycode: int, flags: int) -> None:
        quartz = _load_quartz()
        down = quartz.CGEventCreateKeyboardEvent(None, keycode, True)
        up = quartz.CGEventCreateKeyboardEvent(None, keycode, False)
        if down is None or up is None:
            raise RuntimeError("Quartz keyboard event unavailable. Check Accessibility permission.")

        quartz.CGEventSetFlags(down, flags)
        quartz.CGEventSetFlags(up, flags)
        quartz.CGEventPost(quartz.kCGHIDEventTap, down)
        quartz.CGEventPost(quartz.kCGHIDEventTap, up)


__all__ = ["KEYCODES", "QuartzKeyboard", "parse_combo"]
