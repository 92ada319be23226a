from __future__ import annotations

import logging
import threading
from typing import Callable

from rad_assist.config import is_hotkey_restricted, normalize_hotkey
from rad_assist.keyboard import CMD_MASK, CONTROL_MASK, OPTION_MASK, SHIFT_MASK, parse_combo

LOGGER = logging.getLogger(__name__)

MODIFIER_MASK = CMD_MASK | OPTION_MASK | SHIFT_MASK | CONTROL_MASK


def _load_quartz():  # type: ignore[no-untyped-def]
    import Quartz

    return Quartz


class HotkeyListener:
    """Global key combos through a Quartz event tap.

    Matching key-downs are consumed so the focused app never sees them.
    """

    def __init__(self) -> None:
        self._bindings: dict[tuple[int, int], tuple[str, Callable[[], None]]] = {}
        self._bindings_lock = threading.Lock()

        self._thread: threading.Thread | None = None
        self._running = threading.Event()
        self._quartz = None

        self._event_tap = None
        self._source = None
        self._run_loop = None

        self._active = False
        self._last_error = ""

    def register(self, combo: str, callback: Callable[[], None]) -> None:
        if is_hotkey_restricted(combo):
            raise ValueError(f"Hotkey {combo!r} is reserved by the reporting app")
        keycode, flags = parse_combo(combo)
        with self._bindings_lock:
            self._bindings[(keycode, flags)] = (normalize_hotkey(combo), callback)
        LOGGER.info("Hotkey registered: %s", normalize_hotkey(combo))

    def clear(self) -> None:
        with self._bindings_lock:
            self._bindings.clear()

    def registered(self) -> list[str]:
        with self._bindings_lock:
            return sorted(name for name, _ in self._bindings.values())

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return

        self._quartz = _load_quartz()
        self._running.set()
        self._thread = threading.Thread(target=self._run, name="hotkey-listener", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._running.clear()

        if self._run_loop is not None and self._quartz is not None:
            self._quartz.CFRunLoopStop(self._run_loop)

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.0)

        self._thread = None
        self._event_tap = None
        self._source = None
        self._run_loop = None
        self._active = False

    def _run(self) -> None:
        quartz = self._quartz
        mask = quartz.CGEventMaskBit(quartz.kCGEventKeyDown)

        self._event_tap = quartz.CGEventTapCreate(
            quartz.kCGSessionEventTap,
            quartz.kCGHeadInsertEventTap,
            quartz.kCGEventTapOptionDefault,
            mask,
            self._event_callback,
            None,
        )

        if not self._event_tap:
            self._active = False
            self._last_error = "Global hotkeys unavailable. Grant Input Monitoring permission."
            LOGGER.error("Unable to create global keyboard event tap. Check Input Monitoring permissions.")
            return

        self._last_error = ""
        self._source = quartz.CFMachPortCreateRunLoopSource(None, self._event_tap, 0)
        self._run_loop = quartz.CFRunLoopGetCurrent()

        quartz.CFRunLoopAddSource(self._run_loop, self._source, quartz.kCFRunLoopCommonModes)
        quartz.CGEventTapEnable(self._event_tap, True)
        self._active = True
        quartz.CFRunLoopRun()
        self._active = False

    def _event_callback(self, proxy, event_type, event, refcon):  # type: ignore[no-untyped-def]
        quartz = self._quartz
        if event_type in {
            quartz.kCGEventTapDisabledByTimeout,
            quartz.kCGEventTapDisabledByUserInput,
        }:
            LOGGER.warning("Event tap disabled (type=%s), re-enabling", event_type)
            if self._event_tap is not None:
                quartz.CGEventTapEnable(self._event_tap, True)
            return event

        if not self._running.is_set() or event_type != quartz.kCGEventKeyDown:
            return event

        flags = quartz.CGEventGetFlags(event) & MODIFIER_MASK
        keycode = quartz.CGEventGetIntegerValueField(event, quartz.kCGKeyboardEventKeycode)

        with self._bindings_lock:
            binding = self._bindings.get((keycode, flags))
        if binding is None:
            return event

        name, callback = binding
        try:
            callback()
        except Exception:
            LOGGER.exception("Hotkey callback failed: %s", name)
        return None

    def is_active(self) -> bool:
        return self._active

    def last_error(self) -> str:
        return self._last_error


__all__ = ["HotkeyListener"]
