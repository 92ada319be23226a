"""Interfaces the orchestrator drives.

Concrete macOS adapters live in :mod:`rad_assist.keyboard`,
:mod:`rad_assist.clipboard`, :mod:`rad_assist.audio_cues` and
:mod:`rad_assist.study_log`. Window rendering and UI automation are
supplied by the host application.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from rad_assist.alerts import AlertKind, AlertState
    from rad_assist.macros import PickList


@runtime_checkable
class Keyboard(Protocol):
    def emit_keystroke(self, combo: str) -> None:
        """Send a key combo such as ``alt+r`` to the focused app."""

    def press_key(self, key: str, times: int = 1) -> None:
        """Tap a single named key ``times`` times."""

    def release_modifiers(self) -> None:
        """Release modifiers the user may still be holding."""

    def activate_external_app(self) -> None:
        """Bring the reporting app to the front."""

    def save_focus(self) -> None:
        """Remember the frontmost app."""

    def restore_focus(self) -> None:
        """Re-activate the app remembered by ``save_focus``."""


@runtime_checkable
class Clipboard(Protocol):
    def get_clipboard_text(self) -> str | None: ...

    def set_clipboard_text(self, text: str) -> None: ...


@runtime_checkable
class Automation(Protocol):
    """Clicks inside the reporting app that have no keyboard shortcut."""

    def click_discard_study(self) -> bool: ...

    def click_create_impression(self) -> bool: ...

    def create_critical_note(self) -> bool: ...


@runtime_checkable
class AudioCues(Protocol):
    def play_async(self, frequency_hz: int, duration_ms: int, volume: float, delay_ms: int = 0) -> None: ...


@runtime_checkable
class StudyNotifier(Protocol):
    def study_signed(self, accession: str) -> None: ...

    def study_closed_unsigned(self, accession: str) -> None: ...


@runtime_checkable
class Presenter(Protocol):
    def show_toast(self, message: str, duration_ms: int = 3000) -> None: ...

    def show_notice(self, title: str, message: str) -> None:
        """Blocking notice for problems the user must fix."""

    def show_alert_surface(self, kind: "AlertKind", details: str) -> None: ...

    def hide_alert_surface(self) -> None: ...

    def set_alert_indicators(self, state: "AlertState") -> None:
        """Always-show mode: render every active condition at once."""

    def update_clinical_history(self, report_text: str, accession: str | None) -> None: ...

    def update_drafted_state(self, drafted: bool) -> None: ...

    def show_impression_surface(self) -> None:
        """Show the impression window; keep its content if already visible."""

    def hide_impression_surface(self) -> None: ...

    def update_presentation(self, text: str) -> None:
        """Replace the impression window's text."""

    def show_report(self, report_text: str, baseline: str | None) -> None: ...

    def update_report(self, report_text: str, baseline: str | None) -> None: ...

    def close_report(self) -> None: ...

    def show_pick_lists(
        self,
        pick_lists: Sequence["PickList"],
        on_select: Callable[[str, int], None],
    ) -> None: ...

    def update_indicator(self, recording: bool) -> None: ...

    def refresh_status(self, recording: bool, accession: str | None) -> None: ...

    def ensure_windows_on_top(self) -> None: ...


__all__ = ["AudioCues", "Automation", "Clipboard", "Keyboard", "Presenter", "StudyNotifier"]
