from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from rad_assist.config import AppConfig
from rad_assist.oracle import SafeOracle
from rad_assist.ports import AudioCues, Keyboard

LOGGER = logging.getLogger(__name__)

START_CUE_HZ = 1000
STOP_CUE_HZ = 500
CUE_DURATION_MS = 200

ACTIVATION_SETTLE_S = 0.1
MIN_REALITY_CHECK_S = 1.5


@dataclass
class DictationState:
    believed: bool = False
    consecutive_false_reads: int = 0
    last_manual_toggle: float = float("-inf")


class DictationReconciler:
    """Keeps the 'recording' belief in line with the reporting app.

    A single active read turns the belief on. Turning it off needs
    ``sticky_off_threshold`` inactive reads in a row, and background reads
    are ignored for a short lockout after any manual toggle.
    """

    def __init__(
        self,
        config: AppConfig,
        oracle: SafeOracle,
        keyboard: Keyboard,
        cues: AudioCues | None = None,
        on_indicator: Callable[[bool], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.oracle = oracle
        self.keyboard = keyboard
        self.cues = cues
        self.on_indicator = on_indicator
        self._clock = clock
        self._sleep = sleep

        self.state = DictationState()
        self._lock = threading.RLock()
        self._indicator: bool | None = None
        self._reality_token = 0

    @property
    def believed(self) -> bool:
        with self._lock:
            return self.state.believed

    def snapshot(self) -> DictationState:
        with self._lock:
            return DictationState(
                believed=self.state.believed,
                consecutive_false_reads=self.state.consecutive_false_reads,
                last_manual_toggle=self.state.last_manual_toggle,
            )

    # Background sync
    def sync_once(self) -> None:
        active = self.oracle.probe_recording_active()
        if active is None:
            return

        threshold = self.config.sticky_off_threshold
        with self._lock:
            if active:
                self.state.consecutive_false_reads = 0
            else:
                self.state.consecutive_false_reads += 1
            settled_off = self.state.consecutive_false_reads >= threshold

            indicator = True if active else (False if settled_off else None)

            if self._in_lockout():
                LOGGER.debug("Dictation sync: manual toggle lockout, keeping belief=%s", self.state.believed)
            elif active != self.state.believed and (active or settled_off):
                LOGGER.info("Dictation sync: belief updated to %s", active)
                self.state.believed = active

        if indicator is not None:
            self._publish_indicator(indicator)

    # Manual toggles
    def set_recording(self, desired: bool | None = None, send_key: bool = True) -> bool:
        """Toggle dictation in the reporting app.

        Returns True when a keystroke was sent, False when the app already
        matched ``desired`` and only the cue was played.
        """
        LOGGER.info("Set recording (desired=%s, send_key=%s)", desired, send_key)
        with self._lock:
            self.state.last_manual_toggle = self._clock()

        real = self.oracle.probe_recording_active()

        if desired is not None:
            with self._lock:
                current = real if real is not None else self.state.believed
            if current == desired:
                LOGGER.info("Recording already %s; skipping keystroke", "on" if desired else "off")
                with self._lock:
                    self.state.believed = current
                self._play_cue(desired)
                return False

        if send_key:
            self.keyboard.activate_external_app()
            self._sleep(ACTIVATION_SETTLE_S)
            self.keyboard.emit_keystroke(self.config.toggle_record_keystroke)

        with self._lock:
            if desired is not None:
                self.state.believed = desired
            else:
                # Negate what the app reported, not the (possibly drifted) belief.
                current = real if real is not None else self.state.believed
                self.state.believed = not current
            believed = self.state.believed

        self._play_cue(believed)
        LOGGER.info("Dictation toggle sent; belief now %s", believed)
        return send_key

    def toggle_belief(self) -> bool:
        """Flip the belief without a keystroke (the device already toggled the app)."""
        with self._lock:
            starting = not self.state.believed
            self.state.believed = starting
            self.state.last_manual_toggle = self._clock()
            self._reality_token += 1
            token = self._reality_token

        self._play_cue(starting)
        self._publish_indicator(starting)
        LOGGER.info("System beep: belief toggled to %s", "on" if starting else "off")

        delay_s = max(MIN_REALITY_CHECK_S, self.config.dictation_pause_ms * 2.5 / 1000.0)
        timer = threading.Timer(delay_s, self.run_reality_check, args=(token,))
        timer.daemon = True
        timer.start()
        return starting

    def run_reality_check(self, token: int) -> None:
        with self._lock:
            if token != self._reality_token:
                return

        real = self.oracle.probe_recording_active()
        with self._lock:
            if token != self._reality_token:
                return
            # Only trust the app for "on"; its "off" reads drop out during buffering.
            if real is True and not self.state.believed:
                LOGGER.info("Reality check: app is recording but belief was off; correcting")
                self.state.believed = True
            else:
                return
        self._publish_indicator(True)

    # Helpers
    def _in_lockout(self) -> bool:
        lockout_s = self.config.manual_toggle_lockout_ms / 1000.0
        return (self._clock() - self.state.last_manual_toggle) <= lockout_s

    def _publish_indicator(self, active: bool) -> None:
        with self._lock:
            if self._indicator == active:
                return
            self._indicator = active
        if self.on_indicator is not None:
            self.on_indicator(active)

    def _play_cue(self, starting: bool) -> None:
        if self.cues is None:
            return
        if starting:
            if not self.config.start_beep_enabled:
                return
            # Delay masks the reporting app's microphone start-up.
            self.cues.play_async(
                START_CUE_HZ,
                CUE_DURATION_MS,
                self.config.start_beep_volume,
                delay_ms=max(0, self.config.dictation_pause_ms),
            )
            return

        if self.config.stop_beep_enabled:
            self.cues.play_async(STOP_CUE_HZ, CUE_DURATION_MS, self.config.stop_beep_volume)


__all__ = ["CUE_DURATION_MS", "START_CUE_HZ", "STOP_CUE_HZ", "DictationReconciler", "DictationState"]
