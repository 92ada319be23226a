from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import numpy as np
import sounddevice as sd

LOGGER = logging.getLogger(__name__)


@dataclass
class CueConfig:
    sample_rate: int = 44_100
    fade_ms: int = 5


class AudioCuePlayer:
    def __init__(self, config: CueConfig | None = None) -> None:
        self.config = config or CueConfig()
        # Overlapping sd.play calls cut each other off.
        self._play_lock = threading.Lock()

    def synthesize(self, frequency_hz: int, duration_ms: int, volume: float) -> np.ndarray:
        samples = int(self.config.sample_rate * duration_ms / 1000)
        if samples <= 0:
            return np.array([], dtype=np.float32)

        amplitude = max(0.0, min(1.0, float(volume)))
        t = np.arange(samples, dtype=np.float32) / self.config.sample_rate
        tone = amplitude * np.sin(2 * np.pi * frequency_hz * t)

        # Short ramps avoid the click at tone edges.
        fade = min(samples // 2, int(self.config.sample_rate * self.config.fade_ms / 1000))
        if fade > 0:
            ramp = np.linspace(0.0, 1.0, fade, dtype=np.float32)
            tone[:fade] *= ramp
            tone[-fade:] *= ramp[::-1]
        return tone.astype(np.float32)

    def play(self, frequency_hz: int, duration_ms: int, volume: float) -> None:
        tone = self.synthesize(frequency_hz, duration_ms, volume)
        if tone.size == 0:
            return
        LOGGER.debug("Playing %sHz cue for %sms (vol=%.2f)", frequency_hz, duration_ms, volume)
        try:
            with self._play_lock:
                sd.play(tone, samplerate=self.config.sample_rate)
                sd.wait()
        except Exception:
            LOGGER.warning("Audio cue playback failed", exc_info=True)

    def play_async(self, frequency_hz: int, duration_ms: int, volume: float, delay_ms: int = 0) -> None:
        if delay_ms > 0:
            timer = threading.Timer(delay_ms / 1000.0, self.play, args=(frequency_hz, duration_ms, volume))
            timer.daemon = True
            timer.start()
            return

        threading.Thread(
            target=self.play,
            args=(frequency_hz, duration_ms, volume),
            name="audio-cue",
            daemon=True,
        ).start()


__all__ = ["AudioCuePlayer", "CueConfig"]
