from rad_assist.config import AppConfig
from rad_assist.dictation import START_CUE_HZ, STOP_CUE_HZ, DictationReconciler
from rad_assist.oracle import SafeOracle


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeOracle:
    def __init__(self) -> None:
        self.recording = False

    def probe_recording_active(self):
        if isinstance(self.recording, Exception):
            raise self.recording
        return self.recording

    def probe_case_snapshot(self):
        return None

    def probe_discard_dialog_visible(self):
        return False


class FakeKeyboard:
    def __init__(self) -> None:
        self.calls = []

    def emit_keystroke(self, combo: str) -> None:
        self.calls.append(("key", combo))

    def activate_external_app(self) -> None:
        self.calls.append(("activate",))


class FakeCues:
    def __init__(self) -> None:
        self.played = []

    def play_async(self, frequency_hz, duration_ms, volume, delay_ms=0) -> None:
        self.played.append((frequency_hz, delay_ms))


def _reconciler(config: AppConfig | None = None):
    config = config or AppConfig()
    oracle = FakeOracle()
    keyboard = FakeKeyboard()
    cues = FakeCues()
    clock = FakeClock()
    indicator = []
    reconciler = DictationReconciler(
        config,
        SafeOracle(oracle),
        keyboard,
        cues=cues,
        on_indicator=indicator.append,
        clock=clock,
        sleep=lambda _seconds: None,
    )
    return reconciler, oracle, keyboard, cues, clock, indicator


def test_single_true_read_turns_belief_on() -> None:
    reconciler, oracle, _, _, _, indicator = _reconciler()
    oracle.recording = True

    reconciler.sync_once()

    assert reconciler.believed is True
    assert indicator == [True]


def test_belief_turns_off_only_after_consecutive_false_reads() -> None:
    reconciler, oracle, _, _, _, indicator = _reconciler()
    oracle.recording = True
    reconciler.sync_once()

    oracle.recording = False
    reconciler.sync_once()
    reconciler.sync_once()
    assert reconciler.believed is True

    reconciler.sync_once()
    assert reconciler.believed is False
    assert indicator == [True, False]


def test_true_read_resets_false_counter() -> None:
    reconciler, oracle, _, _, _, _ = _reconciler()
    oracle.recording = True
    reconciler.sync_once()

    for value in (False, False, True, False, False):
        oracle.recording = value
        reconciler.sync_once()

    assert reconciler.believed is True
    assert reconciler.snapshot().consecutive_false_reads == 2


def test_unknown_reads_are_ignored() -> None:
    reconciler, oracle, _, _, _, indicator = _reconciler()
    oracle.recording = RuntimeError("registry unavailable")

    reconciler.sync_once()

    assert reconciler.snapshot().consecutive_false_reads == 0
    assert indicator == []


def test_lockout_after_manual_toggle_blocks_background_sync() -> None:
    reconciler, oracle, _, _, clock, _ = _reconciler()
    oracle.recording = False
    reconciler.set_recording()
    assert reconciler.believed is True

    # Stale oracle still says off, but the toggle was just sent.
    for _ in range(3):
        reconciler.sync_once()
    assert reconciler.believed is True

    clock.advance(0.6)
    reconciler.sync_once()
    assert reconciler.believed is False


def test_set_recording_skips_keystroke_when_already_in_desired_state() -> None:
    reconciler, oracle, keyboard, cues, _, _ = _reconciler()
    oracle.recording = True

    sent = reconciler.set_recording(True)

    assert sent is False
    assert keyboard.calls == []
    assert cues.played == [(START_CUE_HZ, 1000)]
    assert reconciler.believed is True


def test_set_recording_stop_cue_is_immediate() -> None:
    reconciler, oracle, keyboard, cues, _, _ = _reconciler()
    oracle.recording = True

    sent = reconciler.set_recording(False)

    assert sent is True
    assert keyboard.calls == [("activate",), ("key", "alt+r")]
    assert cues.played == [(STOP_CUE_HZ, 0)]
    assert reconciler.believed is False


def test_toggle_negates_oracle_reading_not_stale_belief() -> None:
    reconciler, oracle, _, _, _, _ = _reconciler()
    reconciler.state.believed = True
    oracle.recording = False

    reconciler.set_recording()

    assert reconciler.believed is True


def test_toggle_falls_back_to_belief_when_oracle_unknown() -> None:
    reconciler, oracle, _, _, _, _ = _reconciler()
    reconciler.state.believed = True
    oracle.recording = RuntimeError("unavailable")

    reconciler.set_recording()

    assert reconciler.believed is False


def test_disabled_cues_are_not_played() -> None:
    reconciler, oracle, _, cues, _, _ = _reconciler(AppConfig(start_beep_enabled=False))

    reconciler.set_recording(True)

    assert cues.played == []


def test_toggle_belief_flips_without_keystroke(monkeypatch) -> None:
    reconciler, _, keyboard, cues, _, indicator = _reconciler()
    scheduled = []

    class FakeTimer:
        def __init__(self, delay, fn, args=()) -> None:
            scheduled.append((delay, fn, args))
            self.daemon = False

        def start(self) -> None:
            pass

    monkeypatch.setattr("rad_assist.dictation.threading.Timer", FakeTimer)

    assert reconciler.toggle_belief() is True

    assert keyboard.calls == []
    assert cues.played == [(START_CUE_HZ, 1000)]
    assert indicator == [True]
    assert scheduled[0][0] == 2.5


def test_reality_check_only_corrects_false_to_true() -> None:
    reconciler, oracle, _, _, _, indicator = _reconciler()
    reconciler._reality_token = 1

    reconciler.state.believed = True
    oracle.recording = False
    reconciler.run_reality_check(1)
    assert reconciler.believed is True

    reconciler.state.believed = False
    oracle.recording = True
    reconciler.run_reality_check(1)
    assert reconciler.believed is True
    assert indicator == [True]


def test_stale_reality_check_is_ignored() -> None:
    reconciler, oracle, _, _, _, _ = _reconciler()
    reconciler._reality_token = 2
    oracle.recording = True

    reconciler.run_reality_check(1)

    assert reconciler.believed is False
