import threading

import pytest

from rad_assist.scheduler import RepeatingTimer


def test_timer_calls_callback_repeatedly() -> None:
    calls = []
    done = threading.Event()

    def tick() -> None:
        calls.append(1)
        if len(calls) >= 3:
            done.set()

    timer = RepeatingTimer(0.01, tick, "test-timer")
    timer.start()
    try:
        assert done.wait(timeout=2.0)
    finally:
        timer.stop()

    assert len(calls) >= 3
    assert timer.is_running is False


def test_callback_errors_do_not_stop_timer() -> None:
    calls = []
    done = threading.Event()

    def tick() -> None:
        calls.append(1)
        if len(calls) >= 2:
            done.set()
        raise RuntimeError("scrape failed")

    timer = RepeatingTimer(0.01, tick, "test-timer")
    timer.start()
    try:
        assert done.wait(timeout=2.0)
    finally:
        timer.stop()


def test_set_interval_rearms_a_long_wait() -> None:
    done = threading.Event()
    timer = RepeatingTimer(60.0, done.set, "test-timer")
    timer.start()
    try:
        timer.set_interval(0.01)
        assert done.wait(timeout=2.0)
        assert timer.interval_s == 0.01
    finally:
        timer.stop()


def test_set_interval_before_start_changes_interval() -> None:
    timer = RepeatingTimer(3.0, lambda: None, "test-timer")

    timer.set_interval(1.0)

    assert timer.interval_s == 1.0
    assert timer.is_running is False


def test_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        RepeatingTimer(0, lambda: None, "test-timer")

    timer = RepeatingTimer(1.0, lambda: None, "test-timer")
    with pytest.raises(ValueError):
        timer.set_interval(-1)


def test_set_interval_signals_wakeup_while_holding_lock() -> None:
    timer = RepeatingTimer(5.0, lambda: None, "test-timer")
    seen_on_release = []

    class RecordingLock:
        def __init__(self) -> None:
            self._lock = threading.Lock()

        def __enter__(self):
            self._lock.acquire()
            return self

        def __exit__(self, *exc_info) -> None:
            seen_on_release.append(timer._wakeup.is_set())
            self._lock.release()

    timer._lock = RecordingLock()

    timer.set_interval(0.5)

    assert seen_on_release == [True]
