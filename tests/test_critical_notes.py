import threading

from rad_assist.critical_notes import CriticalNoteTracker


def test_note_created_once_per_accession() -> None:
    calls = []
    tracker = CriticalNoteTracker(lambda: calls.append(1) or True)

    assert tracker.ensure_note_for_accession("X", "CT HEAD") is True
    assert tracker.ensure_note_for_accession("X") is False

    assert len(calls) == 1
    assert tracker.has_note_for("X") is True
    assert [entry.accession for entry in tracker.entries] == ["X"]
    assert tracker.entries[0].description == "CT HEAD"


def test_empty_accession_is_a_noop() -> None:
    calls = []
    tracker = CriticalNoteTracker(lambda: calls.append(1) or True)

    assert tracker.ensure_note_for_accession(None) is False
    assert tracker.ensure_note_for_accession("") is False
    assert calls == []
    assert tracker.has_note_for(None) is False


def test_failed_creation_is_retried() -> None:
    results = [False, True]
    tracker = CriticalNoteTracker(lambda: results.pop(0))

    assert tracker.ensure_note_for_accession("X") is False
    assert tracker.has_note_for("X") is False
    assert tracker.ensure_note_for_accession("X") is True


def test_reset_allows_next_accession_and_keeps_session_list() -> None:
    tracker = CriticalNoteTracker(lambda: True)
    tracker.ensure_note_for_accession("X")

    tracker.reset()

    assert tracker.created_for is None
    assert tracker.ensure_note_for_accession("Y") is True
    assert [entry.accession for entry in tracker.entries] == ["X", "Y"]


def test_concurrent_callers_create_once() -> None:
    calls = []
    barrier = threading.Barrier(8)

    def create() -> bool:
        calls.append(1)
        return True

    tracker = CriticalNoteTracker(create)

    def worker() -> None:
        barrier.wait()
        tracker.ensure_note_for_accession("X")

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1
