import threading
import types

import pytest

import rad_assist.clipboard as clipboard_module
from rad_assist.clipboard import ClipboardPaster, MacClipboard


class FakeClipboard:
    def __init__(self, text: str | None = "old", fail_restore: bool = False) -> None:
        self.text = text
        self.fail_restore = fail_restore
        self.calls = []

    def get_clipboard_text(self) -> str | None:
        return self.text

    def set_clipboard_text(self, text: str) -> None:
        if self.fail_restore and text == "old":
            raise RuntimeError("pbcopy failed")
        self.calls.append(text)
        self.text = text


class FakeKeyboard:
    def __init__(self, calls: list, fail: bool = False) -> None:
        self.calls = calls
        self.fail = fail

    def emit_keystroke(self, combo: str) -> None:
        if self.fail:
            raise RuntimeError("Quartz keyboard event unavailable")
        self.calls.append(f"key:{combo}")


def _paster(clipboard: FakeClipboard, fail: bool = False) -> ClipboardPaster:
    keyboard = FakeKeyboard(clipboard.calls, fail=fail)
    return ClipboardPaster(clipboard, keyboard, lock=threading.Lock(), sleep=lambda _s: None)


def test_paste_restores_clipboard() -> None:
    clipboard = FakeClipboard()
    paster = _paster(clipboard)

    paster.paste("new text")

    assert clipboard.calls == ["new text", "key:cmd+v", "old"]
    assert paster.last_paste_time is not None


def test_paste_noop_for_empty_text() -> None:
    clipboard = FakeClipboard()

    _paster(clipboard).paste("")

    assert clipboard.calls == []


def test_paste_without_restore_keeps_new_text() -> None:
    clipboard = FakeClipboard()

    _paster(clipboard).paste("new", restore_clipboard=False)

    assert clipboard.calls == ["new", "key:cmd+v"]


def test_paste_failure_restores_clipboard_and_raises() -> None:
    clipboard = FakeClipboard()
    paster = _paster(clipboard, fail=True)

    with pytest.raises(RuntimeError):
        paster.paste("new")

    assert clipboard.calls == ["new", "old"]
    assert paster.last_paste_time is None


def test_restore_failure_is_not_raised() -> None:
    clipboard = FakeClipboard(fail_restore=True)

    _paster(clipboard).paste("new")

    assert clipboard.calls == ["new", "key:cmd+v"]


def test_empty_original_clipboard_is_not_restored() -> None:
    clipboard = FakeClipboard(text=None)

    _paster(clipboard).paste("new")

    assert clipboard.calls == ["new", "key:cmd+v"]


def test_mac_clipboard_returns_none_when_pbpaste_fails(monkeypatch) -> None:
    def fake_run(*_args, **_kwargs):
        return types.SimpleNamespace(returncode=1, stdout="")

    monkeypatch.setattr(clipboard_module.subprocess, "run", fake_run)

    assert MacClipboard().get_clipboard_text() is None


def test_mac_clipboard_sets_text_through_pbcopy(monkeypatch) -> None:
    calls = []

    def fake_run(args, **kwargs):
        calls.append((args, kwargs["input"]))
        return types.SimpleNamespace(returncode=0, stdout="")

    monkeypatch.setattr(clipboard_module.subprocess, "run", fake_run)

    MacClipboard().set_clipboard_text("hello")

    assert calls == [(["pbcopy"], "hello")]
