import types

import pytest

import rad_assist.keyboard as keyboard
from rad_assist.keyboard import CMD_MASK, OPTION_MASK, SHIFT_MASK, QuartzKeyboard, parse_combo


class _FakeQuartz:
    kCGHIDEventTap = 0

    def __init__(self) -> None:
        self.posted = []

    @staticmethod
    def CGEventCreateKeyboardEvent(_source, keycode, key_down):
        return {"keycode": keycode, "down": key_down, "flags": None}

    @staticmethod
    def CGEventSetFlags(event, flags):
        event["flags"] = flags

    def CGEventPost(self, _tap, event):
        self.posted.append((event["keycode"], event["down"], event["flags"]))


def test_parse_combo_with_modifiers() -> None:
    assert parse_combo("alt+r") == (15, OPTION_MASK)
    assert parse_combo("Cmd + Shift + V") == (9, CMD_MASK | SHIFT_MASK)
    assert parse_combo("pagedown") == (121, 0)


@pytest.mark.parametrize("combo", ["", "hyper+r", "alt+nope"])
def test_parse_combo_rejects_unknown_parts(combo: str) -> None:
    with pytest.raises(ValueError):
        parse_combo(combo)


def test_emit_keystroke_posts_down_and_up(monkeypatch) -> None:
    quartz = _FakeQuartz()
    monkeypatch.setattr(keyboard, "_load_quartz", lambda: quartz)

    QuartzKeyboard("Mosaic").emit_keystroke("alt+p")

    assert quartz.posted == [(35, True, OPTION_MASK), (35, False, OPTION_MASK)]


def test_press_key_repeats(monkeypatch) -> None:
    quartz = _FakeQuartz()
    monkeypatch.setattr(keyboard, "_load_quartz", lambda: quartz)
    monkeypatch.setattr(keyboard.time, "sleep", lambda _s: None)

    QuartzKeyboard("Mosaic").press_key("pagedown", 3)

    assert [event for event in quartz.posted if event[1]] == [(121, True, 0)] * 3


def test_release_modifiers_posts_key_up_for_each_modifier(monkeypatch) -> None:
    quartz = _FakeQuartz()
    monkeypatch.setattr(keyboard, "_load_quartz", lambda: quartz)

    QuartzKeyboard("Mosaic").release_modifiers()

    assert [code for code, _, _ in quartz.posted] == list(keyboard.MODIFIER_KEYCODES)
    assert all(not down and flags == 0 for _, down, flags in quartz.posted)


def test_activate_external_app_raises_on_failure(monkeypatch) -> None:
    calls = []

    def fake_run(args, **_kwargs):
        calls.append(args)
        return types.SimpleNamespace(returncode=1, stderr="not running\n")

    monkeypatch.setattr(keyboard.subprocess, "run", fake_run)

    with pytest.raises(RuntimeError, match="not running"):
        QuartzKeyboard("Mosaic").activate_external_app()

    assert calls == [["osascript", "-e", 'tell application "Mosaic" to activate']]


def test_restore_focus_without_saved_app_is_noop() -> None:
    QuartzKeyboard("Mosaic").restore_focus()
