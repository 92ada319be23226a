from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ActionKind(str, Enum):
    SYSTEM_BEEP = "System Beep"
    TOGGLE_RECORD = "Toggle Record"
    PROCESS_REPORT = "Process Report"
    SIGN_REPORT = "Sign Report"
    DISCARD_STUDY = "Discard Study"
    CREATE_IMPRESSION = "Create Impression"
    SHOW_REPORT = "Show Report"
    SHOW_PICK_LISTS = "Show Pick Lists"
    CREATE_CRITICAL_NOTE = "Create Critical Note"
    # Queued by the app itself, never bound to a key or button.
    INSERT_MACROS = "__InsertMacros__"
    INSERT_PICK_LIST_TEXT = "__InsertPickListText__"


SOURCE_MANUAL = "Manual"
SOURCE_HOTKEY = "Hotkey"
SOURCE_INTERNAL = "Internal"

RECORD_BUTTON = "Record Button"
SKIP_BACK = "Skip Back"
SKIP_FORWARD = "Skip Forward"
CHECKMARK = "Checkmark"


@dataclass(frozen=True)
class ActionRequest:
    kind: ActionKind
    source: str = SOURCE_MANUAL
    payload: Any = None


@dataclass(frozen=True)
class MacroInsertion:
    text: str
    count: int


@dataclass(frozen=True)
class PickListSelection:
    list_name: str
    item_index: int


__all__ = [
    "CHECKMARK",
    "RECORD_BUTTON",
    "SKIP_BACK",
    "SKIP_FORWARD",
    "SOURCE_HOTKEY",
    "SOURCE_INTERNAL",
    "SOURCE_MANUAL",
    "ActionKind",
    "ActionRequest",
    "MacroInsertion",
    "PickListSelection",
]
