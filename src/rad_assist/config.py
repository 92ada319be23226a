from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Literal

from rad_assist.actions import ActionKind

AlertMode = Literal["always_show", "alerts_only"]

LOGGER = logging.getLogger(__name__)

APP_DIR = Path.home() / "Library" / "Application Support" / "RadAssist"
CONFIG_PATH = APP_DIR / "config.json"

# Combos the reporting app handles natively; binding them as triggers feeds back into it.
RESTRICTED_HOTKEYS = frozenset(
    {"alt+n", "alt+r", "alt+p", "alt+s", "alt+t", "alt+c", "alt+f", "alt+1", "alt+2", "ctrl+/"}
)


class InvalidReferenceError(ValueError):
    """A configured cross-reference points at a missing or disabled target."""


def normalize_hotkey(hotkey: str) -> str:
    return hotkey.lower().replace(" ", "")


def is_hotkey_restricted(hotkey: str) -> bool:
    if not hotkey or not hotkey.strip():
        return False
    return normalize_hotkey(hotkey) in RESTRICTED_HOTKEYS


def _default_action_mappings() -> dict[str, dict[str, str]]:
    return {
        ActionKind.TOGGLE_RECORD.value: {"hotkey": "", "mic_button": "Record Button"},
        ActionKind.PROCESS_REPORT.value: {"hotkey": "", "mic_button": "Skip Back"},
        ActionKind.SIGN_REPORT.value: {"hotkey": "", "mic_button": "Checkmark"},
        ActionKind.CREATE_IMPRESSION.value: {"hotkey": "", "mic_button": "Skip Forward"},
    }


@dataclass
class AppConfig:
    external_app_name: str = "Mosaic"
    restore_focus_after_action: bool = True

    toggle_record_keystroke: str = "alt+r"
    process_report_keystroke: str = "alt+p"
    sign_report_keystroke: str = "alt+f"
    paste_keystroke: str = "cmd+v"

    scrape_enabled: bool = True
    scrape_interval_seconds: int = 3
    fast_scrape_interval_ms: int = 1000
    post_impression_scrape_interval_ms: int = 3000
    impression_settle_seconds: float = 2.0
    ui_refresh_interval_ms: int = 1000

    dictation_sync_interval_ms: int = 250
    sticky_off_threshold: int = 3
    manual_toggle_lockout_ms: int = 500
    start_beep_enabled: bool = True
    stop_beep_enabled: bool = True
    start_beep_volume: float = 0.04
    stop_beep_volume: float = 0.04
    dictation_pause_ms: int = 1000
    auto_stop_dictation: bool = False
    dead_man_switch: bool = False

    show_report_changes: bool = True
    show_impression: bool = True
    show_clinical_history: bool = True
    alert_mode: AlertMode = "alerts_only"
    show_template_mismatch: bool = True
    gender_check_enabled: bool = True
    show_drafted_indicator: bool = True
    stroke_detection_enabled: bool = False
    stroke_detection_use_clinical_history: bool = True
    stroke_auto_create_note: bool = False

    scroll_to_bottom_on_process: bool = False
    scroll_thresholds: list[int] = field(default_factory=lambda: [10, 30, 50])

    macros_enabled: bool = False
    macros_blank_lines_before: bool = False
    macros: list[dict[str, Any]] = field(default_factory=list)
    pick_lists_enabled: bool = False
    pick_lists: list[dict[str, Any]] = field(default_factory=list)

    action_mappings: dict[str, dict[str, str]] = field(default_factory=_default_action_mappings)

    @property
    def always_show_alerts(self) -> bool:
        return self.alert_mode == "always_show"

    def mapped_button(self, kind: ActionKind) -> str:
        return self.action_mappings.get(kind.value, {}).get("mic_button", "")

    def action_for_button(self, button: str) -> ActionKind | None:
        for action, mapping in self.action_mappings.items():
            if mapping.get("mic_button") == button:
                return ActionKind(action)
        return None

    def hotkey_bindings(self) -> dict[str, ActionKind]:
        bindings: dict[str, ActionKind] = {}
        for action, mapping in self.action_mappings.items():
            hotkey = mapping.get("hotkey", "")
            if hotkey:
                bindings[normalize_hotkey(hotkey)] = ActionKind(action)
        return bindings

    def validate(self) -> None:
        if not self.external_app_name.strip():
            raise ValueError("external_app_name cannot be empty")
        if self.scrape_interval_seconds < 1:
            raise ValueError("scrape_interval_seconds must be >= 1")
        if self.fast_scrape_interval_ms < 100:
            raise ValueError("fast_scrape_interval_ms must be >= 100")
        if self.post_impression_scrape_interval_ms < 100:
            raise ValueError("post_impression_scrape_interval_ms must be >= 100")
        if self.impression_settle_seconds < 0:
            raise ValueError("impression_settle_seconds must be >= 0")
        if self.ui_refresh_interval_ms < 100:
            raise ValueError("ui_refresh_interval_ms must be >= 100")
        if self.dictation_sync_interval_ms < 50 or self.dictation_sync_interval_ms >= 1000:
            raise ValueError("dictation_sync_interval_ms must be between 50 and 999")
        if self.sticky_off_threshold < 1:
            raise ValueError("sticky_off_threshold must be >= 1")
        if self.manual_toggle_lockout_ms < 0:
            raise ValueError("manual_toggle_lockout_ms must be >= 0")
        for name in ("start_beep_volume", "stop_beep_volume"):
            volume = getattr(self, name)
            if not isinstance(volume, (int, float)) or volume < 0 or volume > 1:
                raise ValueError(f"{name} must be between 0 and 1")
        if self.dictation_pause_ms < 0:
            raise ValueError("dictation_pause_ms must be >= 0")
        if self.alert_mode not in {"always_show", "alerts_only"}:
            raise ValueError(f"Unsupported alert_mode: {self.alert_mode}")
        if len(self.scroll_thresholds) != 3 or sorted(self.scroll_thresholds) != list(self.scroll_thresholds):
            raise ValueError("scroll_thresholds must be three ascending line counts")
        for entry in self.macros:
            if not isinstance(entry, dict) or not entry.get("name"):
                raise ValueError("Each macro needs a name")
        for entry in self.pick_lists:
            if not isinstance(entry, dict) or not entry.get("name"):
                raise ValueError("Each pick list needs a name")

        known_actions = {kind.value for kind in ActionKind}
        for action, mapping in self.action_mappings.items():
            if action not in known_actions:
                raise ValueError(f"Unknown action in action_mappings: {action}")
            hotkey = mapping.get("hotkey", "")
            if is_hotkey_restricted(hotkey):
                raise ValueError(f"Hotkey {hotkey!r} is reserved by {self.external_app_name}")


class ConfigStore:
    def __init__(self, path: Path = CONFIG_PATH) -> None:
        self.path = path

    def ensure_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> AppConfig:
        self.ensure_dir()
        try:
            raw_text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            cfg = AppConfig()
            self.save(cfg)
            return cfg

        try:
            raw = json.loads(raw_text)
            known_keys = {f.name for f in fields(AppConfig)}
            cfg = AppConfig(**{k: v for k, v in raw.items() if k in known_keys})
            cfg.validate()
            return cfg
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError) as exc:
            LOGGER.warning("Config file corrupt or invalid, using defaults: %s", exc)
            return AppConfig()

    def save(self, config: AppConfig) -> None:
        config.validate()
        self.ensure_dir()
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps(asdict(config), indent=2, sort_keys=True),
            encoding="utf-8",
        )
        os.replace(str(tmp_path), str(self.path))
