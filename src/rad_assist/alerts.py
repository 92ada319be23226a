from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from rad_assist.config import AppConfig
from rad_assist.oracle import CaseSnapshot
from rad_assist.ports import Presenter
from rad_assist.report_text import body_parts_match, check_gender_mismatch

LOGGER = logging.getLogger(__name__)


class AlertKind(str, Enum):
    GENDER_MISMATCH = "gender_mismatch"
    TEMPLATE_MISMATCH = "template_mismatch"
    STROKE_DETECTED = "stroke_detected"


# Highest priority first.
ALERT_PRIORITY = (AlertKind.GENDER_MISMATCH, AlertKind.TEMPLATE_MISMATCH, AlertKind.STROKE_DETECTED)


@dataclass(frozen=True)
class AlertState:
    template_mismatch: bool = False
    gender_mismatch: bool = False
    protocol_flag: bool = False
    gender_terms: tuple[str, ...] = ()
    template_description: str | None = None
    template_name: str | None = None

    def is_active(self, kind: AlertKind) -> bool:
        if kind is AlertKind.GENDER_MISMATCH:
            return self.gender_mismatch
        if kind is AlertKind.TEMPLATE_MISMATCH:
            return self.template_mismatch
        return self.protocol_flag

    @property
    def active(self) -> tuple[AlertKind, ...]:
        return tuple(kind for kind in ALERT_PRIORITY if self.is_active(kind))

    @property
    def any_active(self) -> bool:
        return bool(self.active)

    @property
    def selected(self) -> AlertKind | None:
        active = self.active
        return active[0] if active else None

    def details(self, kind: AlertKind) -> str:
        if kind is AlertKind.GENDER_MISMATCH:
            return ", ".join(self.gender_terms)
        if kind is AlertKind.TEMPLATE_MISMATCH:
            if self.template_description is not None and self.template_name is not None:
                return f"Study: {self.template_description}\nTemplate: {self.template_name}"
            return ""
        return "Study flagged as stroke protocol"


def evaluate_alerts(config: AppConfig, snapshot: CaseSnapshot, protocol_flag: bool) -> AlertState:
    template_mismatch = False
    description = template_name = None
    if config.show_template_mismatch:
        description = snapshot.description
        template_name = snapshot.template_name
        template_mismatch = not body_parts_match(description, template_name)

    gender_terms: list[str] = []
    if config.gender_check_enabled and snapshot.report_text and snapshot.report_text.strip():
        gender_terms = check_gender_mismatch(snapshot.report_text, snapshot.patient_gender)

    return AlertState(
        template_mismatch=template_mismatch,
        gender_mismatch=bool(gender_terms),
        protocol_flag=protocol_flag,
        gender_terms=tuple(gender_terms),
        template_description=description,
        template_name=template_name,
    )


class AlertArbitrator:
    """Drives the alert surface from each poll's :class:`AlertState`."""

    def __init__(self, presenter: Presenter) -> None:
        self.presenter = presenter
        self.surface_visible = False
        self._shown: tuple[AlertKind, str] | None = None

    def present(self, state: AlertState, config: AppConfig, snapshot: CaseSnapshot) -> AlertKind | None:
        if config.always_show_alerts:
            self._present_all(state, config, snapshot)
            return None
        return self._present_selected(state)

    def hide(self) -> None:
        if self.surface_visible:
            self.presenter.hide_alert_surface()
        self.surface_visible = False
        self._shown = None

    def _present_all(self, state: AlertState, config: AppConfig, snapshot: CaseSnapshot) -> None:
        # Skip empty scrapes so the window does not blank during processing gaps.
        if snapshot.report_text and snapshot.report_text.strip():
            self.presenter.update_clinical_history(snapshot.report_text, snapshot.accession)
        self.presenter.set_alert_indicators(state)
        if config.show_drafted_indicator:
            self.presenter.update_drafted_state(bool(snapshot.drafted))

    def _present_selected(self, state: AlertState) -> AlertKind | None:
        selected = state.selected
        if selected is None:
            if self.surface_visible:
                LOGGER.info("No alerts active; hiding alert surface")
                self.hide()
            return None

        shown = (selected, state.details(selected))
        if shown != self._shown:
            LOGGER.info("Presenting alert: %s", selected.value)
            self.presenter.show_alert_surface(*shown)
            self._shown = shown
        self.surface_visible = True
        return selected


__all__ = ["ALERT_PRIORITY", "AlertArbitrator", "AlertKind", "AlertState", "evaluate_alerts"]
