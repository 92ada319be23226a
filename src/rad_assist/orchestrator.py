"""Serialized action execution plus the polling loops that reconcile state.

All mutable session state lives on :class:`Orchestrator` behind one lock.
Actions run one at a time on the :class:`ActionQueue` worker; the study
poller shares the queue's execution lock so it never scrapes mid-action.
"""

from __future__ import annotations

import logging
import threading
import time
from functools import partial
from typing import Callable, Sequence

from rad_assist.action_queue import ActionQueue
from rad_assist.actions import (
    CHECKMARK,
    RECORD_BUTTON,
    SKIP_BACK,
    SKIP_FORWARD,
    SOURCE_HOTKEY,
    SOURCE_INTERNAL,
    SOURCE_MANUAL,
    ActionKind,
    ActionRequest,
    MacroInsertion,
    PickListSelection,
)
from rad_assist.alerts import AlertArbitrator, evaluate_alerts
from rad_assist.case import CaseTracker, CaseTransition, StudyOutcome
from rad_assist.clipboard import ClipboardPaster, MacClipboard
from rad_assist.config import AppConfig, InvalidReferenceError
from rad_assist.critical_notes import CriticalNoteTracker, CriticalStudyEntry
from rad_assist.dictation import DictationReconciler
from rad_assist.hotkey import HotkeyListener
from rad_assist.impression import ImpressionTracker, ScrapeRate, SearchMode
from rad_assist.macros import PickList, build_macro_text, load_macros, load_pick_lists, matching_pick_lists
from rad_assist.oracle import CaseSnapshot, Oracle, SafeOracle
from rad_assist.ports import AudioCues, Automation, Clipboard, Keyboard, Presenter, StudyNotifier
from rad_assist.report_text import (
    contains_stroke_keywords,
    extract_clinical_history,
    extract_impression,
    has_clinical_history_section,
    has_complete_report_marker,
)
from rad_assist.scheduler import RepeatingTimer

LOGGER = logging.getLogger(__name__)

MODIFIER_RELEASE_S = 0.05
ACTIVATION_SETTLE_S = 0.1
AUTO_STOP_SETTLE_S = 0.2
PTT_RELEASE_SETTLE_S = 0.05
SCROLL_SETTLE_S = 0.05


def page_downs_for(line_count: int, thresholds: Sequence[int]) -> int:
    """Number of page-downs for a report of ``line_count`` lines."""
    return sum(1 for threshold in thresholds if line_count >= threshold)


class Orchestrator:
    def __init__(
        self,
        config: AppConfig,
        oracle: Oracle,
        keyboard: Keyboard,
        automation: Automation,
        presenter: Presenter,
        cues: AudioCues | None = None,
        notifier: StudyNotifier | None = None,
        clipboard: Clipboard | None = None,
        hotkeys: HotkeyListener | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.oracle = oracle if isinstance(oracle, SafeOracle) else SafeOracle(oracle)
        self.keyboard = keyboard
        self.automation = automation
        self.presenter = presenter
        self.notifier = notifier
        self.hotkeys = hotkeys
        self._clock = clock
        self._sleep = sleep

        self._lock = threading.RLock()
        self.case = CaseTracker()
        self.critical_notes = CriticalNoteTracker(self._create_critical_note)
        self.alerts = AlertArbitrator(presenter)
        self.impression = ImpressionTracker(presenter, config, self._rearm_scrape, clock=clock)
        self.dictation = DictationReconciler(
            config,
            self.oracle,
            keyboard,
            cues=cues,
            on_indicator=presenter.update_indicator,
            clock=clock,
            sleep=sleep,
        )
        self.paster = ClipboardPaster(
            clipboard or MacClipboard(),
            keyboard,
            paste_keystroke=config.paste_keystroke,
            sleep=sleep,
        )
        self.queue = ActionQueue(
            self.execute,
            on_error=self._on_action_error,
            before_action=self._before_action,
            after_action=self._after_action,
        )

        self._protocol_flag = False
        self._pending_macros_for: str | None = None
        self._critical_note_queued_for: str | None = None
        # Scrapes lag a discard; ignore this accession until the app moves on.
        self._discarded_accession: str | None = None
        self._last_report_text: str | None = None
        self._last_description: str | None = None
        self._report_open = False
        self._report_shown_text: str | None = None

        self._dictation_timer = RepeatingTimer(
            config.dictation_sync_interval_ms / 1000.0, self.dictation.sync_once, "dictation-sync"
        )
        self._scrape_timer = RepeatingTimer(self._interval_for(ScrapeRate.NORMAL), self.poll_once, "study-poller")
        self._ui_timer = RepeatingTimer(config.ui_refresh_interval_ms / 1000.0, self._refresh_ui, "ui-refresh")

    # Public surface
    @property
    def is_case_open(self) -> bool:
        with self._lock:
            return self.case.is_open

    @property
    def current_accession(self) -> str | None:
        with self._lock:
            return self.case.accession

    @property
    def protocol_flag(self) -> bool:
        with self._lock:
            return self._protocol_flag

    @property
    def critical_studies(self) -> list[CriticalStudyEntry]:
        return self.critical_notes.entries

    def has_critical_note_for(self, accession: str | None) -> bool:
        return self.critical_notes.has_note_for(accession)

    def enqueue(self, request: ActionRequest) -> None:
        self.queue.enqueue(request)

    def trigger(self, kind: ActionKind, source: str = SOURCE_MANUAL, payload: object = None) -> None:
        self.enqueue(ActionRequest(kind, source, payload))

    def on_mic_button(self, button: str) -> None:
        # Push-to-talk owns the record button; see on_record_button_state.
        if self.config.dead_man_switch and button == RECORD_BUTTON:
            return
        kind = self.config.action_for_button(button)
        if kind is None:
            LOGGER.debug("No action mapped to %s", button)
            return
        self.trigger(kind, button)

    def on_record_button_state(self, is_down: bool) -> None:
        if not self.config.dead_man_switch:
            return
        # Both edges are queued; set_recording skips the keystroke when already there.
        self.trigger(ActionKind.TOGGLE_RECORD, RECORD_BUTTON, payload=is_down)

    def on_pick_list_item_selected(self, list_name: str, item_index: int) -> None:
        self.trigger(ActionKind.INSERT_PICK_LIST_TEXT, SOURCE_INTERNAL, PickListSelection(list_name, item_index))

    def on_report_closed(self) -> None:
        with self._lock:
            self._report_open = False
            self._report_shown_text = None

    def start(self) -> None:
        LOGGER.info("Starting orchestrator")
        self.queue.start()
        self._dictation_timer.start()
        if self.config.scrape_enabled:
            self._scrape_timer.start()
        self._ui_timer.start()
        if self.hotkeys is not None:
            self._register_hotkeys()
            self.hotkeys.start()

    def stop(self) -> None:
        LOGGER.info("Stopping orchestrator")
        if self.hotkeys is not None:
            self.hotkeys.stop()
        self._ui_timer.stop()
        self._scrape_timer.stop()
        self._dictation_timer.stop()
        self.queue.stop()

    def refresh_services(self) -> None:
        """Re-read intervals, scraping and hotkeys after a settings change."""
        self.paster.paste_keystroke = self.config.paste_keystroke
        self._dictation_timer.set_interval(self.config.dictation_sync_interval_ms / 1000.0)
        self._ui_timer.set_interval(self.config.ui_refresh_interval_ms / 1000.0)
        self._rearm_scrape(self._current_rate())

        if self.config.scrape_enabled:
            if self.queue.is_running and not self._scrape_timer.is_running:
                self._scrape_timer.start()
        else:
            self._scrape_timer.stop()

        if self.hotkeys is not None:
            self._register_hotkeys()

    # Action execution
    def execute(self, request: ActionRequest) -> None:
        LOGGER.info("Executing action: %s (source: %s)", request.kind.value, request.source)
        handler = {
            ActionKind.SYSTEM_BEEP: self._system_beep,
            ActionKind.TOGGLE_RECORD: self._toggle_record,
            ActionKind.PROCESS_REPORT: self._process_report,
            ActionKind.SIGN_REPORT: self._sign_report,
            ActionKind.DISCARD_STUDY: self._discard_study,
            ActionKind.CREATE_IMPRESSION: self._create_impression,
            ActionKind.SHOW_REPORT: self._show_report,
            ActionKind.SHOW_PICK_LISTS: self._show_pick_lists,
            ActionKind.CREATE_CRITICAL_NOTE: self._create_critical_note_action,
            ActionKind.INSERT_MACROS: self._insert_macros,
            ActionKind.INSERT_PICK_LIST_TEXT: self._insert_pick_list_text,
        }[request.kind]
        handler(request)

    def _before_action(self, request: ActionRequest) -> None:
        if request.source == SOURCE_HOTKEY:
            # Physically held modifiers would combine with emitted keystrokes.
            self.keyboard.release_modifiers()
            self._sleep(MODIFIER_RELEASE_S)
        if self.config.restore_focus_after_action:
            self.keyboard.save_focus()

    def _after_action(self, request: ActionRequest) -> None:
        if self.config.restore_focus_after_action:
            self.keyboard.restore_focus()
        self.presenter.ensure_windows_on_top()

    def _on_action_error(self, request: ActionRequest, exc: Exception) -> None:
        if isinstance(exc, InvalidReferenceError):
            self.presenter.show_notice(f"{request.kind.value} unavailable", str(exc))
            return
        self.presenter.show_toast(f"Error: {exc}", 2500)

    def _system_beep(self, request: ActionRequest) -> None:
        self.dictation.toggle_belief()

    def _toggle_record(self, request: ActionRequest) -> None:
        desired = request.payload if isinstance(request.payload, bool) else None
        if request.source == RECORD_BUTTON and desired is False:
            self._sleep(PTT_RELEASE_SETTLE_S)
        self.dictation.set_recording(desired, send_key=True)

    def _process_report(self, request: ActionRequest) -> None:
        with self._lock:
            self.case.mark_process_pressed()
            accession = self.case.accession
            stroke_case = self._protocol_flag

        self.keyboard.release_modifiers()
        self._sleep(MODIFIER_RELEASE_S)

        dictation_was_active = self.dictation.believed
        if self.config.auto_stop_dictation and dictation_was_active:
            LOGGER.info("Process report: auto-stopping dictation")
            self.dictation.set_recording(False, send_key=True)
            self._sleep(AUTO_STOP_SETTLE_S)

        hardware_process = (
            request.source == SKIP_BACK and self.config.mapped_button(ActionKind.PROCESS_REPORT) == SKIP_BACK
        )
        if hardware_process and not dictation_was_active:
            LOGGER.info("Process report: %s already processed natively; skipping keystroke", SKIP_BACK)
        else:
            self.keyboard.activate_external_app()
            self._sleep(ACTIVATION_SETTLE_S)
            self.keyboard.emit_keystroke(self.config.process_report_keystroke)

        if self.config.scroll_to_bottom_on_process:
            self._smart_scroll()

        if self.config.show_impression:
            with self._lock:
                self.impression.start()

        if self.config.stroke_auto_create_note and stroke_case:
            self._request_critical_note(accession)

    def _smart_scroll(self) -> None:
        if not self.config.scrape_enabled:
            LOGGER.debug("Smart scroll skipped: scraping disabled")
            return
        with self._lock:
            report = self._last_report_text
        if not report:
            LOGGER.debug("Smart scroll skipped: no report scraped yet")
            return

        lines = len(report.split("\n"))
        page_downs = page_downs_for(lines, self.config.scroll_thresholds)
        LOGGER.info("Smart scroll: %s lines -> %s page down(s)", lines, page_downs)
        if page_downs <= 0:
            return
        self._sleep(SCROLL_SETTLE_S)
        self.keyboard.activate_external_app()
        self._sleep(SCROLL_SETTLE_S)
        self.keyboard.press_key("pagedown", page_downs)

    def _sign_report(self, request: ActionRequest) -> None:
        self._close_report()
        with self._lock:
            self.case.mark_signed()
            LOGGER.info("Marked %s as signed", self.case.accession)

        hardware_sign = request.source == CHECKMARK and self.config.mapped_button(ActionKind.SIGN_REPORT) == CHECKMARK
        if hardware_sign:
            LOGGER.info("Sign report: %s signs natively; skipping keystroke", CHECKMARK)
        else:
            self.keyboard.release_modifiers()
            self._sleep(MODIFIER_RELEASE_S)
            self.keyboard.activate_external_app()
            self._sleep(ACTIVATION_SETTLE_S)
            self.keyboard.emit_keystroke(self.config.sign_report_keystroke)

        with self._lock:
            self.impression.stop()

    def _discard_study(self, request: ActionRequest) -> None:
        self._close_report()
        with self._lock:
            accession = self.case.accession
            self.case.mark_discard_requested()

        try:
            if self.automation.click_discard_study():
                self.presenter.show_toast("Study discarded", 2000)
                if accession:
                    # Reported now; the poller must not report this case again.
                    self._notify(accession, StudyOutcome.CLOSED_UNSIGNED)
                    with self._lock:
                        self.case.clear()
                        self._reset_case_state()
                        self._discarded_accession = accession
            else:
                self.presenter.show_toast("Discard failed - try manually", 3000)
        finally:
            with self._lock:
                self.impression.stop()

    def _create_impression(self, request: ActionRequest) -> None:
        if request.source == SKIP_FORWARD:
            # The reporting app creates the impression natively for this button.
            return
        if self.automation.click_create_impression():
            self.presenter.show_toast("Create Impression", 1500)
        else:
            self.presenter.show_toast("Create Impression button not found", 2500)

    def _show_report(self, request: ActionRequest) -> None:
        with self._lock:
            if self._report_open:
                self._report_open = False
                self._report_shown_text = None
                close = True
            else:
                close = False
                report = self._last_report_text
                baseline = self._diff_baseline()
        if close:
            self.presenter.close_report()
            return

        if not report:
            self.presenter.show_toast("No report available (scraping may be disabled)")
            return

        self.presenter.show_report(report, baseline)
        with self._lock:
            self._report_open = True
            self._report_shown_text = report

    def _show_pick_lists(self, request: ActionRequest) -> None:
        if not self.config.pick_lists_enabled:
            self.presenter.show_toast("Pick lists are disabled", 2000)
            return
        if not self.config.pick_lists:
            self.presenter.show_toast("No pick lists configured", 2000)
            return

        with self._lock:
            description = self._last_description
        matching = matching_pick_lists(load_pick_lists(self.config.pick_lists), description)
        if not matching:
            study = f"'{description}'" if description else "no study"
            self.presenter.show_toast(f"No pick lists match {study}", 2500)
            return

        LOGGER.info("Pick lists: %s list(s) match %r", len(matching), description)
        self.presenter.show_pick_lists(matching, self.on_pick_list_item_selected)

    def _create_critical_note_action(self, request: ActionRequest) -> None:
        with self._lock:
            accession = self.case.accession
            description = self.case.context.description
        if not accession:
            self.presenter.show_toast("No study open", 2000)
            return
        # Requests queued by the app carry the accession they were raised for.
        if isinstance(request.payload, str) and request.payload != accession:
            LOGGER.info("Critical note for %s dropped: %s is now open", request.payload, accession)
            return

        created = self.critical_notes.ensure_note_for_accession(accession, description)
        with self._lock:
            if self.case.accession == accession:
                if self.critical_notes.has_note_for(accession):
                    self.case.context.critical_note_created = True
                elif self._critical_note_queued_for == accession:
                    # Let the poller ask again on its next cycle.
                    self._critical_note_queued_for = None
        if created:
            self.presenter.show_toast("Critical note created", 3000)

    def _insert_macros(self, request: ActionRequest) -> None:
        insertion = request.payload
        if not isinstance(insertion, MacroInsertion) or not insertion.text:
            return
        LOGGER.info("Inserting %s macro(s)", insertion.count)
        self.keyboard.activate_external_app()
        self._sleep(ACTIVATION_SETTLE_S)
        self.paster.paste(insertion.text)
        message = "Macro inserted" if insertion.count == 1 else f"{insertion.count} macros inserted"
        self.presenter.show_toast(message, 2000)

    def _insert_pick_list_text(self, request: ActionRequest) -> None:
        selection = request.payload
        if not isinstance(selection, PickListSelection):
            return
        text = self._resolve_pick_list_item(selection)
        LOGGER.info("Inserting pick list item from %r (%s chars)", selection.list_name, len(text))
        self.keyboard.activate_external_app()
        self._sleep(ACTIVATION_SETTLE_S)
        self.paster.paste(text)
        self.presenter.show_toast("Pick list item inserted", 1500)

    def _resolve_pick_list_item(self, selection: PickListSelection) -> str:
        pick_list: PickList | None = None
        if self.config.pick_lists_enabled:
            for candidate in load_pick_lists(self.config.pick_lists):
                if candidate.name == selection.list_name and candidate.enabled:
                    pick_list = candidate
                    break
        if pick_list is None:
            raise InvalidReferenceError(f"Pick list '{selection.list_name}' is missing or disabled")
        if not 0 <= selection.item_index < len(pick_list.items):
            raise InvalidReferenceError(
                f"Pick list '{selection.list_name}' has no item {selection.item_index + 1}"
            )
        return pick_list.items[selection.item_index]

    # Study poller
    def poll_once(self) -> bool:
        """Run one poll cycle. Returns False when skipped or abandoned."""
        with self.queue.idle_window() as idle:
            if not idle:
                LOGGER.debug("Poll skipped: action in progress")
                return False
            with self._lock:
                return self._poll_cycle()

    def _poll_cycle(self) -> bool:
        snapshot = self.oracle.probe_case_snapshot()
        if snapshot is None:
            LOGGER.debug("Poll abandoned: case snapshot unavailable")
            return False
        if self._still_showing_discarded(snapshot.accession):
            LOGGER.debug("Poll skipped: %s was discarded and is still on screen", self._discarded_accession)
            return False
        discard_visible = self.oracle.probe_discard_dialog_visible()

        report = snapshot.report_text
        self._last_report_text = report
        self._last_description = snapshot.description

        # The dialog disappears once confirmed, so attribute it before change detection.
        if discard_visible:
            LOGGER.info("Discard dialog seen for %s", self.case.accession)
            self.case.mark_discard_requested()

        transition = self.case.observe(snapshot.accession)
        if transition is not None:
            self._on_case_transition(transition, snapshot)

        context = self.case.context
        if context.description is None and snapshot.description:
            context.description = snapshot.description

        self._capture_baseline(report)
        self._update_report_popup(report)
        self._insert_pending_macros(snapshot)

        if self.config.show_clinical_history:
            state = evaluate_alerts(self.config, snapshot, self._protocol_flag)
            self.alerts.present(state, self.config, snapshot)

        if self.config.show_impression:
            self.impression.on_scrape(extract_impression(report), snapshot.drafted)

        if (
            self.config.stroke_auto_create_note
            and self._protocol_flag
            and context.process_pressed
            and self.case.is_open
        ):
            self._request_critical_note(self.case.accession)
        return True

    def _on_case_transition(self, transition: CaseTransition, snapshot: CaseSnapshot) -> None:
        if transition.previous and transition.outcome is not None:
            self._notify(transition.previous, transition.outcome)

        self._reset_case_state()
        self.impression.stop()
        self._close_report()

        if transition.closed:
            LOGGER.info("Study closed, no new study opened")
            if not self.config.always_show_alerts:
                self.alerts.hide()
            return

        accession = transition.current
        self.case.context.description = snapshot.description
        self.presenter.show_toast(f"New Study: {accession}", 3000)

        if self.config.macros_enabled and self.config.macros:
            LOGGER.info("Macros queued for %s (%r)", accession, snapshot.description)
            self._pending_macros_for = accession

        if self.config.stroke_detection_enabled:
            self._protocol_flag = self._classify_stroke(accession, snapshot.report_text)

    def _still_showing_discarded(self, accession: str | None) -> bool:
        discarded = self._discarded_accession
        if discarded is None:
            return False
        if (accession or "").strip() == discarded:
            return True
        self._discarded_accession = None
        return False

    def _reset_case_state(self) -> None:
        self._protocol_flag = False
        self._pending_macros_for = None
        self._critical_note_queued_for = None
        self.critical_notes.reset()

    def _classify_stroke(self, accession: str, report_text: str | None) -> bool:
        flagged = bool(self.oracle.probe_stroke_protocol(accession))
        if not flagged and self.config.stroke_detection_use_clinical_history:
            flagged = contains_stroke_keywords(extract_clinical_history(report_text))
        if flagged:
            LOGGER.info("Stroke protocol detected for %s", accession)
            self.presenter.show_toast("Stroke Protocol Detected", 4000)
        return flagged

    def _capture_baseline(self, report: str | None) -> None:
        context = self.case.context
        if not self.config.show_report_changes or not context.accession:
            return
        if context.baseline_report is not None or context.process_pressed:
            return
        # The report fills in progressively after opening; wait until it settles.
        if has_complete_report_marker(report):
            context.baseline_report = report
            LOGGER.info("Captured baseline report for %s (%s chars)", context.accession, len(report or ""))

    def _update_report_popup(self, report: str | None) -> None:
        if not self._report_open or not report or report == self._report_shown_text:
            return
        self._report_shown_text = report
        self.presenter.update_report(report, self._diff_baseline())

    def _insert_pending_macros(self, snapshot: CaseSnapshot) -> None:
        accession = self._pending_macros_for
        if not accession or accession != self.case.accession:
            return
        if not has_clinical_history_section(snapshot.report_text):
            return

        self._pending_macros_for = None
        insertion = build_macro_text(
            load_macros(self.config.macros),
            self.case.context.description,
            blank_lines_before=self.config.macros_blank_lines_before,
        )
        if insertion is None:
            LOGGER.info("No macros match %r", self.case.context.description)
            return
        self.enqueue(ActionRequest(ActionKind.INSERT_MACROS, SOURCE_INTERNAL, insertion))

    def _diff_baseline(self) -> str | None:
        context = self.case.context
        if self.config.show_report_changes and context.process_pressed:
            return context.baseline_report
        return None

    def _close_report(self) -> None:
        with self._lock:
            was_open = self._report_open
            self._report_open = False
            self._report_shown_text = None
        if was_open:
            self.presenter.close_report()

    # Critical notes
    def _create_critical_note(self) -> bool:
        return bool(self.automation.create_critical_note())

    def _request_critical_note(self, accession: str | None) -> None:
        with self._lock:
            if not accession or self._critical_note_queued_for == accession:
                return
            if self.critical_notes.has_note_for(accession):
                return
            self._critical_note_queued_for = accession
        LOGGER.info("Critical note due for stroke case %s", accession)
        self.enqueue(ActionRequest(ActionKind.CREATE_CRITICAL_NOTE, SOURCE_INTERNAL, accession))

    # Helpers
    def _notify(self, accession: str, outcome: StudyOutcome) -> None:
        LOGGER.info("Study %s ended: %s", accession, outcome.value)
        if self.notifier is None:
            return
        if outcome is StudyOutcome.SIGNED:
            self.notifier.study_signed(accession)
        else:
            self.notifier.study_closed_unsigned(accession)

    def _interval_for(self, rate: ScrapeRate) -> float:
        if rate is ScrapeRate.FAST:
            return self.config.fast_scrape_interval_ms / 1000.0
        if rate is ScrapeRate.POST_IMPRESSION:
            return self.config.post_impression_scrape_interval_ms / 1000.0
        return float(self.config.scrape_interval_seconds)

    def _current_rate(self) -> ScrapeRate:
        with self._lock:
            mode = self.impression.mode
        if mode is SearchMode.FAST:
            return ScrapeRate.FAST
        if mode is SearchMode.FOUND:
            return ScrapeRate.POST_IMPRESSION
        return ScrapeRate.NORMAL

    def _rearm_scrape(self, rate: ScrapeRate) -> None:
        self._scrape_timer.set_interval(self._interval_for(rate))

    def _refresh_ui(self) -> None:
        self.presenter.refresh_status(self.dictation.believed, self.current_accession)

    def _register_hotkeys(self) -> None:
        self.hotkeys.clear()
        for combo, kind in self.config.hotkey_bindings().items():
            try:
                self.hotkeys.register(combo, partial(self.trigger, kind, SOURCE_HOTKEY))
            except ValueError as exc:
                LOGGER.warning("Hotkey %s not registered: %s", combo, exc)


__all__ = ["Orchestrator", "page_downs_for"]
