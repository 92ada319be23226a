"""Read-only probes of the reporting app's visible state.

The probes themselves (screen scraping, UI automation, registry reads) live
outside this package. Everything here treats a probe result as possibly
stale and ``None`` as "unknown".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaseSnapshot:
    accession: str | None = None
    report_text: str | None = None
    drafted: bool | None = None
    template_name: str | None = None
    description: str | None = None
    patient_gender: str | None = None


@runtime_checkable
class Oracle(Protocol):
    def probe_recording_active(self) -> bool | None:
        """Whether the reporting app is currently recording dictation."""

    def probe_case_snapshot(self) -> CaseSnapshot | None:
        """Scrape the open case; any field may be missing."""

    def probe_discard_dialog_visible(self) -> bool:
        """Whether the 'discard report?' confirmation is on screen."""


class SafeOracle:
    """Wraps an :class:`Oracle` so a failing probe reads as unknown."""

    def __init__(self, oracle: Oracle) -> None:
        self._oracle = oracle

    def probe_recording_active(self) -> bool | None:
        try:
            value = self._oracle.probe_recording_active()
        except Exception as exc:
            LOGGER.debug("Recording probe failed: %s", exc)
            return None
        return None if value is None else bool(value)

    def probe_case_snapshot(self) -> CaseSnapshot | None:
        try:
            return self._oracle.probe_case_snapshot()
        except Exception as exc:
            LOGGER.debug("Case snapshot probe failed: %s", exc)
            return None

    def probe_discard_dialog_visible(self) -> bool | None:
        try:
            return bool(self._oracle.probe_discard_dialog_visible())
        except Exception as exc:
            LOGGER.debug("Discard dialog probe failed: %s", exc)
            return None

    def probe_stroke_protocol(self, accession: str) -> bool | None:
        # Optional capability: not every oracle can see the worklist priority.
        probe = getattr(self._oracle, "probe_stroke_protocol", None)
        if probe is None:
            return None
        try:
            value = probe(accession)
        except Exception as exc:
            LOGGER.debug("Stroke protocol probe failed for %s: %s", accession, exc)
            return None
        return None if value is None else bool(value)


__all__ = ["CaseSnapshot", "Oracle", "SafeOracle"]
