from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

LOGGER = logging.getLogger(__name__)


class StudyOutcome(str, Enum):
    SIGNED = "signed"
    CLOSED_UNSIGNED = "closed_unsigned"


@dataclass
class CaseContext:
    accession: str | None = None
    description: str | None = None
    signed: bool = False
    discard_requested: bool = False
    baseline_report: str | None = None
    process_pressed: bool = False
    critical_note_created: bool = False


@dataclass(frozen=True)
class CaseTransition:
    previous: str | None
    current: str | None
    outcome: StudyOutcome | None

    @property
    def closed(self) -> bool:
        return self.current is None


class CaseTracker:
    """Detects accession changes and decides how the previous case ended.

    Not thread-safe on its own; the orchestrator serializes access.
    """

    def __init__(self) -> None:
        self.context = CaseContext()

    @property
    def is_open(self) -> bool:
        return bool(self.context.accession)

    @property
    def accession(self) -> str | None:
        return self.context.accession

    def observe(self, accession: str | None) -> CaseTransition | None:
        current = accession.strip() if accession and accession.strip() else None
        previous = self.context.accession

        if current is not None:
            changed = current != previous
        else:
            changed = previous is not None
        if not changed:
            return None

        outcome = self._outcome_for(self.context) if previous else None
        LOGGER.info("Study change detected: %r -> %r", previous, current or "(empty)")
        self.context = CaseContext(accession=current)
        return CaseTransition(previous=previous, current=current, outcome=outcome)

    def clear(self) -> str | None:
        """Forget the live case without emitting an outcome for it."""
        previous = self.context.accession
        self.context = CaseContext()
        return previous

    def mark_signed(self) -> None:
        self.context.signed = True

    def mark_discard_requested(self) -> None:
        self.context.discard_requested = True

    def mark_process_pressed(self) -> None:
        self.context.process_pressed = True

    @staticmethod
    def _outcome_for(context: CaseContext) -> StudyOutcome:
        if context.signed:
            return StudyOutcome.SIGNED
        if context.discard_requested:
            return StudyOutcome.CLOSED_UNSIGNED
        # Nothing observed: assume the user signed from the reporting app itself.
        return StudyOutcome.SIGNED


__all__ = ["CaseContext", "CaseTracker", "CaseTransition", "StudyOutcome"]
