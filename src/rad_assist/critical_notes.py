from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CriticalStudyEntry:
    accession: str
    description: str | None
    created_at: datetime


class CriticalNoteTracker:
    """Creates the follow-up note at most once per accession."""

    def __init__(self, create_note: Callable[[], bool]) -> None:
        self._create_note = create_note
        self._lock = threading.Lock()
        self._created_for: str | None = None
        self._entries: list[CriticalStudyEntry] = []

    @property
    def created_for(self) -> str | None:
        with self._lock:
            return self._created_for

    @property
    def entries(self) -> list[CriticalStudyEntry]:
        with self._lock:
            return list(self._entries)

    def has_note_for(self, accession: str | None) -> bool:
        with self._lock:
            return bool(accession) and self._created_for == accession

    def ensure_note_for_accession(self, accession: str | None, description: str | None = None) -> bool:
        """Return True only when this call created the note."""
        if not accession:
            LOGGER.debug("Critical note skipped: no accession")
            return False

        # Held across the side effect so concurrent callers cannot both create.
        with self._lock:
            if self._created_for == accession:
                LOGGER.debug("Critical note already created for %s", accession)
                return False

            if not self._create_note():
                LOGGER.warning("Critical note creation failed for %s", accession)
                return False

            self._created_for = accession
            self._entries.append(CriticalStudyEntry(accession, description, datetime.now()))
        LOGGER.info("Critical note created for %s", accession)
        return True

    def reset(self) -> None:
        with self._lock:
            self._created_for = None


__all__ = ["CriticalNoteTracker", "CriticalStudyEntry"]
