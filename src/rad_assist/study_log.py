from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from rad_assist.case import StudyOutcome
from rad_assist.config import APP_DIR

LOGGER = logging.getLogger(__name__)

STUDY_LOG_DB_PATH = APP_DIR / "studies.sqlite3"


@dataclass
class StudyOutcomeRecord:
    id: int
    created_at: str
    accession: str
    outcome: StudyOutcome


class StudyOutcomeStore:
    """Persists how each study ended; doubles as the default study notifier."""

    def __init__(self, db_path: Path = STUDY_LOG_DB_PATH) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout = 5000")
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS study_outcomes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    created_at TEXT NOT NULL,
                    accession TEXT NOT NULL,
                    outcome TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_study_outcomes_accession
                ON study_outcomes (accession)
                """
            )

    def record(self, accession: str, outcome: StudyOutcome) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO study_outcomes (created_at, accession, outcome) VALUES (?, ?, ?)",
                (now, accession, outcome.value),
            )
        LOGGER.info("Study %s recorded as %s", accession, outcome.value)

    def study_signed(self, accession: str) -> None:
        self.record(accession, StudyOutcome.SIGNED)

    def study_closed_unsigned(self, accession: str) -> None:
        self.record(accession, StudyOutcome.CLOSED_UNSIGNED)

    def recent(self, limit: int = 200) -> list[StudyOutcomeRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, created_at, accession, outcome
                FROM study_outcomes
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()

        return [
            StudyOutcomeRecord(
                id=int(row[0]),
                created_at=row[1],
                accession=row[2],
                outcome=StudyOutcome(row[3]),
            )
            for row in rows
        ]

    def count(self, outcome: StudyOutcome | None = None) -> int:
        with self._connect() as conn:
            if outcome is None:
                row = conn.execute("SELECT COUNT(*) FROM study_outcomes").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM study_outcomes WHERE outcome = ?",
                    (outcome.value,),
                ).fetchone()
        return int(row[0] if row else 0)


__all__ = ["STUDY_LOG_DB_PATH", "StudyOutcomeRecord", "StudyOutcomeStore"]
