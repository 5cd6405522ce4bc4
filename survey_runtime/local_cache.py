"""
Local Cache — sqlite3-backed key-value cache.

Layout (one row per key, JSON text values):
  organizational-assessments  → JSON array of assessments
  organizational-responses    → JSON array of participant responses
  demo-assessment-deleted     → "true" when the demo must not be recreated

Same entity operations as the remote adapter. Corrupted JSON is logged
and read as an empty collection; it never raises.
Default database is ':memory:', so the cache lives only as long as the
process (or the client) that owns it.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from survey_kernel.constants import (
    ASSESSMENTS_KEY,
    DEMO_DELETED_FLAG_KEY,
    RESPONSES_KEY,
)
from survey_kernel.domain_types import Assessment, ParticipantResponse
from survey_kernel.invariants import StoreError

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT
);
"""


class CacheUnavailableError(StoreError):
    """Raised when the cache has been closed or cannot be opened."""


class LocalCache:
    """
    Same-process cache for assessments and responses.

    One connection shared across threads (FastAPI runs sync routes on a
    worker pool); every access holds the cache lock. All writes are
    transaction-wrapped.
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        self._conn: Optional[sqlite3.Connection] = sqlite3.connect(
            self._db_path, check_same_thread=False
        )
        self._lock = threading.RLock()
        if self._db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA_SQL)

    @property
    def available(self) -> bool:
        return self._conn is not None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise CacheUnavailableError("Local cache is closed")
        return self._conn

    # ------------------------------------------------------------------
    # Raw key-value access
    # ------------------------------------------------------------------

    def get_raw(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._connection().execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        return row[0] if row else None

    def set_raw(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            conn = self._connection()
            with conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                                   updated_at = excluded.updated_at
                    """,
                    (key, value, now),
                )

    def remove(self, key: str) -> None:
        with self._lock:
            conn = self._connection()
            with conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def read_collection(self, key: str) -> List[dict]:
        """
        Parse a JSON array stored under key.
        Missing, unparsable or non-array values read as [].
        """
        raw = self.get_raw(key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Corrupted cache entry %r ignored: %s", key, exc)
            return []
        if not isinstance(data, list):
            logger.warning("Cache entry %r is not a list; ignored", key)
            return []
        return data

    def write_collection(self, key: str, items: List[Any]) -> None:
        self.set_raw(key, json.dumps(items, ensure_ascii=False))

    # ------------------------------------------------------------------
    # Flags
    # ------------------------------------------------------------------

    def get_flag(self, key: str) -> bool:
        return self.get_raw(key) == "true"

    def set_flag(self, key: str, value: bool = True) -> None:
        if value:
            self.set_raw(key, "true")
        else:
            self.remove(key)

    @property
    def demo_deleted(self) -> bool:
        return self.get_flag(DEMO_DELETED_FLAG_KEY)

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------

    def _load_assessments(self) -> List[Assessment]:
        out: List[Assessment] = []
        for item in self.read_collection(ASSESSMENTS_KEY):
            try:
                out.append(Assessment.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable cached assessment: %s", exc)
        return out

    def list_assessments(self) -> List[Assessment]:
        return self._load_assessments()

    def get_assessment(self, assessment_id: str) -> Optional[Assessment]:
        for assessment in self._load_assessments():
            if assessment.id == assessment_id:
                return assessment
        return None

    def save_assessment(self, assessment: Assessment) -> None:
        """Upsert by id, keeping list position for existing entries."""
        with self._lock:
            items = self._load_assessments()
            for i, existing in enumerate(items):
                if existing.id == assessment.id:
                    items[i] = assessment
                    break
            else:
                items.append(assessment)
            self.write_collection(ASSESSMENTS_KEY, [a.to_dict() for a in items])

    def delete_assessment(self, assessment_id: str) -> bool:
        """Responses first, then the assessment. Returns True if it existed."""
        with self._lock:
            responses = [r for r in self._load_responses() if r.assessment_id != assessment_id]
            self.write_collection(RESPONSES_KEY, [r.to_dict() for r in responses])
            items = self._load_assessments()
            kept = [a for a in items if a.id != assessment_id]
            self.write_collection(ASSESSMENTS_KEY, [a.to_dict() for a in kept])
        return len(kept) != len(items)

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def _load_responses(self) -> List[ParticipantResponse]:
        out: List[ParticipantResponse] = []
        for item in self.read_collection(RESPONSES_KEY):
            try:
                out.append(ParticipantResponse.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable cached response: %s", exc)
        return out

    def list_responses(
        self,
        assessment_id: Optional[str] = None,
        role: Optional[str] = None,
    ) -> List[ParticipantResponse]:
        return [
            r for r in self._load_responses()
            if (assessment_id is None or r.assessment_id == assessment_id)
            and (role is None or r.role == role)
        ]

    def add_response(self, response: ParticipantResponse) -> None:
        """Upsert by (assessment_id, participant_id)."""
        self.add_responses([response])

    def add_responses(self, responses: List[ParticipantResponse]) -> None:
        """Bulk upsert in one write."""
        with self._lock:
            items = self._load_responses()
            index = {r.key: i for i, r in enumerate(items)}
            for response in responses:
                if response.key in index:
                    items[index[response.key]] = response
                else:
                    index[response.key] = len(items)
                    items.append(response)
            self.write_collection(RESPONSES_KEY, [r.to_dict() for r in items])

    def update_response_department(
        self, assessment_id: str, participant_id: str, department: str
    ) -> bool:
        with self._lock:
            items = self._load_responses()
            found = False
            for response in items:
                if response.key == (assessment_id, participant_id):
                    response.department = department
                    found = True
            if found:
                self.write_collection(RESPONSES_KEY, [r.to_dict() for r in items])
        return found

    def delete_response(self, assessment_id: str, participant_id: str) -> bool:
        with self._lock:
            items = self._load_responses()
            kept = [r for r in items if r.key != (assessment_id, participant_id)]
            if len(kept) == len(items):
                return False
            self.write_collection(RESPONSES_KEY, [r.to_dict() for r in kept])
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clear(self) -> None:
        with self._lock:
            conn = self._connection()
            with conn:
                conn.execute("DELETE FROM kv_store")

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
