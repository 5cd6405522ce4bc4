"""
Supabase (PostgreSQL) Assessment Store.

Remote tier for AssessmentStore. Same operations as the LocalCache, with
PostgreSQL storage via pg8000.

Stateless: no in-memory caching. Every read hits the DB.
Rows are snake_case; entities are built through their camelCase
from_dict so both tiers share one deserializer.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

import pg8000.native

# Allow importing the survey packages from the parent directory
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from survey_kernel.domain_types import Assessment, ParticipantResponse

logger = logging.getLogger(__name__)

_INIT_SQL = """
CREATE TABLE IF NOT EXISTS assessments (
    id                   TEXT PRIMARY KEY,
    organization_name    TEXT NOT NULL,
    consultant_id        TEXT,
    status               TEXT NOT NULL DEFAULT 'collecting',
    created              TIMESTAMPTZ DEFAULT NOW(),
    locked_at            TIMESTAMPTZ,
    access_code          TEXT,
    code_expiration      TIMESTAMPTZ,
    code_regenerated_at  TIMESTAMPTZ,
    departments          JSONB NOT NULL DEFAULT '[]',
    questions            JSONB NOT NULL DEFAULT '[]',
    question_source      JSONB,
    department_data      JSONB NOT NULL DEFAULT '[]',
    management_responses JSONB,
    employee_responses   JSONB,
    response_count       JSONB
);

CREATE TABLE IF NOT EXISTS participant_responses (
    id                     UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    assessment_id          TEXT NOT NULL REFERENCES assessments(id) ON DELETE CASCADE,
    participant_id         TEXT NOT NULL,
    role                   TEXT NOT NULL,
    department             TEXT,
    survey_id              TEXT,
    responses              JSONB NOT NULL DEFAULT '[]',
    current_question_index INTEGER NOT NULL DEFAULT 0,
    started_at             TIMESTAMPTZ,
    completed_at           TIMESTAMPTZ,
    UNIQUE(assessment_id, participant_id)
);

CREATE INDEX IF NOT EXISTS idx_responses_assessment
    ON participant_responses(assessment_id);
CREATE INDEX IF NOT EXISTS idx_responses_role
    ON participant_responses(assessment_id, role);
"""

ASSESSMENT_COLUMNS = [
    "id",
    "organization_name",
    "consultant_id",
    "status",
    "created",
    "locked_at",
    "access_code",
    "code_expiration",
    "code_regenerated_at",
    "departments",
    "questions",
    "question_source",
    "department_data",
    "management_responses",
    "employee_responses",
    "response_count",
]

RESPONSE_COLUMNS = [
    "assessment_id",
    "participant_id",
    "role",
    "department",
    "survey_id",
    "responses",
    "current_question_index",
    "started_at",
    "completed_at",
]

_ASSESSMENT_JSON = (
    "departments",
    "questions",
    "question_source",
    "department_data",
    "management_responses",
    "employee_responses",
    "response_count",
)


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------

def _json_value(value: Any, default: Any) -> Any:
    """JSONB columns may come back parsed or as text; absent means default."""
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value) if value else default
    return value


def assessment_to_row(assessment: Assessment) -> Dict[str, Any]:
    data = assessment.to_dict()
    row = {
        "id": assessment.id,
        "organization_name": assessment.organization_name,
        "consultant_id": assessment.consultant_id,
        "status": assessment.status,
        "created": assessment.created,
        "locked_at": assessment.locked_at,
        "access_code": assessment.access_code,
        "code_expiration": assessment.code_expiration,
        "code_regenerated_at": assessment.code_regenerated_at,
        "departments": data["departments"],
        "questions": data["questions"],
        "question_source": data["questionSource"],
        "department_data": data["departmentData"],
        "management_responses": data["managementResponses"],
        "employee_responses": data["employeeResponses"],
        "response_count": data["responseCount"],
    }
    for column in _ASSESSMENT_JSON:
        row[column] = json.dumps(row[column])
    return row


def row_to_assessment(row: Dict[str, Any]) -> Assessment:
    return Assessment.from_dict({
        "id": row["id"],
        "organizationName": row.get("organization_name") or "",
        "consultantId": row.get("consultant_id") or "",
        "status": row.get("status") or "collecting",
        "created": row.get("created"),
        "lockedAt": row.get("locked_at"),
        "accessCode": row.get("access_code") or "",
        "codeExpiration": row.get("code_expiration"),
        "codeRegeneratedAt": row.get("code_regenerated_at"),
        "departments": _json_value(row.get("departments"), []),
        "questions": _json_value(row.get("questions"), []),
        "questionSource": _json_value(row.get("question_source"), None),
        "departmentData": _json_value(row.get("department_data"), []),
        "managementResponses": _json_value(row.get("management_responses"), None),
        "employeeResponses": _json_value(row.get("employee_responses"), None),
        "responseCount": _json_value(row.get("response_count"), {}),
    })


def response_to_row(response: ParticipantResponse) -> Dict[str, Any]:
    """participant_id is a plain column; the table's own UUID id is never set here."""
    return {
        "assessment_id": response.assessment_id,
        "participant_id": response.participant_id,
        "role": response.role,
        "department": response.department,
        "survey_id": response.survey_id,
        "responses": json.dumps([a.to_dict() for a in response.responses]),
        "current_question_index": response.current_question_index,
        "started_at": response.started_at,
        "completed_at": response.completed_at,
    }


def row_to_response(row: Dict[str, Any]) -> ParticipantResponse:
    return ParticipantResponse.from_dict({
        "assessmentId": row["assessment_id"],
        "participantId": row["participant_id"],
        "role": row.get("role"),
        "department": row.get("department") or "",
        "surveyId": row.get("survey_id") or "",
        "responses": _json_value(row.get("responses"), []),
        "currentQuestionIndex": row.get("current_question_index") or 0,
        "startedAt": row.get("started_at"),
        "completedAt": row.get("completed_at"),
    })


def parse_database_url(database_url: str) -> Dict[str, Any]:
    # Manual parser: urlparse chokes on special chars ([], @) in passwords
    url = database_url
    # Strip scheme (postgresql:// or postgres://)
    url = url.split("://", 1)[1]
    # Split at LAST @ to separate credentials from host (password may contain @)
    at_idx = url.rfind("@")
    credentials = url[:at_idx]
    host_part = url[at_idx + 1:]
    # Split credentials at FIRST : to get user and password
    colon_idx = credentials.find(":")
    user = credentials[:colon_idx]
    password = credentials[colon_idx + 1:]
    # Split host_part into host:port/database
    host_port, database = host_part.split("/", 1)
    host, port_str = host_port.rsplit(":", 1)
    return {
        "user": user,
        "password": password,
        "host": host,
        "port": int(port_str),
        "database": database.split("?", 1)[0] or "postgres",
    }


class SupabaseStore:
    """
    PostgreSQL-backed remote store for Supabase.

    Thread-safe via connection-per-operation pattern. Construction never
    touches the network; call ensure_schema() once the database is known
    to be reachable.
    """

    def __init__(self, database_url: str, connect_timeout: float = 3.0) -> None:
        self._database_url = database_url
        self._connect_timeout = connect_timeout

    def _get_conn(self, timeout: Optional[float] = None):
        params = parse_database_url(self._database_url)
        return pg8000.native.Connection(
            ssl_context=True,
            timeout=timeout,
            **params,
        )

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def is_available(self) -> bool:
        """Bounded trivial query. Never raises."""
        conn = None
        try:
            conn = self._get_conn(timeout=self._connect_timeout)
            conn.run("SELECT id FROM assessments LIMIT 1")
            return True
        except Exception as exc:
            logger.debug("Remote store probe failed: %s", exc)
            return False
        finally:
            if conn is not None:
                try:
                    conn.close()
                except Exception as exc:
                    logger.debug("Closing probe connection failed: %s", exc)

    def ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            # pg8000 native runs one statement per .run(), so execute them sequentially
            for stmt in _INIT_SQL.split(";")[:-1]:
                if stmt.strip():
                    conn.run(stmt)
        finally:
            conn.close()

    def _select(self, sql: str, columns: List[str], **params: Any) -> List[Dict[str, Any]]:
        conn = self._get_conn()
        try:
            rows = conn.run(sql, **params)
        finally:
            conn.close()
        return [dict(zip(columns, row)) for row in rows]

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------

    def list_assessments(self) -> List[Assessment]:
        """Newest first."""
        rows = self._select(
            f"SELECT {', '.join(ASSESSMENT_COLUMNS)} FROM assessments ORDER BY created DESC",
            ASSESSMENT_COLUMNS,
        )
        return [row_to_assessment(r) for r in rows]

    def get_assessment(self, assessment_id: str) -> Optional[Assessment]:
        rows = self._select(
            f"SELECT {', '.join(ASSESSMENT_COLUMNS)} FROM assessments WHERE id = :aid",
            ASSESSMENT_COLUMNS,
            aid=assessment_id,
        )
        return row_to_assessment(rows[0]) if rows else None

    def save_assessment(self, assessment: Assessment) -> None:
        """Upsert by id; last writer wins."""
        row = assessment_to_row(assessment)
        updates = ",\n                    ".join(
            f"{c} = EXCLUDED.{c}" for c in ASSESSMENT_COLUMNS if c != "id"
        )
        conn = self._get_conn()
        try:
            conn.run(
                f"""
                INSERT INTO assessments ({', '.join(ASSESSMENT_COLUMNS)})
                VALUES ({', '.join(':' + c for c in ASSESSMENT_COLUMNS)})
                ON CONFLICT (id) DO UPDATE SET
                    {updates}
                """,
                **row,
            )
        finally:
            conn.close()

    def delete_assessment(self, assessment_id: str) -> bool:
        """Deletes the assessment's responses first, then the assessment."""
        conn = self._get_conn()
        try:
            conn.run("DELETE FROM participant_responses WHERE assessment_id = :aid", aid=assessment_id)
            rows = conn.run("DELETE FROM assessments WHERE id = :aid RETURNING id", aid=assessment_id)
            return bool(rows)
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def list_responses(
        self,
        assessment_id: Optional[str] = None,
        role: Optional[str] = None,
    ) -> List[ParticipantResponse]:
        clauses = []
        params: Dict[str, Any] = {}
        if assessment_id is not None:
            clauses.append("assessment_id = :aid")
            params["aid"] = assessment_id
        if role is not None:
            clauses.append("role = :role")
            params["role"] = role
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._select(
            f"SELECT {', '.join(RESPONSE_COLUMNS)} FROM participant_responses {where} "
            f"ORDER BY started_at",
            RESPONSE_COLUMNS,
            **params,
        )
        return [row_to_response(r) for r in rows]

    def add_response(self, response: ParticipantResponse) -> None:
        """Upsert on (assessment_id, participant_id)."""
        row = response_to_row(response)
        updates = ",\n                    ".join(
            f"{c} = EXCLUDED.{c}"
            for c in RESPONSE_COLUMNS if c not in ("assessment_id", "participant_id")
        )
        conn = self._get_conn()
        try:
            conn.run(
                f"""
                INSERT INTO participant_responses ({', '.join(RESPONSE_COLUMNS)})
                VALUES ({', '.join(':' + c for c in RESPONSE_COLUMNS)})
                ON CONFLICT (assessment_id, participant_id) DO UPDATE SET
                    {updates}
                """,
                **row,
            )
        finally:
            conn.close()

    def update_response_department(
        self, assessment_id: str, participant_id: str, department: str
    ) -> bool:
        conn = self._get_conn()
        try:
            rows = conn.run(
                """
                UPDATE participant_responses SET department = :dept
                WHERE assessment_id = :aid AND participant_id = :pid
                RETURNING participant_id
                """,
                dept=department,
                aid=assessment_id,
                pid=participant_id,
            )
            return bool(rows)
        finally:
            conn.close()

    def delete_response(self, assessment_id: str, participant_id: str) -> bool:
        conn = self._get_conn()
        try:
            rows = conn.run(
                """
                DELETE FROM participant_responses
                WHERE assessment_id = :aid AND participant_id = :pid
                RETURNING participant_id
                """,
                aid=assessment_id,
                pid=participant_id,
            )
            return bool(rows)
        finally:
            conn.close()
