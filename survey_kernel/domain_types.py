"""
Survey Kernel — Core Domain Types

Pure data. No persistence, no aggregation logic.
Scores are floats on the 1-10 slider scale. Timestamps are timezone-aware
UTC datetimes, serialized as ISO-8601 strings.

Serialized shape (to_dict / from_dict) is the client cache layout:
camelCase keys, embedded departments, questions and aggregates.

────────────────────────────────────────────────
DOMAIN GLOSSARY
────────────────────────────────────────────────

Assessment:
    One organization's survey campaign, with lifecycle status and
    access codes.

Department:
    A named organizational unit with its own role-scoped access codes.
    Identified by a short slug; references always store the full slug.

Participant Response:
    One respondent's in-progress or completed set of answers, tagged
    with role and department.

Role Aggregate:
    Category-level and overall average scores for one role within
    some scope (assessment or department).

Perception Gap:
    Signed difference between management and employee scores for one
    category, with a significance tier.

────────────────────────────────────────────────
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from .constants import (
    ROLE_EMPLOYEE,
    ROLE_MANAGEMENT,
    STATUS_COLLECTING,
    STATUS_LOCKED,
)


# ── Timestamps ────────────────────────────────────────────────

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialise a datetime to ISO-8601, or None."""
    if value is None:
        return None
    return value.isoformat()


def parse_iso(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string (or pass through a datetime).

    Naive values are taken to be UTC. A trailing 'Z' is accepted.
    Empty values yield None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _empty_counts() -> Dict[str, int]:
    return {ROLE_MANAGEMENT: 0, ROLE_EMPLOYEE: 0}


# ── Survey content ────────────────────────────────────────────

@dataclass
class Question:
    """A single survey question, tagged with the category it feeds."""

    id: str
    text: str
    category: str
    order: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "category": self.category,
            "order": self.order,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        return cls(
            id=data["id"],
            text=data.get("text", ""),
            category=data.get("category", ""),
            order=int(data.get("order", 0) or 0),
        )


@dataclass
class Department:
    """Organizational unit inside one assessment."""

    id: str
    name: str
    management_code: str = ""
    employee_code: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "managementCode": self.management_code,
            "employeeCode": self.employee_code,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Department":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            management_code=data.get("managementCode", "") or "",
            employee_code=data.get("employeeCode", "") or "",
        )


@dataclass
class Answer:
    """One answered (or skipped) question. score=None means skipped."""

    question_id: str
    score: Optional[float] = None
    category: str = ""

    def to_dict(self) -> dict:
        return {
            "questionId": self.question_id,
            "score": self.score,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Answer":
        # Older clients wrote the slider position under "value".
        score = data.get("score", data.get("value"))
        return cls(
            question_id=data.get("questionId", ""),
            score=float(score) if score is not None else None,
            category=data.get("category", "") or "",
        )


@dataclass
class ParticipantResponse:
    """
    One participant's session against an assessment.

    Identity is (assessment_id, participant_id). participant_id is an
    application token and is never the remote store's primary key.
    """

    assessment_id: str
    participant_id: str
    role: str
    department: str = ""
    survey_id: str = ""
    responses: List[Answer] = field(default_factory=list)
    current_question_index: int = 0
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.assessment_id, self.participant_id)

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None

    def copy(self) -> "ParticipantResponse":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "assessmentId": self.assessment_id,
            "participantId": self.participant_id,
            "role": self.role,
            "department": self.department,
            "surveyId": self.survey_id,
            "responses": [a.to_dict() for a in self.responses],
            "currentQuestionIndex": self.current_question_index,
            "startedAt": to_iso(self.started_at),
            "completedAt": to_iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ParticipantResponse":
        return cls(
            assessment_id=data["assessmentId"],
            participant_id=data["participantId"],
            role=data.get("role", ROLE_EMPLOYEE),
            department=data.get("department") or "",
            survey_id=data.get("surveyId", "") or "",
            responses=[Answer.from_dict(a) for a in data.get("responses") or []],
            current_question_index=int(data.get("currentQuestionIndex", 0) or 0),
            started_at=parse_iso(data.get("startedAt")) or utc_now(),
            completed_at=parse_iso(data.get("completedAt")),
        )


# ── Derived aggregates (caches, never sources of truth) ───────

@dataclass
class CategoryAverage:
    category: str
    average: float
    responses: int

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "average": self.average,
            "responses": self.responses,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CategoryAverage":
        return cls(
            category=data.get("category", ""),
            average=float(data.get("average", 0.0) or 0.0),
            responses=int(data.get("responses", 0) or 0),
        )


@dataclass
class RoleAggregate:
    """Averages for one role within one scope."""

    category_averages: List[CategoryAverage] = field(default_factory=list)
    overall_average: float = 0.0
    response_count: int = 0

    def category(self, name: str) -> Optional[CategoryAverage]:
        for cat in self.category_averages:
            if cat.category == name:
                return cat
        return None

    def to_dict(self) -> dict:
        return {
            "categoryAverages": [c.to_dict() for c in self.category_averages],
            "overallAverage": self.overall_average,
            "responseCount": self.response_count,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "RoleAggregate":
        if not data:
            return cls()
        return cls(
            category_averages=[
                CategoryAverage.from_dict(c) for c in data.get("categoryAverages") or []
            ],
            overall_average=float(data.get("overallAverage", 0.0) or 0.0),
            response_count=int(data.get("responseCount", 0) or 0),
        )


@dataclass(frozen=True)
class PerceptionGap:
    category: str
    management_score: float
    employee_score: float
    gap: float
    direction: str      # positive | negative | aligned
    significance: str   # high | medium | low

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "managementScore": self.management_score,
            "employeeScore": self.employee_score,
            "gap": self.gap,
            "gapDirection": self.direction,
            "significance": self.significance,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PerceptionGap":
        return cls(
            category=data.get("category", ""),
            management_score=float(data.get("managementScore", 0.0) or 0.0),
            employee_score=float(data.get("employeeScore", 0.0) or 0.0),
            gap=float(data.get("gap", 0.0) or 0.0),
            direction=data.get("gapDirection", "aligned"),
            significance=data.get("significance", "low"),
        )


@dataclass
class DepartmentAggregate:
    department: str
    department_name: str
    management: RoleAggregate = field(default_factory=RoleAggregate)
    employee: RoleAggregate = field(default_factory=RoleAggregate)
    perception_gaps: List[PerceptionGap] = field(default_factory=list)
    response_count: Dict[str, int] = field(default_factory=_empty_counts)

    def to_dict(self) -> dict:
        return {
            "department": self.department,
            "departmentName": self.department_name,
            "managementResponses": self.management.to_dict(),
            "employeeResponses": self.employee.to_dict(),
            "perceptionGaps": [g.to_dict() for g in self.perception_gaps],
            "responseCount": dict(self.response_count),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DepartmentAggregate":
        counts = _empty_counts()
        counts.update(data.get("responseCount") or {})
        return cls(
            department=data.get("department", ""),
            department_name=data.get("departmentName", ""),
            management=RoleAggregate.from_dict(data.get("managementResponses")),
            employee=RoleAggregate.from_dict(data.get("employeeResponses")),
            perception_gaps=[
                PerceptionGap.from_dict(g) for g in data.get("perceptionGaps") or []
            ],
            response_count=counts,
        )


# ── Assessment ────────────────────────────────────────────────

@dataclass
class Assessment:
    """
    An organization's survey campaign.

    Owns its departments and questions by value. The aggregate fields are
    recomputed from responses and must be treated as stale whenever
    responses change.
    """

    id: str
    organization_name: str
    consultant_id: str
    status: str = STATUS_COLLECTING
    created: datetime = field(default_factory=utc_now)
    locked_at: Optional[datetime] = None
    access_code: str = ""
    code_expiration: Optional[datetime] = None
    code_regenerated_at: Optional[datetime] = None
    departments: List[Department] = field(default_factory=list)
    questions: List[Question] = field(default_factory=list)
    question_source: Dict[str, Any] = field(default_factory=lambda: {"source": "default"})
    management_responses: RoleAggregate = field(default_factory=RoleAggregate)
    employee_responses: RoleAggregate = field(default_factory=RoleAggregate)
    response_count: Dict[str, int] = field(default_factory=_empty_counts)
    department_data: List[DepartmentAggregate] = field(default_factory=list)

    @property
    def is_locked(self) -> bool:
        return self.status == STATUS_LOCKED

    def department_ids(self) -> List[str]:
        return [d.id for d in self.departments]

    def find_department(self, department_id: str) -> Optional[Department]:
        for dept in self.departments:
            if dept.id == department_id:
                return dept
        return None

    def copy(self) -> "Assessment":
        """Deep-copy so callers never mutate a stored instance."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organizationName": self.organization_name,
            "consultantId": self.consultant_id,
            "status": self.status,
            "created": to_iso(self.created),
            "lockedAt": to_iso(self.locked_at),
            "accessCode": self.access_code,
            "codeExpiration": to_iso(self.code_expiration),
            "codeRegeneratedAt": to_iso(self.code_regenerated_at),
            "departments": [d.to_dict() for d in self.departments],
            "questions": [q.to_dict() for q in self.questions],
            "questionSource": dict(self.question_source),
            "managementResponses": self.management_responses.to_dict(),
            "employeeResponses": self.employee_responses.to_dict(),
            "responseCount": dict(self.response_count),
            "departmentData": [d.to_dict() for d in self.department_data],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Assessment":
        counts = _empty_counts()
        counts.update(data.get("responseCount") or {})
        return cls(
            id=data["id"],
            organization_name=data.get("organizationName", ""),
            consultant_id=data.get("consultantId", ""),
            status=data.get("status", STATUS_COLLECTING),
            created=parse_iso(data.get("created")) or utc_now(),
            locked_at=parse_iso(data.get("lockedAt")),
            access_code=data.get("accessCode", "") or "",
            code_expiration=parse_iso(data.get("codeExpiration")),
            code_regenerated_at=parse_iso(data.get("codeRegeneratedAt")),
            departments=[Department.from_dict(d) for d in data.get("departments") or []],
            questions=[Question.from_dict(q) for q in data.get("questions") or []],
            question_source=data.get("questionSource") or {"source": "default"},
            management_responses=RoleAggregate.from_dict(data.get("managementResponses")),
            employee_responses=RoleAggregate.from_dict(data.get("employeeResponses")),
            response_count=counts,
            department_data=[
                DepartmentAggregate.from_dict(d) for d in data.get("departmentData") or []
            ],
        )


# ── Department references ─────────────────────────────────────

CAUSE_ROLE = "role"
CAUSE_TRUNCATION = "truncation"
CAUSE_UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class ValidDepartment:
    """Department value that names a configured department (or the implicit group)."""

    id: str
    is_valid: bool = field(default=True, init=False)


@dataclass(frozen=True)
class CorruptedDepartment:
    """
    Department value that does not name a configured department.

    suggested_id is the repair target when one can be determined.
    """

    raw_value: str
    cause: str   # role | truncation | unrecognized
    suggested_id: Optional[str] = None
    is_valid: bool = field(default=False, init=False)

    @property
    def counts_as_corrupted(self) -> bool:
        """Unrecognized values are flagged but not counted as corruption."""
        return self.cause in (CAUSE_ROLE, CAUSE_TRUNCATION)


DepartmentRef = Union[ValidDepartment, CorruptedDepartment]
