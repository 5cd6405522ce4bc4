"""
Demo Assessment — seeded sample organization.

Four departments with deliberately different profiles:
  Engineering   strong and aligned
  Sales         solid management, weaker employee view of leadership
  Marketing     middling, mostly aligned
  Operations    management overconfident on every category (critical)

Scores are base + zero-sum offsets per question, so every category mean
equals its configured base exactly. The builder is pure; persisting the
result and honouring the do-not-recreate flag is the store's job.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from survey_kernel.constants import (
    DEMO_ACCESS_CODE,
    DEMO_ASSESSMENT_ID,
    ROLE_EMPLOYEE,
    ROLE_MANAGEMENT,
    SCORE_MAX,
    SCORE_MIN,
)
from survey_kernel.domain_types import (
    Answer,
    Assessment,
    Department,
    ParticipantResponse,
    Question,
    utc_now,
)
from survey_kernel.identifiers import build_department

from .deterministic_rng import DeterministicRNG
from .question_templates import INNOVATION, LEADERSHIP, OPERATIONS, VISION, default_template

DEMO_ORGANIZATION_NAME = "Demo Organization"
DEMO_CONSULTANT_ID = "demo@consultant.com"
DEMO_SEED = 2025

MANAGEMENT_PER_DEPARTMENT = 3
EMPLOYEES_PER_DEPARTMENT = 6

# department name -> role -> category -> base score
DEMO_PROFILES: Dict[str, Dict[str, Dict[str, int]]] = {
    "Engineering": {
        ROLE_MANAGEMENT: {VISION: 9, LEADERSHIP: 8, OPERATIONS: 8, INNOVATION: 8},
        ROLE_EMPLOYEE: {VISION: 8, LEADERSHIP: 8, OPERATIONS: 8, INNOVATION: 7},
    },
    "Sales": {
        ROLE_MANAGEMENT: {VISION: 8, LEADERSHIP: 8, OPERATIONS: 7, INNOVATION: 7},
        ROLE_EMPLOYEE: {VISION: 6, LEADERSHIP: 5, OPERATIONS: 6, INNOVATION: 7},
    },
    "Marketing": {
        ROLE_MANAGEMENT: {VISION: 7, LEADERSHIP: 7, OPERATIONS: 7, INNOVATION: 6},
        ROLE_EMPLOYEE: {VISION: 6, LEADERSHIP: 6, OPERATIONS: 5, INNOVATION: 6},
    },
    "Operations": {
        ROLE_MANAGEMENT: {VISION: 8, LEADERSHIP: 8, OPERATIONS: 7, INNOVATION: 8},
        ROLE_EMPLOYEE: {VISION: 4, LEADERSHIP: 4, OPERATIONS: 4, INNOVATION: 5},
    },
}

# fixed suffix keeps demo department codes stable across runs
_DEMO_CODE_MS = 2025


def _clamp(score: int) -> int:
    return max(SCORE_MIN, min(SCORE_MAX, score))


def _demo_departments() -> List[Department]:
    departments: List[Department] = []
    for name in DEMO_PROFILES:
        departments.append(
            build_department(DEMO_ORGANIZATION_NAME, name, departments, now_ms=_DEMO_CODE_MS)
        )
    return departments


def _role_responses(
    rng: DeterministicRNG,
    department: Department,
    role: str,
    count: int,
    questions: List[Question],
    profile: Dict[str, int],
    started: datetime,
) -> List[ParticipantResponse]:
    # answers[participant] built question by question so each question's
    # offsets sum to zero across participants
    answers: List[List[Answer]] = [[] for _ in range(count)]
    for question in questions:
        base = profile[question.category]
        for i, offset in enumerate(rng.zero_sum_offsets(count)):
            answers[i].append(Answer(question.id, float(_clamp(base + offset)), question.category))

    prefix = "mgmt" if role == ROLE_MANAGEMENT else "emp"
    out: List[ParticipantResponse] = []
    for i in range(count):
        begin = started + timedelta(hours=i)
        out.append(ParticipantResponse(
            assessment_id=DEMO_ASSESSMENT_ID,
            participant_id=f"{prefix}-{department.id}-{i + 1}",
            role=role,
            department=department.id,
            survey_id=f"{prefix}-demo-{department.id}-{i + 1}",
            responses=answers[i],
            current_question_index=len(questions),
            started_at=begin,
            completed_at=begin + timedelta(minutes=8 + i),
        ))
    return out


def build_demo_assessment(
    now: Optional[datetime] = None,
    seed: int = DEMO_SEED,
) -> Tuple[Assessment, List[ParticipantResponse]]:
    """
    Return the demo assessment (aggregates not yet computed) and its
    responses. Same seed, same scores.
    """
    now = now or utc_now()
    rng = DeterministicRNG(seed)
    template = default_template()
    questions = template.fresh_questions()
    departments = _demo_departments()

    assessment = Assessment(
        id=DEMO_ASSESSMENT_ID,
        organization_name=DEMO_ORGANIZATION_NAME,
        consultant_id=DEMO_CONSULTANT_ID,
        created=now - timedelta(days=2),
        access_code=DEMO_ACCESS_CODE,
        departments=departments,
        questions=questions,
        question_source={"source": "template", "templateId": template.id},
    )

    started = now - timedelta(days=1)
    responses: List[ParticipantResponse] = []
    for dept in departments:
        profile = DEMO_PROFILES[dept.name]
        responses += _role_responses(
            rng, dept, ROLE_MANAGEMENT, MANAGEMENT_PER_DEPARTMENT,
            questions, profile[ROLE_MANAGEMENT], started,
        )
        responses += _role_responses(
            rng, dept, ROLE_EMPLOYEE, EMPLOYEES_PER_DEPARTMENT,
            questions, profile[ROLE_EMPLOYEE], started,
        )
    return assessment, responses
