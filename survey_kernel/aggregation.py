"""
Survey Kernel — Aggregation Engine

Pure functions of (Assessment, responses). Nothing is stored here; the
caller decides where the recomputed aggregates go.

Rules:
  - Only responses whose department classifies as valid are aggregated.
  - Null scores are excluded from numerator and denominator.
  - Category comes from the answer, then the question, then "Other".
  - Organization-wide figures are rolled up from department groups,
    weighting every category by its score count.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .constants import (
    FALLBACK_CATEGORY,
    GAP_HIGH_THRESHOLD,
    GAP_MEDIUM_THRESHOLD,
    ROLE_EMPLOYEE,
    ROLE_MANAGEMENT,
)
from .diagnostics import classify_responses
from .domain_types import (
    Answer,
    Assessment,
    CategoryAverage,
    DepartmentAggregate,
    ParticipantResponse,
    PerceptionGap,
    RoleAggregate,
)


# ---------------------------------------------------------------------------
# Gap classification
# ---------------------------------------------------------------------------

def gap_significance(gap: float) -> str:
    """Strict boundaries: exactly 2.5 is medium, exactly 1.5 is low."""
    magnitude = abs(gap)
    if magnitude > GAP_HIGH_THRESHOLD:
        return "high"
    if magnitude > GAP_MEDIUM_THRESHOLD:
        return "medium"
    return "low"


def gap_direction(gap: float) -> str:
    if gap > 0:
        return "positive"
    if gap < 0:
        return "negative"
    return "aligned"


def perception_gaps(management: RoleAggregate, employee: RoleAggregate) -> List[PerceptionGap]:
    """Gaps for categories present in both roles, in management order."""
    gaps: List[PerceptionGap] = []
    for mgmt_cat in management.category_averages:
        emp_cat = employee.category(mgmt_cat.category)
        if emp_cat is None:
            continue
        gap = mgmt_cat.average - emp_cat.average
        gaps.append(PerceptionGap(
            category=mgmt_cat.category,
            management_score=mgmt_cat.average,
            employee_score=emp_cat.average,
            gap=gap,
            direction=gap_direction(gap),
            significance=gap_significance(gap),
        ))
    return gaps


# ---------------------------------------------------------------------------
# Role aggregation
# ---------------------------------------------------------------------------

def question_categories(assessment: Assessment) -> Dict[str, str]:
    return {q.id: q.category for q in assessment.questions}


def answer_category(answer: Answer, categories: Dict[str, str]) -> str:
    return answer.category or categories.get(answer.question_id) or FALLBACK_CATEGORY


def aggregate_role(
    responses: Sequence[ParticipantResponse],
    categories: Dict[str, str],
) -> RoleAggregate:
    """
    Fold one role's responses into category means and an overall mean.

    response_count is the number of participants, not the number of scores.
    """
    if not responses:
        return RoleAggregate()

    sums: Dict[str, Tuple[float, int]] = {}
    total = 0.0
    count = 0
    for response in responses:
        for answer in response.responses:
            if answer.score is None:
                continue
            category = answer_category(answer, categories)
            cat_sum, cat_count = sums.get(category, (0.0, 0))
            sums[category] = (cat_sum + answer.score, cat_count + 1)
            total += answer.score
            count += 1

    return RoleAggregate(
        category_averages=[
            CategoryAverage(category=cat, average=s / n, responses=n)
            for cat, (s, n) in sums.items()
        ],
        overall_average=total / count if count else 0.0,
        response_count=len(responses),
    )


def rollup_roles(aggregates: Sequence[RoleAggregate]) -> RoleAggregate:
    """
    Combine per-department aggregates for one role.

    Category mean = sum(avg * count) / sum(count); the overall mean is
    weighted the same way across every category.
    """
    weighted: Dict[str, Tuple[float, int]] = {}
    participants = 0
    for agg in aggregates:
        participants += agg.response_count
        for cat in agg.category_averages:
            cat_sum, cat_count = weighted.get(cat.category, (0.0, 0))
            weighted[cat.category] = (
                cat_sum + cat.average * cat.responses,
                cat_count + cat.responses,
            )

    categories = [
        CategoryAverage(category=name, average=s / n, responses=n)
        for name, (s, n) in weighted.items() if n > 0
    ]
    total = sum(c.average * c.responses for c in categories)
    count = sum(c.responses for c in categories)
    return RoleAggregate(
        category_averages=categories,
        overall_average=total / count if count else 0.0,
        response_count=participants,
    )


# ---------------------------------------------------------------------------
# Assessment aggregation
# ---------------------------------------------------------------------------

@dataclass
class AggregationResult:
    management: RoleAggregate = field(default_factory=RoleAggregate)
    employee: RoleAggregate = field(default_factory=RoleAggregate)
    response_count: Dict[str, int] = field(
        default_factory=lambda: {ROLE_MANAGEMENT: 0, ROLE_EMPLOYEE: 0}
    )
    department_data: List[DepartmentAggregate] = field(default_factory=list)
    excluded_responses: int = 0


def _group_valid_responses(
    assessment: Assessment,
    responses: Sequence[ParticipantResponse],
) -> Tuple[Dict[str, List[ParticipantResponse]], int]:
    own = [r for r in responses if r.assessment_id == assessment.id]
    dept_ids = assessment.department_ids()
    refs = classify_responses(own, dept_ids)

    groups: Dict[str, List[ParticipantResponse]] = {d: [] for d in dept_ids} if dept_ids else {"": []}
    excluded = len(responses) - len(own)
    for response in own:
        ref = refs[response.participant_id]
        if not ref.is_valid:
            excluded += 1
            continue
        groups.setdefault(ref.id, []).append(response)
    return groups, excluded


def aggregate_department(
    department_id: str,
    department_name: str,
    responses: Sequence[ParticipantResponse],
    categories: Dict[str, str],
) -> DepartmentAggregate:
    mgmt = [r for r in responses if r.role == ROLE_MANAGEMENT]
    emp = [r for r in responses if r.role == ROLE_EMPLOYEE]
    mgmt_agg = aggregate_role(mgmt, categories)
    emp_agg = aggregate_role(emp, categories)
    return DepartmentAggregate(
        department=department_id,
        department_name=department_name,
        management=mgmt_agg,
        employee=emp_agg,
        perception_gaps=perception_gaps(mgmt_agg, emp_agg),
        response_count={ROLE_MANAGEMENT: len(mgmt), ROLE_EMPLOYEE: len(emp)},
    )


def compute_aggregates(
    assessment: Assessment,
    responses: Sequence[ParticipantResponse],
) -> AggregationResult:
    """
    Department groups first, then the organization-wide rollup.

    Departmentless assessments aggregate into a single implicit group,
    reported under the organization's name.
    """
    categories = question_categories(assessment)
    groups, excluded = _group_valid_responses(assessment, responses)

    department_data: List[DepartmentAggregate] = []
    for dept_id, members in groups.items():
        dept = assessment.find_department(dept_id)
        name = dept.name if dept is not None else assessment.organization_name
        department_data.append(aggregate_department(dept_id, name, members, categories))

    return AggregationResult(
        management=rollup_roles([d.management for d in department_data]),
        employee=rollup_roles([d.employee for d in department_data]),
        response_count={
            ROLE_MANAGEMENT: sum(d.response_count[ROLE_MANAGEMENT] for d in department_data),
            ROLE_EMPLOYEE: sum(d.response_count[ROLE_EMPLOYEE] for d in department_data),
        },
        department_data=department_data,
        excluded_responses=excluded,
    )


def refresh_aggregates(
    assessment: Assessment,
    responses: Sequence[ParticipantResponse],
) -> Assessment:
    """Return a copy of the assessment carrying freshly computed aggregates."""
    result = compute_aggregates(assessment, responses)
    updated = assessment.copy()
    updated.management_responses = result.management
    updated.employee_responses = result.employee
    updated.response_count = result.response_count
    updated.department_data = result.department_data
    return updated


def needs_recompute(assessment: Assessment) -> bool:
    """Counts say there are responses but no department breakdown is stored."""
    has_responses = any(v > 0 for v in assessment.response_count.values())
    return has_responses and not assessment.department_data


def department_aggregate(
    assessment: Assessment, department_id: str
) -> Optional[DepartmentAggregate]:
    for agg in assessment.department_data:
        if agg.department == department_id:
            return agg
    return None
