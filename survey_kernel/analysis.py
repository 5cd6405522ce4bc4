"""
Survey Kernel — Comparative Analysis & Consultant Insights

Reads aggregates already stored on an Assessment; never touches raw
responses. Callers recompute aggregates first when they may be stale.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional

from .constants import (
    ATTENTION_ALIGNMENT_GAP,
    CRITICAL_GAP_LIMIT,
    CRITICAL_SCORE_FLOOR,
)
from .aggregation import perception_gaps
from .domain_types import Assessment, DepartmentAggregate, PerceptionGap

STATUS_CRITICAL = "critical"
STATUS_NEEDS_ATTENTION = "needs-attention"
STATUS_PERFORMING_WELL = "performing-well"


# ---------------------------------------------------------------------------
# Comparative analysis (organization-wide)
# ---------------------------------------------------------------------------

@dataclass
class ComparativeAnalysis:
    gap_analysis: List[PerceptionGap] = field(default_factory=list)
    overall_alignment: float = 100.0
    critical_gaps: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "gapAnalysis": [g.to_dict() for g in self.gap_analysis],
            "overallAlignment": self.overall_alignment,
            "criticalGaps": list(self.critical_gaps),
            "recommendations": list(self.recommendations),
        }


def alignment_score(gaps: List[PerceptionGap]) -> float:
    """clamp(100 - mean(|gap|) * 10, 0, 100); no gaps means full alignment."""
    if not gaps:
        return 100.0
    mean_gap = sum(abs(g.gap) for g in gaps) / len(gaps)
    return max(0.0, min(100.0, 100.0 - mean_gap * 10.0))


def recommendations_for(gaps: List[PerceptionGap]) -> List[str]:
    out: List[str] = []
    for gap in gaps:
        if gap.significance != "high":
            continue
        if gap.gap > 0:
            out.append(
                f"Address overconfidence in {gap.category} - management rates "
                f"this significantly higher than employees"
            )
        else:
            out.append(
                f"Improve communication about {gap.category} - employees see "
                f"this more positively than management realizes"
            )
    return out


def comparative_analysis(assessment: Assessment) -> ComparativeAnalysis:
    gaps = perception_gaps(assessment.management_responses, assessment.employee_responses)
    return ComparativeAnalysis(
        gap_analysis=gaps,
        overall_alignment=alignment_score(gaps),
        critical_gaps=[g.category for g in gaps if g.significance == "high"],
        recommendations=recommendations_for(gaps),
    )


# ---------------------------------------------------------------------------
# Consultant insights (per department)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DepartmentStanding:
    department: str
    department_name: str
    overall_score: float
    alignment_gap: float
    critical_gaps: int
    status: str

    def to_dict(self) -> dict:
        return {
            "department": self.department,
            "departmentName": self.department_name,
            "overallScore": self.overall_score,
            "alignmentGap": self.alignment_gap,
            "criticalGaps": self.critical_gaps,
            "status": self.status,
        }


@dataclass
class ConsultantInsights:
    department_ranking: List[DepartmentStanding]
    organizational_health: int
    success_story: Optional[DepartmentStanding]
    critical_priority: Optional[DepartmentStanding]
    critical_departments: int
    needs_attention_departments: int

    @property
    def total_departments(self) -> int:
        return len(self.department_ranking)

    @property
    def performing_well_departments(self) -> int:
        return (
            self.total_departments
            - self.critical_departments
            - self.needs_attention_departments
        )

    def to_dict(self) -> dict:
        return {
            "departmentRanking": [d.to_dict() for d in self.department_ranking],
            "organizationalHealth": self.organizational_health,
            "successStory": self.success_story.to_dict() if self.success_story else None,
            "criticalPriority": (
                self.critical_priority.to_dict() if self.critical_priority else None
            ),
            "criticalDepartments": self.critical_departments,
            "needsAttentionDepartments": self.needs_attention_departments,
            "totalDepartments": self.total_departments,
        }


def department_status(overall_score: float, alignment_gap: float, critical_gaps: int) -> str:
    if critical_gaps > CRITICAL_GAP_LIMIT or overall_score < CRITICAL_SCORE_FLOOR:
        return STATUS_CRITICAL
    if critical_gaps > 0 or alignment_gap > ATTENTION_ALIGNMENT_GAP:
        return STATUS_NEEDS_ATTENTION
    return STATUS_PERFORMING_WELL


def department_standing(dept: DepartmentAggregate) -> DepartmentStanding:
    mgmt = dept.management.overall_average
    emp = dept.employee.overall_average
    overall = (mgmt + emp) / 2
    alignment_gap = abs(mgmt - emp)
    critical = sum(1 for g in dept.perception_gaps if g.significance == "high")
    return DepartmentStanding(
        department=dept.department,
        department_name=dept.department_name,
        overall_score=overall,
        alignment_gap=alignment_gap,
        critical_gaps=critical,
        status=department_status(overall, alignment_gap, critical),
    )


def consultant_insights(assessment: Assessment) -> Optional[ConsultantInsights]:
    """Rank departments best-first. None when no department data is stored."""
    if not assessment.department_data:
        return None

    ranking = sorted(
        (department_standing(d) for d in assessment.department_data),
        key=lambda s: s.overall_score,
        reverse=True,
    )
    # half-up, not banker's rounding
    health = math.floor(sum(s.overall_score for s in ranking) / len(ranking) + 0.5)
    success = next((s for s in ranking if s.status == STATUS_PERFORMING_WELL), ranking[0])
    critical = next((s for s in ranking if s.status == STATUS_CRITICAL), None)
    return ConsultantInsights(
        department_ranking=ranking,
        organizational_health=int(health),
        success_story=success,
        critical_priority=critical,
        critical_departments=sum(1 for s in ranking if s.status == STATUS_CRITICAL),
        needs_attention_departments=sum(
            1 for s in ranking if s.status == STATUS_NEEDS_ATTENTION
        ),
    )
