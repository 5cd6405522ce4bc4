"""
CSV Exporter — department performance and assessment summary.

Values containing a comma, quote or newline are quoted with inner quotes
doubled. Missing values export as empty cells.
"""

from __future__ import annotations

import csv
import io
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .aggregation import department_aggregate
from .analysis import ConsultantInsights
from .constants import ROLE_EMPLOYEE, ROLE_MANAGEMENT
from .domain_types import Assessment, to_iso, utc_now

DEPARTMENT_PERFORMANCE_HEADERS: List[str] = [
    "department",
    "overallScore",
    "managementScore",
    "employeeScore",
    "alignmentGap",
    "criticalGaps",
    "status",
    "managementResponses",
    "employeeResponses",
]

ASSESSMENT_SUMMARY_HEADERS: List[str] = [
    "organizationName",
    "assessmentDate",
    "organizationalHealth",
    "totalDepartments",
    "departmentsPerformingWell",
    "departmentsNeedingAttention",
    "criticalDepartments",
    "totalManagementResponses",
    "totalEmployeeResponses",
    "exportedAt",
]


def rows_to_csv(rows: Sequence[Dict[str, Any]], headers: Sequence[str]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if row.get(h) is None else row.get(h) for h in headers])
    # no trailing newline after the last row
    return buf.getvalue().rstrip("\n")


def department_performance_csv(assessment: Assessment, insights: ConsultantInsights) -> str:
    rows = []
    for standing in insights.department_ranking:
        dept = department_aggregate(assessment, standing.department)
        rows.append({
            "department": standing.department_name,
            "overallScore": round(standing.overall_score, 2),
            "managementScore": round(dept.management.overall_average, 2) if dept else 0,
            "employeeScore": round(dept.employee.overall_average, 2) if dept else 0,
            "alignmentGap": round(standing.alignment_gap, 2),
            "criticalGaps": standing.critical_gaps,
            "status": standing.status,
            "managementResponses": dept.response_count.get(ROLE_MANAGEMENT, 0) if dept else 0,
            "employeeResponses": dept.response_count.get(ROLE_EMPLOYEE, 0) if dept else 0,
        })
    return rows_to_csv(rows, DEPARTMENT_PERFORMANCE_HEADERS)


def assessment_summary_csv(
    assessment: Assessment,
    insights: ConsultantInsights,
    exported_at: Optional[datetime] = None,
) -> str:
    row = {
        "organizationName": assessment.organization_name,
        "assessmentDate": assessment.created.date().isoformat(),
        "organizationalHealth": insights.organizational_health,
        "totalDepartments": insights.total_departments,
        "departmentsPerformingWell": insights.performing_well_departments,
        "departmentsNeedingAttention": insights.needs_attention_departments,
        "criticalDepartments": insights.critical_departments,
        "totalManagementResponses": assessment.response_count.get(ROLE_MANAGEMENT, 0),
        "totalEmployeeResponses": assessment.response_count.get(ROLE_EMPLOYEE, 0),
        "exportedAt": to_iso(exported_at or utc_now()),
    }
    return rows_to_csv([row], ASSESSMENT_SUMMARY_HEADERS)


def export_filename(assessment: Assessment, kind: str, when: Optional[datetime] = None) -> str:
    """e.g. Acme_Corp_department_performance_2026-01-31.csv"""
    org = re.sub(r"[^a-zA-Z0-9]", "_", assessment.organization_name)
    day = (when or utc_now()).date().isoformat()
    return f"{org}_{kind}_{day}.csv"
