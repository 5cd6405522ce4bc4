"""
Survey Kernel — Corruption Diagnostics

Classify the department value of every response against the owning
assessment's configured departments. Read-only: nothing here writes.

Classification order:
  1. valid         exact match with a configured department id
                   (an empty value when no departments are configured)
  2. role          the value is a role name (management/employee/general)
  3. truncation    strictly shorter case-insensitive prefix of exactly one
                   configured id, or a legacy abbreviation (SAL, ENG, ...)
  4. unrecognized  anything else; reported, not counted as corrupted
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .constants import LEGACY_DEPARTMENT_ABBREVIATIONS, ROLE_DEPARTMENT_VALUES
from .domain_types import (
    CAUSE_ROLE,
    CAUSE_TRUNCATION,
    CAUSE_UNRECOGNIZED,
    Assessment,
    CorruptedDepartment,
    DepartmentRef,
    ParticipantResponse,
    ValidDepartment,
)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def classify_department(value: Optional[str], department_ids: Sequence[str]) -> DepartmentRef:
    """Turn a raw department value into a tagged DepartmentRef."""
    raw = value or ""
    if raw in department_ids or (not department_ids and raw == ""):
        return ValidDepartment(raw)

    lowered = raw.strip().lower()
    if lowered in ROLE_DEPARTMENT_VALUES:
        return CorruptedDepartment(raw, CAUSE_ROLE, None)

    if raw and _is_truncation(raw, department_ids):
        return CorruptedDepartment(raw, CAUSE_TRUNCATION, suggest_department(raw, department_ids))

    return CorruptedDepartment(raw, CAUSE_UNRECOGNIZED, None)


def suggest_department(value: str, department_ids: Sequence[str]) -> Optional[str]:
    """
    Repair target for a corrupted value, or None.

    The legacy table wins only when its target is configured on the
    assessment; otherwise a unique case-insensitive prefix match is used.
    """
    legacy = LEGACY_DEPARTMENT_ABBREVIATIONS.get(value.strip().upper())
    if legacy is not None and legacy in department_ids:
        return legacy
    matches = _prefix_matches(value, department_ids)
    if len(matches) == 1:
        return matches[0]
    return None


def _prefix_matches(value: str, department_ids: Iterable[str]) -> List[str]:
    needle = value.strip().lower()
    if not needle:
        return []
    return [
        dept_id for dept_id in department_ids
        if len(needle) < len(dept_id) and dept_id.lower().startswith(needle)
    ]


def _is_truncation(value: str, department_ids: Sequence[str]) -> bool:
    if value.strip().upper() in LEGACY_DEPARTMENT_ABBREVIATIONS:
        return True
    return len(_prefix_matches(value, department_ids)) == 1


def classify_responses(
    responses: Iterable[ParticipantResponse],
    department_ids: Sequence[str],
) -> Dict[str, DepartmentRef]:
    """participant_id -> DepartmentRef"""
    return {
        r.participant_id: classify_department(r.department, department_ids)
        for r in responses
    }


# ---------------------------------------------------------------------------
# Diagnosis record
# ---------------------------------------------------------------------------

@dataclass
class DiagnosisReport:
    """Outcome of scanning one assessment's responses."""

    assessment_id: str
    total_responses: int = 0
    corrupted_count: int = 0
    role_corrupted_count: int = 0
    truncation_count: int = 0
    corrupted_values: List[str] = field(default_factory=list)
    unrecognized_values: List[str] = field(default_factory=list)
    valid_departments: List[str] = field(default_factory=list)
    observed_values: List[str] = field(default_factory=list)
    classifications: Dict[str, DepartmentRef] = field(default_factory=dict)
    repair_mapping: Dict[str, str] = field(default_factory=dict)
    suggestions: List[str] = field(default_factory=list)

    @property
    def unrecognized_count(self) -> int:
        return sum(
            1 for ref in self.classifications.values()
            if not ref.is_valid and ref.cause == CAUSE_UNRECOGNIZED
        )

    @property
    def is_clean(self) -> bool:
        return self.corrupted_count == 0

    def to_dict(self) -> dict:
        return {
            "assessmentId": self.assessment_id,
            "totalResponses": self.total_responses,
            "corruptedCount": self.corrupted_count,
            "roleCorruptedCount": self.role_corrupted_count,
            "truncationCount": self.truncation_count,
            "unrecognizedCount": self.unrecognized_count,
            "corruptedDepartments": list(self.corrupted_values),
            "unrecognizedDepartments": list(self.unrecognized_values),
            "validDepartments": list(self.valid_departments),
            "foundDepartments": list(self.observed_values),
            "repairMapping": dict(self.repair_mapping),
            "classifications": {
                pid: _ref_to_dict(ref) for pid, ref in self.classifications.items()
            },
            "suggestions": list(self.suggestions),
        }


def _ref_to_dict(ref: DepartmentRef) -> dict:
    if isinstance(ref, ValidDepartment):
        return {"valid": True, "department": ref.id}
    return {
        "valid": False,
        "rawValue": ref.raw_value,
        "cause": ref.cause,
        "suggestedDepartment": ref.suggested_id,
    }


def _distinct(values: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for v in values:
        if v not in seen:
            seen.append(v)
    return seen


def diagnose_responses(
    assessment_id: str,
    department_ids: Sequence[str],
    responses: Sequence[ParticipantResponse],
    has_configuration: bool = True,
) -> DiagnosisReport:
    """
    Scan responses for department corruption.

    has_configuration=False means the assessment itself could not be
    loaded; every value is then judged against an empty department list.
    """
    refs = classify_responses(responses, department_ids)

    role_refs = [r for r in refs.values() if not r.is_valid and r.cause == CAUSE_ROLE]
    trunc_refs = [r for r in refs.values() if not r.is_valid and r.cause == CAUSE_TRUNCATION]
    unknown_refs = [r for r in refs.values() if not r.is_valid and r.cause == CAUSE_UNRECOGNIZED]

    report = DiagnosisReport(
        assessment_id=assessment_id,
        total_responses=len(responses),
        corrupted_count=len(role_refs) + len(trunc_refs),
        role_corrupted_count=len(role_refs),
        truncation_count=len(trunc_refs),
        corrupted_values=_distinct(
            r.raw_value for r in refs.values() if not r.is_valid and r.counts_as_corrupted
        ),
        unrecognized_values=_distinct(r.raw_value for r in unknown_refs),
        valid_departments=list(department_ids),
        observed_values=_distinct(r.department for r in responses),
        classifications=refs,
    )
    for ref in trunc_refs:
        if ref.suggested_id is not None:
            report.repair_mapping[ref.raw_value] = ref.suggested_id

    if role_refs:
        report.suggestions.append(
            f"Found {len(role_refs)} corrupted responses with role-based department values"
        )
    if trunc_refs:
        report.suggestions.append(
            f"Found {len(trunc_refs)} responses with truncated department identifiers"
        )
    unmapped = len(role_refs) + sum(1 for r in trunc_refs if r.suggested_id is None)
    if unmapped:
        report.suggestions.append(
            f"{unmapped} corrupted responses cannot be mapped to a department "
            f"and must be cleaned up"
        )
    if unknown_refs:
        report.suggestions.append(
            f"Found {len(unknown_refs)} responses with unrecognized department values: "
            f"{', '.join(repr(v) for v in report.unrecognized_values)}"
        )
    if not has_configuration:
        report.suggestions.append("Assessment configuration could not be loaded")
    elif not department_ids:
        report.suggestions.append("Assessment has no department configuration")
    return report


def diagnose_assessment(
    assessment: Optional[Assessment],
    responses: Sequence[ParticipantResponse],
    assessment_id: str = "",
) -> DiagnosisReport:
    if assessment is None:
        return diagnose_responses(assessment_id, [], responses, has_configuration=False)
    return diagnose_responses(assessment.id, assessment.department_ids(), responses)
