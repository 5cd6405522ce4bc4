"""
Survey Kernel
Pure domain layer for management-vs-employee perception assessments:
entities, identifier rules, corruption diagnostics and aggregation.
No I/O.
"""

from .domain_types import (
    Answer,
    Assessment,
    CategoryAverage,
    CorruptedDepartment,
    Department,
    DepartmentAggregate,
    DepartmentRef,
    ParticipantResponse,
    PerceptionGap,
    Question,
    RoleAggregate,
    ValidDepartment,
)
from .invariants import (
    AssessmentLockedError,
    AssessmentNotFoundError,
    DuplicateDepartmentError,
    InvalidStatusTransitionError,
    StoreError,
    ValidationError,
)
from .identifiers import (
    AccessCodeValidation,
    ParsedAccessCode,
    build_department,
    department_slug,
    generate_unique_access_code,
    parse_access_code,
    validate_access_code,
)
from .diagnostics import DiagnosisReport, classify_department, diagnose_assessment
from .aggregation import (
    AggregationResult,
    compute_aggregates,
    needs_recompute,
    refresh_aggregates,
    rollup_roles,
)
from .analysis import ComparativeAnalysis, ConsultantInsights, comparative_analysis, consultant_insights

__all__ = [
    "Answer",
    "Assessment",
    "CategoryAverage",
    "CorruptedDepartment",
    "Department",
    "DepartmentAggregate",
    "DepartmentRef",
    "ParticipantResponse",
    "PerceptionGap",
    "Question",
    "RoleAggregate",
    "ValidDepartment",
    "AssessmentLockedError",
    "AssessmentNotFoundError",
    "DuplicateDepartmentError",
    "InvalidStatusTransitionError",
    "StoreError",
    "ValidationError",
    "AccessCodeValidation",
    "ParsedAccessCode",
    "build_department",
    "department_slug",
    "generate_unique_access_code",
    "parse_access_code",
    "validate_access_code",
    "DiagnosisReport",
    "classify_department",
    "diagnose_assessment",
    "AggregationResult",
    "compute_aggregates",
    "needs_recompute",
    "refresh_aggregates",
    "rollup_roles",
    "ComparativeAnalysis",
    "ConsultantInsights",
    "comparative_analysis",
    "consultant_insights",
]
