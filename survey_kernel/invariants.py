"""
Survey Kernel — Errors & Invariant Checks

Hard-fail validation for lifecycle and department rules. Every check raises
a ValidationError subclass on failure. Corruption in stored responses is
never raised from here; it is reported by diagnostics instead.
"""

from __future__ import annotations

import re
from typing import List

from .constants import ROLES, STATUSES, STATUS_LOCKED
from .domain_types import Assessment

_ALNUM = re.compile(r"[a-zA-Z0-9]")


class StoreError(Exception):
    """Base class for every error raised by the assessment store."""


class AssessmentNotFoundError(StoreError):
    """Raised by operations that require an existing assessment."""

    def __init__(self, assessment_id: str) -> None:
        self.assessment_id = assessment_id
        super().__init__(f"Assessment {assessment_id!r} not found")


class ValidationError(StoreError):
    """Raised when a request would violate an assessment invariant."""

    def __init__(self, rule: str, detail: str) -> None:
        self.rule = rule
        self.detail = detail
        super().__init__(detail)


class DuplicateDepartmentError(ValidationError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            "duplicate_department",
            f'Department "{name}" already exists in this assessment',
        )


class AssessmentLockedError(ValidationError):
    def __init__(self, assessment_id: str, action: str) -> None:
        self.assessment_id = assessment_id
        self.action = action
        super().__init__(
            "assessment_locked",
            f"Cannot {action} locked assessment",
        )


class InvalidStatusTransitionError(ValidationError):
    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            "status_transition",
            f"Cannot change assessment status from {current!r} to {requested!r}",
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def check_status_transition(current: str, requested: str) -> None:
    """
    collecting <-> ready move freely; either may move to locked.
    Nothing leaves locked.
    """
    if requested not in STATUSES:
        raise ValidationError(
            "unknown_status",
            f"Unknown assessment status {requested!r}; expected one of {list(STATUSES)}",
        )
    if current == STATUS_LOCKED and requested != STATUS_LOCKED:
        raise InvalidStatusTransitionError(current, requested)


def check_unlocked(assessment: Assessment, action: str) -> None:
    if assessment.is_locked:
        raise AssessmentLockedError(assessment.id, action)


def check_department_name(assessment: Assessment, name: str) -> str:
    """
    Return the trimmed name, or raise if it is empty, yields an empty
    slug (no ASCII letters or digits), or is already in use.
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("department_name", "Department name is required")
    if not _ALNUM.search(cleaned):
        raise ValidationError(
            "department_name",
            "Department name must contain at least one letter or digit",
        )
    existing: List[str] = [d.name.strip().lower() for d in assessment.departments]
    if cleaned.lower() in existing:
        raise DuplicateDepartmentError(cleaned)
    return cleaned


def check_role(role: str) -> None:
    if role not in ROLES:
        raise ValidationError(
            "unknown_role",
            f"Unknown participant role {role!r}; expected one of {list(ROLES)}",
        )
