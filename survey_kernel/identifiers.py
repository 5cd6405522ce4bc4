"""
Survey Kernel — Identifiers & Access Codes

Department slugs, department access codes ({ORG}-{MGMT|EMP}-{DEPT}{NNNN})
and legacy assessment codes ({ORGCODE}-{YEAR}-{WORD}).

Codes are compared upper-case. A department code always resolves to the
department's full slug, never to the abbreviation embedded in the code.
"""

from __future__ import annotations

import random
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from .constants import (
    ACCESS_CODE_WORDS,
    CODE_SUFFIX_DIGITS,
    DEPARTMENT_SLUG_MAX_LENGTH,
    DEPT_PREFIX_MAX_LENGTH,
    ORG_PREFIX_MAX_LENGTH,
    ROLE_CODE_TOKENS,
    ROLE_EMPLOYEE,
    ROLE_MANAGEMENT,
    STATUS_LOCKED,
)
from .domain_types import Assessment, Department, to_iso, utc_now

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_NON_ALNUM_OR_SPACE = re.compile(r"[^a-zA-Z0-9\s]")
_YEAR = re.compile(r"^\d{4}$")
_DEPT_TOKEN = re.compile(r"^([A-Z0-9]*)(\d{4})$")

_TOKEN_ROLES = {token: role for role, token in ROLE_CODE_TOKENS.items()}


# ---------------------------------------------------------------------------
# Department slugs
# ---------------------------------------------------------------------------

def department_slug(name: str, existing_ids: Iterable[str] = ()) -> str:
    """
    Lowercase alphanumeric slug, at most 8 chars, with a numeric suffix
    (starting at 1) when the base collides with an existing id.
    """
    base = _NON_ALNUM.sub("", name.lower())[:DEPARTMENT_SLUG_MAX_LENGTH]
    taken = set(existing_ids)
    candidate = base
    counter = 1
    while candidate in taken:
        candidate = f"{base}{counter}"
        counter += 1
    return candidate


# ---------------------------------------------------------------------------
# Department access codes
# ---------------------------------------------------------------------------

def organization_prefix(organization_name: str) -> str:
    return _NON_ALNUM.sub("", organization_name)[:ORG_PREFIX_MAX_LENGTH].upper()


def department_prefix(department_name: str) -> str:
    return _NON_ALNUM.sub("", department_name)[:DEPT_PREFIX_MAX_LENGTH].upper()


def code_suffix(now_ms: Optional[int] = None) -> str:
    """Low-order digits of the current time in milliseconds."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return str(now_ms).zfill(CODE_SUFFIX_DIGITS)[-CODE_SUFFIX_DIGITS:]


def department_access_code(
    organization_name: str,
    role: str,
    department_name: str,
    now_ms: Optional[int] = None,
) -> str:
    token = ROLE_CODE_TOKENS[role]
    return (
        f"{organization_prefix(organization_name)}-{token}-"
        f"{department_prefix(department_name)}{code_suffix(now_ms)}"
    )


def department_access_codes(
    organization_name: str,
    department_name: str,
    now_ms: Optional[int] = None,
) -> Tuple[str, str]:
    """Return (management_code, employee_code) sharing one suffix."""
    suffix_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return (
        department_access_code(organization_name, ROLE_MANAGEMENT, department_name, suffix_ms),
        department_access_code(organization_name, ROLE_EMPLOYEE, department_name, suffix_ms),
    )


def build_department(
    organization_name: str,
    department_name: str,
    existing: Sequence[Department] = (),
    now_ms: Optional[int] = None,
) -> Department:
    """Create a Department with a collision-free slug and fresh codes."""
    name = department_name.strip()
    mgmt, emp = department_access_codes(organization_name, name, now_ms)
    return Department(
        id=department_slug(name, (d.id for d in existing)),
        name=name,
        management_code=mgmt,
        employee_code=emp,
    )


# ---------------------------------------------------------------------------
# Assessment (legacy) access codes
# ---------------------------------------------------------------------------

def legacy_organization_code(organization_name: str) -> str:
    """First four chars of each word, joined, at most 8 chars, upper-case."""
    words = _NON_ALNUM_OR_SPACE.sub("", organization_name).split()
    return "".join(w[:4] for w in words)[:ORG_PREFIX_MAX_LENGTH].upper()


def generate_access_code(
    organization_name: str,
    rng: Optional[random.Random] = None,
    year: Optional[int] = None,
) -> str:
    chooser = rng if rng is not None else random
    return _format_code(organization_name, chooser.choice(ACCESS_CODE_WORDS), year)


def _format_code(organization_name: str, word: str, year: Optional[int]) -> str:
    if year is None:
        year = utc_now().year
    return f"{legacy_organization_code(organization_name)}-{year}-{word}".upper()


def generate_unique_access_code(
    organization_name: str,
    existing_codes: Iterable[str],
    rng: Optional[random.Random] = None,
    year: Optional[int] = None,
) -> str:
    """
    Try the word list in random order and return the first code not in
    existing_codes. Once every word is taken a numeric counter is
    appended to a random word.
    """
    chooser = rng if rng is not None else random
    taken = {c.upper() for c in existing_codes if c}
    words = list(ACCESS_CODE_WORDS)
    chooser.shuffle(words)
    for word in words:
        code = _format_code(organization_name, word, year)
        if code not in taken:
            return code
    base = _format_code(organization_name, words[0], year)
    counter = 2
    while f"{base}{counter}" in taken:
        counter += 1
    return f"{base}{counter}"


# ---------------------------------------------------------------------------
# Parsing & validation
# ---------------------------------------------------------------------------

@dataclass
class ParsedAccessCode:
    """Structural reading of a code, independent of any assessment."""

    code: str
    is_valid: bool
    role: Optional[str] = None
    department_code: Optional[str] = None
    errors: List[str] = field(default_factory=list)


def parse_access_code(code: str) -> ParsedAccessCode:
    """
    Accept ORG-MGMT-DEPT1234, ORG-EMP-DEPT1234 and ORG-YEAR-WORD.

    Role and department are only set for department codes.
    """
    normalized = (code or "").strip().upper()
    parts = normalized.split("-")
    if len(parts) != 3 or not all(parts):
        return ParsedAccessCode(normalized, False, errors=["Invalid access code format"])

    _, middle, tail = parts
    role = _TOKEN_ROLES.get(middle)
    if role is not None:
        match = _DEPT_TOKEN.match(tail)
        if match is None:
            return ParsedAccessCode(
                normalized, False, errors=["Invalid department code format"]
            )
        return ParsedAccessCode(normalized, True, role=role, department_code=match.group(1))

    if _YEAR.match(middle):
        return ParsedAccessCode(normalized, True)

    return ParsedAccessCode(normalized, False, errors=["Invalid access code format"])


@dataclass
class AccessCodeValidation:
    code: str
    assessment_id: str = ""
    organization_name: str = ""
    is_valid: bool = False
    is_expired: bool = False
    expires_at: Optional[datetime] = None
    role: Optional[str] = None
    department: Optional[str] = None
    department_name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "assessmentId": self.assessment_id,
            "organizationName": self.organization_name,
            "isValid": self.is_valid,
            "isExpired": self.is_expired,
            "expiresAt": to_iso(self.expires_at),
            "role": self.role,
            "department": self.department,
            "departmentName": self.department_name,
        }


def is_code_expired(assessment: Assessment, now: Optional[datetime] = None) -> bool:
    if assessment.code_expiration is None:
        return False
    return (now or utc_now()) >= assessment.code_expiration


def validate_access_code(
    code: str,
    assessments: Sequence[Assessment],
    now: Optional[datetime] = None,
) -> AccessCodeValidation:
    """
    Resolve a code against known assessments.

    Department codes resolve role and the department's full id. A code
    is valid only when it matches, is not expired, and the assessment is
    not locked.
    """
    normalized = (code or "").strip().upper()
    result = AccessCodeValidation(code=normalized)
    if not parse_access_code(normalized).is_valid:
        return result

    for assessment in assessments:
        match = _match_code(assessment, normalized)
        if match is None:
            continue
        role, dept = match
        expired = is_code_expired(assessment, now)
        result.assessment_id = assessment.id
        result.organization_name = assessment.organization_name
        result.is_expired = expired
        result.expires_at = assessment.code_expiration
        result.is_valid = not expired and assessment.status != STATUS_LOCKED
        result.role = role
        if dept is not None:
            result.department = dept.id
            result.department_name = dept.name
        return result
    return result


def _match_code(
    assessment: Assessment, code: str
) -> Optional[Tuple[Optional[str], Optional[Department]]]:
    if assessment.access_code and assessment.access_code.upper() == code:
        return (None, None)
    for dept in assessment.departments:
        if dept.management_code and dept.management_code.upper() == code:
            return (ROLE_MANAGEMENT, dept)
        if dept.employee_code and dept.employee_code.upper() == code:
            return (ROLE_EMPLOYEE, dept)
    return None
