"""
Survey Kernel — Identifier & Lifecycle Tests

  1. Department slugs: sanitising, length bound, collision suffixes
  2. Department access codes: format, prefixes, shared suffix
  3. Legacy assessment codes: org code, word list, uniqueness
  4. parse_access_code: department, legacy, malformed, case-insensitive
  5. validate_access_code: full department id, expiry, locked
  6. Status transitions and department-name checks

Run:  python -m survey_kernel.test_identifiers
"""

from __future__ import annotations

import random
import re
import sys
import os
from datetime import timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from survey_kernel.constants import ACCESS_CODE_WORDS
from survey_kernel.domain_types import Assessment, Department, utc_now
from survey_kernel.identifiers import (
    build_department,
    department_access_codes,
    department_slug,
    generate_access_code,
    generate_unique_access_code,
    legacy_organization_code,
    parse_access_code,
    validate_access_code,
)
from survey_kernel.invariants import (
    AssessmentLockedError,
    DuplicateDepartmentError,
    InvalidStatusTransitionError,
    ValidationError,
    check_department_name,
    check_status_transition,
    check_unlocked,
)


def _stork() -> Assessment:
    return Assessment(
        id="test-id",
        organization_name="Stork Technologies",
        consultant_id="consultant-1",
        access_code="STORK-2025-STRATEGY",
        departments=[
            Department("hr", "HR", "STORK-MGMT-HR1234", "STORK-EMP-HR1234"),
            Department("engineer", "Engineering", "STORK-MGMT-ENG1234", "STORK-EMP-ENG1234"),
        ],
    )


# ── Slugs ─────────────────────────────────────────────────────

def test_01_slug_sanitises_and_truncates() -> None:
    assert department_slug("Sales") == "sales"
    assert department_slug("R&D Dept.") == "rddept"
    assert department_slug("Customer Success") == "customer"
    assert len(department_slug("A Very Long Department Name")) == 8
    print("  [PASS]")


def test_02_slug_collision_suffix() -> None:
    assert department_slug("Sales", ["sales"]) == "sales1"
    assert department_slug("Sales", ["sales", "sales1"]) == "sales2"
    assert department_slug("Customer Support", ["customer"]) == "customer1"
    print("  [PASS]")


# ── Department codes ──────────────────────────────────────────

def test_03_department_code_format() -> None:
    mgmt, emp = department_access_codes("Stork Technologies", "HR", now_ms=1700000004321)
    assert mgmt == "STORKTEC-MGMT-HR4321"
    assert emp == "STORKTEC-EMP-HR4321"
    pattern = re.compile(r"^[A-Z0-9]+-(MGMT|EMP)-[A-Z0-9]+\d{4}$")
    assert pattern.match(mgmt) and pattern.match(emp)
    print("  [PASS]")


def test_04_department_code_special_chars_and_length() -> None:
    mgmt, _ = department_access_codes("Test Org", "R&D Dept.", now_ms=12)
    assert mgmt == "TESTORG-MGMT-RDD0012"
    _, emp = department_access_codes("Test Org", "VeryLongDepartmentName", now_ms=5555)
    assert emp.split("-")[2] == "VER5555"
    print("  [PASS]")


def test_05_build_department_uses_full_slug() -> None:
    existing = [Department("sales", "Sales")]
    dept = build_department("Acme", "  Sales  ", existing, now_ms=1000)
    assert dept.id == "sales1"
    assert dept.name == "Sales"
    assert dept.management_code == "ACME-MGMT-SAL1000"
    print("  [PASS]")


# ── Legacy codes ──────────────────────────────────────────────

def test_06_legacy_code_shape() -> None:
    assert legacy_organization_code("Stork Technologies") == "STORTECH"
    assert legacy_organization_code("Acme") == "ACME"
    assert legacy_organization_code("A.B. Co & Sons Ltd") == "ABCOSONS"
    code = generate_access_code("Acme", random.Random(7), year=2025)
    org, year, word = code.split("-")
    assert org == "ACME" and year == "2025" and word in ACCESS_CODE_WORDS
    print("  [PASS]")


def test_07_unique_code_avoids_existing() -> None:
    taken = [f"ACME-2025-{w}" for w in ACCESS_CODE_WORDS if w != "LEAD"]
    code = generate_unique_access_code("Acme", taken, random.Random(1), year=2025)
    assert code == "ACME-2025-LEAD"

    all_taken = [f"ACME-2025-{w}" for w in ACCESS_CODE_WORDS]
    code = generate_unique_access_code("Acme", all_taken, random.Random(1), year=2025)
    assert code not in all_taken
    assert code.startswith("ACME-2025-")
    print("  [PASS]")


# ── Parsing ───────────────────────────────────────────────────

def test_08_parse_department_codes() -> None:
    parsed = parse_access_code("STORK-MGMT-HR1234")
    assert parsed.is_valid and parsed.role == "management"
    assert parsed.department_code == "HR"

    parsed = parse_access_code("demo-emp-eng1234")
    assert parsed.is_valid and parsed.role == "employee"
    assert parsed.department_code == "ENG"
    assert parsed.code == "DEMO-EMP-ENG1234"
    print("  [PASS]")


def test_09_parse_legacy_and_invalid() -> None:
    parsed = parse_access_code("STORK-2025-STRATEGY")
    assert parsed.is_valid
    assert parsed.role is None and parsed.department_code is None

    parsed = parse_access_code("INVALID-CODE-FORMAT-TOO-LONG")
    assert not parsed.is_valid
    assert "Invalid access code format" in parsed.errors

    assert not parse_access_code("STORK-SOMETHING-ELSE").is_valid
    assert not parse_access_code("").is_valid
    print("  [PASS]")


# ── Validation ────────────────────────────────────────────────

def test_10_validate_resolves_full_department_id() -> None:
    result = validate_access_code("stork-mgmt-eng1234", [_stork()])
    assert result.is_valid
    assert result.assessment_id == "test-id"
    assert result.role == "management"
    assert result.department == "engineer"
    assert result.department_name == "Engineering"

    legacy = validate_access_code("STORK-2025-STRATEGY", [_stork()])
    assert legacy.is_valid and legacy.role is None and legacy.department is None
    print("  [PASS]")


def test_11_validate_rejects_unknown_locked_and_expired() -> None:
    unknown = validate_access_code("STORK-MGMT-SALES1234", [_stork()])
    assert not unknown.is_valid and unknown.assessment_id == ""

    locked = _stork()
    locked.status = "locked"
    assert not validate_access_code("STORK-MGMT-HR1234", [locked]).is_valid

    expired = _stork()
    expired.code_expiration = utc_now() - timedelta(minutes=1)
    result = validate_access_code("STORK-2025-STRATEGY", [expired])
    assert result.is_expired and not result.is_valid
    assert result.assessment_id == "test-id"
    print("  [PASS]")


# ── Invariants ────────────────────────────────────────────────

def test_12_status_transitions() -> None:
    check_status_transition("collecting", "ready")
    check_status_transition("ready", "collecting")
    check_status_transition("ready", "locked")
    check_status_transition("locked", "locked")
    for target in ("collecting", "ready"):
        try:
            check_status_transition("locked", target)
            raise AssertionError("locked must not regress")
        except InvalidStatusTransitionError as exc:
            assert exc.current == "locked" and exc.requested == target
    try:
        check_status_transition("collecting", "archived")
        raise AssertionError("unknown status accepted")
    except ValidationError as exc:
        assert exc.rule == "unknown_status"
    print("  [PASS]")


def test_13_department_name_checks() -> None:
    assessment = _stork()
    assert check_department_name(assessment, "  Finance ") == "Finance"
    try:
        check_department_name(assessment, "engineering")
        raise AssertionError("duplicate accepted")
    except DuplicateDepartmentError as exc:
        assert "already exists" in str(exc)
    try:
        check_department_name(assessment, "   ")
        raise AssertionError("empty accepted")
    except ValidationError as exc:
        assert str(exc) == "Department name is required"
    for name in ("!!!", "日本"):
        try:
            check_department_name(assessment, name)
            raise AssertionError(f"{name!r} accepted")
        except ValidationError as exc:
            assert exc.rule == "department_name"
            assert "letter or digit" in str(exc)

    assessment.status = "locked"
    try:
        check_unlocked(assessment, "add department to")
        raise AssertionError("locked accepted")
    except AssessmentLockedError as exc:
        assert str(exc) == "Cannot add department to locked assessment"
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# Runner
# ══════════════════════════════════════════════════════════════

def main() -> None:
    tests = [
        test_01_slug_sanitises_and_truncates,
        test_02_slug_collision_suffix,
        test_03_department_code_format,
        test_04_department_code_special_chars_and_length,
        test_05_build_department_uses_full_slug,
        test_06_legacy_code_shape,
        test_07_unique_code_avoids_existing,
        test_08_parse_department_codes,
        test_09_parse_legacy_and_invalid,
        test_10_validate_resolves_full_department_id,
        test_11_validate_rejects_unknown_locked_and_expired,
        test_12_status_transitions,
        test_13_department_name_checks,
    ]
    failed = 0
    for fn in tests:
        print(f"\n{fn.__name__}")
        try:
            fn()
        except Exception as e:
            print(f"\n[ERROR] {fn.__name__}: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print(f"\n{'='*60}")
    print(f"  RESULTS: {len(tests) - failed}/{len(tests)} tests passed")
    print(f"{'='*60}")
    sys.exit(0 if failed == 0 else 1)


if __name__ == "__main__":
    main()
