"""
Survey Kernel — Corruption Diagnostics Tests

  1. Truncated legacy code SAL → truncation, suggested 'sales'
  2. Role names in the department field, any case
  3. Unique prefix vs ambiguous prefix
  4. Legacy abbreviation whose target is not configured
  5. Departmentless assessments: empty value is valid
  6. Full diagnosis record: counts, values, suggestions

Run:  python -m survey_kernel.test_diagnostics
"""

from __future__ import annotations

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from survey_kernel.diagnostics import (
    classify_department,
    diagnose_assessment,
    suggest_department,
)
from survey_kernel.domain_types import (
    Assessment,
    CorruptedDepartment,
    Department,
    ParticipantResponse,
    ValidDepartment,
)

_DEPTS = ["sales", "engineer", "marketin", "hr"]


def _assessment(dept_ids=None) -> Assessment:
    ids = _DEPTS if dept_ids is None else dept_ids
    return Assessment(
        id="a1",
        organization_name="Acme",
        consultant_id="c1",
        departments=[Department(d, d.title()) for d in ids],
    )


def _response(pid: str, department: str, role: str = "employee") -> ParticipantResponse:
    return ParticipantResponse(
        assessment_id="a1", participant_id=pid, role=role, department=department
    )


def test_01_truncated_legacy_code() -> None:
    ref = classify_department("SAL", _DEPTS)
    assert isinstance(ref, CorruptedDepartment)
    assert ref.cause == "truncation"
    assert ref.suggested_id == "sales"
    assert ref.counts_as_corrupted
    print("  [PASS]")


def test_02_role_names_any_case() -> None:
    for value in ("Management", "employee", "GENERAL"):
        ref = classify_department(value, _DEPTS)
        assert not ref.is_valid
        assert ref.cause == "role"
        assert ref.suggested_id is None
    # still corrupted with no departments configured
    assert classify_department("Management", []).cause == "role"
    print("  [PASS]")


def test_03_prefix_matching() -> None:
    ref = classify_department("eng", _DEPTS)
    assert ref.cause == "truncation" and ref.suggested_id == "engineer"

    ambiguous = ["support", "supply"]
    assert classify_department("sup", ambiguous).cause == "unrecognized"
    assert suggest_department("sup", ambiguous) is None

    # equal length is not a truncation
    assert classify_department("SALES", _DEPTS).cause == "unrecognized"
    assert classify_department("sales", _DEPTS) == ValidDepartment("sales")
    print("  [PASS]")


def test_04_legacy_target_not_configured() -> None:
    ref = classify_department("FIN", _DEPTS)
    assert ref.cause == "truncation"
    assert ref.suggested_id is None

    # legacy target missing, but a unique prefix exists
    assert suggest_department("MAR", _DEPTS) == "marketin"
    print("  [PASS]")


def test_05_departmentless_assessment() -> None:
    assert classify_department("", []) == ValidDepartment("")
    assert classify_department(None, []).is_valid
    assert classify_department("", _DEPTS).cause == "unrecognized"
    print("  [PASS]")


def test_06_diagnosis_record() -> None:
    responses = [
        _response("p1", "sales"),
        _response("p2", "SAL"),
        _response("p3", "Management", "management"),
        _response("p4", "Employee"),
        _response("p5", "legal"),
        _response("p6", "hr"),
    ]
    report = diagnose_assessment(_assessment(), responses)

    assert report.total_responses == 6
    assert report.corrupted_count == 3
    assert report.role_corrupted_count == 2
    assert report.truncation_count == 1
    assert report.unrecognized_count == 1
    assert report.corrupted_values == ["SAL", "Management", "Employee"]
    assert report.unrecognized_values == ["legal"]
    assert report.valid_departments == _DEPTS
    assert report.observed_values == ["sales", "SAL", "Management", "Employee", "legal", "hr"]
    assert report.repair_mapping == {"SAL": "sales"}
    assert report.classifications["p1"].is_valid
    assert report.classifications["p2"].cause == "truncation"
    assert (
        "Found 2 corrupted responses with role-based department values"
        in report.suggestions
    )
    assert not report.is_clean

    as_dict = report.to_dict()
    assert as_dict["corruptedCount"] == 3
    assert as_dict["classifications"]["p2"]["suggestedDepartment"] == "sales"
    print("  [PASS]")


def test_07_no_department_configuration() -> None:
    report = diagnose_assessment(_assessment([]), [_response("p1", "")])
    assert report.is_clean
    assert "Assessment has no department configuration" in report.suggestions

    missing = diagnose_assessment(None, [_response("p1", "sales")], assessment_id="gone")
    assert missing.assessment_id == "gone"
    assert "Assessment configuration could not be loaded" in missing.suggestions
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# Runner
# ══════════════════════════════════════════════════════════════

def main() -> None:
    tests = [
        test_01_truncated_legacy_code,
        test_02_role_names_any_case,
        test_03_prefix_matching,
        test_04_legacy_target_not_configured,
        test_05_departmentless_assessment,
        test_06_diagnosis_record,
        test_07_no_department_configuration,
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
