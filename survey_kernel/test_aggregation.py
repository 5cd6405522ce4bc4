"""
Survey Kernel — Aggregation & Analysis Tests

  1. Null scores excluded from numerator and denominator
  2. Category resolution: answer, question, fallback
  3. Gap significance boundaries (2.5 medium, 1.5 low) and direction
  4. Weighted organization-wide rollup
  5. Department grouping, corrupted/orphaned responses excluded
  6. Departmentless assessments aggregate into one group
  7. refresh_aggregates returns a copy; needs_recompute
  8. Comparative analysis: alignment clamp, recommendations
  9. Consultant insights: ranking, status, health
 10. CSV export and summary prompt

Run:  python -m survey_kernel.test_aggregation
"""

from __future__ import annotations

import sys
import os
from datetime import datetime, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from survey_kernel.aggregation import (
    aggregate_role,
    compute_aggregates,
    gap_direction,
    gap_significance,
    needs_recompute,
    perception_gaps,
    refresh_aggregates,
    rollup_roles,
)
from survey_kernel.analysis import (
    comparative_analysis,
    consultant_insights,
    department_status,
)
from survey_kernel.domain_types import (
    Answer,
    Assessment,
    CategoryAverage,
    Department,
    DepartmentAggregate,
    ParticipantResponse,
    PerceptionGap,
    Question,
    RoleAggregate,
)
from survey_kernel.export import (
    assessment_summary_csv,
    department_performance_csv,
    export_filename,
    rows_to_csv,
)
from survey_kernel.summary import SummaryContext, format_summary_prompt, summary_statistics


def _assessment(departments=None) -> Assessment:
    return Assessment(
        id="a1",
        organization_name="Acme Corp",
        consultant_id="c1",
        created=datetime(2026, 1, 31, 9, 0, tzinfo=timezone.utc),
        departments=departments if departments is not None else [
            Department("sales", "Sales"),
            Department("engineer", "Engineering"),
        ],
        questions=[
            Question("q1", "Vision?", "Vision", 1),
            Question("q2", "Culture?", "Culture", 2),
        ],
    )


def _resp(pid, role, dept, scores, assessment_id="a1") -> ParticipantResponse:
    return ParticipantResponse(
        assessment_id=assessment_id,
        participant_id=pid,
        role=role,
        department=dept,
        responses=[Answer(qid, score) for qid, score in scores],
    )


def _role(categories, overall, count) -> RoleAggregate:
    return RoleAggregate(
        category_averages=[CategoryAverage(c, a, n) for c, a, n in categories],
        overall_average=overall,
        response_count=count,
    )


def test_01_null_scores_excluded() -> None:
    agg = aggregate_role(
        [
            _resp("p1", "employee", "sales", [("q1", 8), ("q1", None)]),
            _resp("p2", "employee", "sales", [("q1", 6), ("q2", None)]),
        ],
        {"q1": "Vision", "q2": "Culture"},
    )
    assert agg.response_count == 2
    assert len(agg.category_averages) == 1
    vision = agg.category("Vision")
    assert vision.average == 7.0 and vision.responses == 2
    assert agg.overall_average == 7.0
    print("  [PASS]")


def test_02_category_resolution() -> None:
    response = ParticipantResponse(
        assessment_id="a1", participant_id="p1", role="management", department="sales",
        responses=[
            Answer("q1", 5, "Explicit"),
            Answer("q2", 7),
            Answer("q-unknown", 9),
        ],
    )
    agg = aggregate_role([response], {"q1": "Vision", "q2": "Culture"})
    names = [c.category for c in agg.category_averages]
    assert names == ["Explicit", "Culture", "Other"]
    assert agg.overall_average == 7.0
    print("  [PASS]")


def test_03_gap_boundaries() -> None:
    assert gap_significance(2.5) == "medium"
    assert gap_significance(-2.5) == "medium"
    assert gap_significance(2.51) == "high"
    assert gap_significance(1.5) == "low"
    assert gap_significance(1.51) == "medium"
    assert gap_direction(0.4) == "positive"
    assert gap_direction(-0.4) == "negative"
    assert gap_direction(0.0) == "aligned"

    gaps = perception_gaps(
        _role([("Vision", 8.0, 3), ("Culture", 6.0, 3), ("Ops", 5.0, 1)], 7.0, 3),
        _role([("Culture", 9.0, 2), ("Vision", 5.0, 2)], 7.0, 2),
    )
    assert [g.category for g in gaps] == ["Vision", "Culture"]
    assert gaps[0].gap == 3.0 and gaps[0].significance == "high"
    assert gaps[1].direction == "negative" and gaps[1].significance == "high"
    print("  [PASS]")


def test_04_weighted_rollup() -> None:
    merged = rollup_roles([
        _role([("Vision", 8.0, 5)], 8.0, 5),
        _role([("Vision", 4.0, 15)], 4.0, 15),
    ])
    assert merged.category("Vision").average == 5.0
    assert merged.category("Vision").responses == 20
    assert merged.overall_average == 5.0
    assert merged.response_count == 20
    assert rollup_roles([]).overall_average == 0.0
    print("  [PASS]")


def test_05_department_grouping_excludes_corrupted() -> None:
    assessment = _assessment()
    responses = [
        _resp("m1", "management", "sales", [("q1", 9), ("q2", 8)]),
        _resp("e1", "employee", "sales", [("q1", 5), ("q2", 6)]),
        _resp("e2", "employee", "engineer", [("q1", 7)]),
        _resp("bad1", "employee", "SAL", [("q1", 1)]),
        _resp("bad2", "management", "Management", [("q1", 1)]),
        _resp("other", "employee", "sales", [("q1", 1)], assessment_id="a2"),
    ]
    result = compute_aggregates(assessment, responses)

    assert result.excluded_responses == 3
    assert result.response_count == {"management": 1, "employee": 2}
    assert [d.department for d in result.department_data] == ["sales", "engineer"]

    sales = result.department_data[0]
    assert sales.department_name == "Sales"
    assert sales.response_count == {"management": 1, "employee": 1}
    assert sales.perception_gaps[0].category == "Vision"
    assert sales.perception_gaps[0].gap == 4.0

    engineering = result.department_data[1]
    assert engineering.management.response_count == 0
    assert engineering.perception_gaps == []

    assert result.employee.category("Vision").average == 6.0
    assert result.employee.overall_average == 6.0
    print("  [PASS]")


def test_06_departmentless_single_group() -> None:
    assessment = _assessment(departments=[])
    result = compute_aggregates(assessment, [
        _resp("m1", "management", "", [("q1", 8)]),
        _resp("e1", "employee", "", [("q1", 6)]),
        _resp("x", "employee", "General", [("q1", 1)]),
    ])
    assert len(result.department_data) == 1
    group = result.department_data[0]
    assert group.department == ""
    assert group.department_name == "Acme Corp"
    assert result.response_count == {"management": 1, "employee": 1}
    assert result.management.overall_average == 8.0
    print("  [PASS]")


def test_07_refresh_and_needs_recompute() -> None:
    assessment = _assessment()
    assessment.response_count = {"management": 1, "employee": 0}
    assert needs_recompute(assessment)

    updated = refresh_aggregates(assessment, [
        _resp("m1", "management", "sales", [("q1", 9)]),
    ])
    assert updated is not assessment
    assert assessment.department_data == []
    assert len(updated.department_data) == 2
    assert updated.management_responses.overall_average == 9.0
    assert not needs_recompute(updated)
    assert not needs_recompute(_assessment())
    print("  [PASS]")


def test_08_comparative_analysis() -> None:
    assessment = _assessment()
    assessment.management_responses = _role([("Vision", 9.0, 4), ("Culture", 5.0, 4)], 7.0, 2)
    assessment.employee_responses = _role([("Vision", 5.0, 4), ("Culture", 8.0, 4)], 6.5, 2)
    analysis = comparative_analysis(assessment)

    assert analysis.critical_gaps == ["Vision", "Culture"]
    assert analysis.overall_alignment == 100.0 - 3.5 * 10.0
    assert analysis.recommendations[0].startswith("Address overconfidence in Vision")
    assert analysis.recommendations[1].startswith("Improve communication about Culture")

    assessment.employee_responses = _role([("Vision", 1.0, 4), ("Culture", 1.0, 4)], 1.0, 2)
    assessment.management_responses = _role([("Vision", 10.0, 4), ("Culture", 10.0, 4)], 10.0, 2)
    assert comparative_analysis(assessment).overall_alignment == 10.0

    assert comparative_analysis(_assessment()).overall_alignment == 100.0
    print("  [PASS]")


def _dept(dept_id, name, mgmt, emp, high_gaps=0) -> DepartmentAggregate:
    gaps = [
        PerceptionGap(f"cat{i}", mgmt, emp, 3.0, "positive", "high")
        for i in range(high_gaps)
    ]
    return DepartmentAggregate(
        department=dept_id,
        department_name=name,
        management=_role([], mgmt, 3),
        employee=_role([], emp, 7),
        perception_gaps=gaps,
        response_count={"management": 3, "employee": 7},
    )


def test_09_consultant_insights() -> None:
    assert department_status(5.9, 0.0, 0) == "critical"
    assert department_status(8.0, 0.0, 3) == "critical"
    assert department_status(8.0, 1.6, 0) == "needs-attention"
    assert department_status(8.0, 0.0, 1) == "needs-attention"
    assert department_status(8.0, 1.5, 0) == "performing-well"

    assessment = _assessment()
    assert consultant_insights(assessment) is None

    assessment.department_data = [
        _dept("ops", "Operations", 7.0, 3.0, high_gaps=3),
        _dept("eng", "Engineering", 8.5, 8.0),
        _dept("mkt", "Marketing", 7.5, 5.5, high_gaps=1),
    ]
    insights = consultant_insights(assessment)
    assert [d.department for d in insights.department_ranking] == ["eng", "mkt", "ops"]
    assert insights.success_story.department == "eng"
    assert insights.critical_priority.department == "ops"
    assert insights.critical_departments == 1
    assert insights.needs_attention_departments == 1
    assert insights.performing_well_departments == 1
    # (8.25 + 6.5 + 5.0) / 3 = 6.583
    assert insights.organizational_health == 7
    print("  [PASS]")


def test_10_csv_and_prompt() -> None:
    assert rows_to_csv([{"a": 'say "hi"', "b": "x,y"}, {"a": None, "b": "line\nbreak"}], ["a", "b"]) == (
        'a,b\n"say ""hi""","x,y"\n,"line\nbreak"'
    )

    assessment = _assessment()
    assessment.department_data = [_dept("eng", "Engineering, R&D", 8.456, 8.0)]
    assessment.response_count = {"management": 3, "employee": 7}
    insights = consultant_insights(assessment)

    lines = department_performance_csv(assessment, insights).split("\n")
    assert lines[0] == (
        "department,overallScore,managementScore,employeeScore,alignmentGap,"
        "criticalGaps,status,managementResponses,employeeResponses"
    )
    assert lines[1] == '"Engineering, R&D",8.23,8.46,8.0,0.46,0,performing-well,3,7'

    summary = assessment_summary_csv(
        assessment, insights, exported_at=datetime(2026, 2, 1, tzinfo=timezone.utc)
    ).split("\n")
    assert summary[1] == "Acme Corp,2026-01-31,8,1,1,0,0,3,7,2026-02-01T00:00:00+00:00"
    assert export_filename(
        assessment, "department_performance", datetime(2026, 2, 1, tzinfo=timezone.utc)
    ) == "Acme_Corp_department_performance_2026-02-01.csv"

    context = SummaryContext.from_role_aggregate(
        _role([("Vision", 8.0, 1), ("Culture", 6.5, 3)], 7.25, 4), department="Sales"
    )
    prompt = format_summary_prompt(context)
    assert "- Overall Average Score: 7.25/10" in prompt
    assert "- Total Questions Answered: 4" in prompt
    assert "- Department: Sales" in prompt
    assert "- Vision: 8/10 (based on 1 question)" in prompt
    assert "- Culture: 6.5/10 (based on 3 questions)" in prompt

    stats = summary_statistics(context.category_averages, context.overall_average)
    assert stats["highestCategory"]["category"] == "Vision"
    assert stats["scoreDistribution"] == {"excellent": 1, "good": 1, "needs_improvement": 0}
    assert stats["overallPerformance"] == "strong"
    assert summary_statistics([], 0.0) is None
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# Runner
# ══════════════════════════════════════════════════════════════

def main() -> None:
    tests = [
        test_01_null_scores_excluded,
        test_02_category_resolution,
        test_03_gap_boundaries,
        test_04_weighted_rollup,
        test_05_department_grouping_excludes_corrupted,
        test_06_departmentless_single_group,
        test_07_refresh_and_needs_recompute,
        test_08_comparative_analysis,
        test_09_consultant_insights,
        test_10_csv_and_prompt,
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
