"""
Backend Tests — Supabase row mapping and the HTTP API.

  1. Manual URL parser keeps '@' and ':' inside passwords
  2. Assessment and response rows round-trip; absent JSON columns default
  3. Liveness probe returns False instead of raising
  4. API lifecycle: create, departments, responses, analysis, export, lock
  5. API demo flag and migration

The API runs against an in-memory remote and a ':memory:' cache, so no
database is needed.

Run:  python -m backend.test_backend
"""

from __future__ import annotations

import json
import os
import random
import sys
from datetime import datetime, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from backend.main import app
from backend.supabase_store import (
    SupabaseStore,
    assessment_to_row,
    parse_database_url,
    response_to_row,
    row_to_assessment,
    row_to_response,
)
from survey_kernel.domain_types import (
    Answer,
    Assessment,
    Department,
    ParticipantResponse,
    Question,
)
from survey_runtime import AssessmentStore, InMemoryRemoteStore, LocalCache

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _client() -> TestClient:
    app.state.store = AssessmentStore(
        LocalCache(), InMemoryRemoteStore(), rng=random.Random(3)
    )
    return TestClient(app)


def _answers(questions, score):
    return [
        {"question_id": q["id"], "score": score, "category": q["category"]}
        for q in questions
    ]


def test_01_parse_database_url() -> None:
    params = parse_database_url(
        "postgresql://postgres.abc:p@ss:w[0]rd@aws-0.pooler.supabase.com:6543/postgres"
    )
    assert params == {
        "user": "postgres.abc",
        "password": "p@ss:w[0]rd",
        "host": "aws-0.pooler.supabase.com",
        "port": 6543,
        "database": "postgres",
    }
    assert parse_database_url("postgres://u:p@localhost:5432/")["database"] == "postgres"
    print("  [PASS]")


def test_02_row_mapping() -> None:
    assessment = Assessment(
        id="a1",
        organization_name="Acme",
        consultant_id="c1",
        status="locked",
        created=_NOW,
        locked_at=_NOW,
        access_code="ACME-2026-FOCUS",
        code_expiration=_NOW,
        departments=[Department("sales", "Sales", "ACME-MGMT-SAL1234", "ACME-EMP-SAL1234")],
        questions=[Question("q1", "Clear vision?", "Vision & Strategy", 1)],
        response_count={"management": 2, "employee": 3},
    )
    row = assessment_to_row(assessment)
    assert isinstance(row["departments"], str)
    assert json.loads(row["response_count"]) == {"management": 2, "employee": 3}
    assert row_to_assessment(row).to_dict() == assessment.to_dict()

    # pg8000 hands JSONB back already parsed
    parsed = {
        k: (json.loads(v) if isinstance(v, str) and v.startswith(("[", "{")) else v)
        for k, v in row.items()
    }
    assert row_to_assessment(parsed).to_dict() == assessment.to_dict()

    bare = row_to_assessment({"id": "a2", "organization_name": "Bare"})
    assert bare.departments == []
    assert bare.department_data == []
    assert bare.response_count == {"management": 0, "employee": 0}
    assert bare.question_source == {"source": "default"}

    response = ParticipantResponse(
        assessment_id="a1",
        participant_id="p1",
        role="employee",
        department="sales",
        responses=[Answer("q1", 7.0, "Vision & Strategy"), Answer("q2", None, "")],
        started_at=_NOW,
        completed_at=_NOW,
    )
    rrow = response_to_row(response)
    assert "id" not in rrow
    assert rrow["participant_id"] == "p1"
    assert row_to_response(rrow).to_dict() == response.to_dict()
    print("  [PASS]")


def test_03_probe_never_raises() -> None:
    assert SupabaseStore("postgresql://u:p@127.0.0.1:1/db", connect_timeout=1).is_available() is False
    assert SupabaseStore("not-a-url").is_available() is False
    print("  [PASS]")


def test_04_api_lifecycle() -> None:
    client = _client()

    r = client.post("/assessments", json={
        "organization_name": "Acme Corp",
        "consultant_id": "c1",
        "departments": ["Sales", "Engineering"],
    })
    assert r.status_code == 200, r.text
    body = r.json()
    aid = body["id"]
    assert [d["id"] for d in body["departments"]] == ["sales", "engineer"]
    questions = body["questions"]

    r = client.post(f"/assessments/{aid}/departments", json={"name": "sales"})
    assert r.status_code == 409
    assert "already exists" in r.json()["detail"]
    assert client.post(f"/assessments/{aid}/departments", json={"name": "!!!"}).status_code == 422

    r = client.post(f"/assessments/{aid}/responses", json={
        "participant_id": "m1", "role": "management", "department": "sales",
        "responses": _answers(questions, 8),
    })
    assert r.status_code == 200, r.text
    r = client.post(f"/assessments/{aid}/responses", json={
        "participant_id": "e1", "role": "employee", "department": "sales",
        "responses": _answers(questions, 4),
    })
    assert r.json()["responseCount"] == {"management": 1, "employee": 1}

    analysis = client.get(f"/assessments/{aid}/analysis").json()
    assert analysis["overallAlignment"] == 60.0
    assert len(analysis["criticalGaps"]) == 4

    insights = client.get(f"/assessments/{aid}/insights").json()
    assert insights["totalDepartments"] == 2

    r = client.get(f"/assessments/{aid}/export/department_performance")
    assert r.status_code == 200
    assert r.text.startswith("department,overallScore")
    assert "Acme_Corp_department_performance" in r.headers["content-disposition"]
    assert client.get(f"/assessments/{aid}/export/pdf").status_code == 400

    r = client.get(f"/assessments/{aid}/summary-context", params={"role": "employee", "department": "sales"})
    assert r.status_code == 200
    assert "- Department: Sales" in r.json()["prompt"]

    r = client.patch(f"/assessments/{aid}/status", json={"status": "locked"})
    assert r.status_code == 200
    assert r.json()["lockedAt"] is not None

    r = client.post(f"/assessments/{aid}/responses", json={
        "participant_id": "e2", "role": "employee", "department": "sales",
    })
    assert r.status_code == 409
    assert client.patch(f"/assessments/{aid}/status", json={"status": "collecting"}).status_code == 409

    code = client.post("/access-codes/validate", json={"code": body["accessCode"]}).json()
    assert code["assessmentId"] == aid
    assert code["isExpired"] is True
    assert code["isValid"] is False

    assert client.get("/assessments/missing").status_code == 404
    r = client.post("/assessments", json={"organization_name": "X", "template_id": "nope"})
    assert r.status_code == 400
    print("  [PASS]")


def test_05_api_demo_and_migration() -> None:
    client = _client()

    r = client.post("/demo")
    assert r.json()["status"] == "available"
    assert r.json()["assessment"]["responseCount"] == {"management": 12, "employee": 24}
    assert client.delete("/assessments/demo-org").status_code == 200
    assert client.post("/demo").json()["status"] == "deleted"
    assert client.post("/demo/restore").json()["assessment"]["id"] == "demo-org"

    body = client.post("/assessments", json={
        "organization_name": "Beta", "departments": ["Sales"],
    }).json()
    store = app.state.store
    planted = ParticipantResponse(
        assessment_id=body["id"], participant_id="p1", role="employee", department="SAL",
    )
    store.cache.add_response(planted)
    store.remote.add_response(planted)

    diagnosis = client.get(f"/assessments/{body['id']}/diagnosis").json()
    assert diagnosis["corruptedCount"] == 1

    migration = client.post(f"/assessments/{body['id']}/migrate").json()
    assert migration["success"] is True
    assert migration["summary"] == "Migration completed successfully. Fixed 1 responses."

    sync = client.post("/sync").json()
    assert sync["errors"] == []
    print("  [PASS]")


def main() -> None:
    tests = [
        test_01_parse_database_url,
        test_02_row_mapping,
        test_03_probe_never_raises,
        test_04_api_lifecycle,
        test_05_api_demo_and_migration,
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
