"""
FastAPI Backend — Assessment Store API v1.

Every route goes through one AssessmentStore (local cache + optional
Supabase remote). Aggregates, analysis and exports are computed from the
assessment the store returns.

Endpoints:
  GET/POST /assessments                       — list / create
  GET/DELETE /assessments/{id}                — read (auto-recompute) / delete
  PATCH /assessments/{id}/status              — collecting | ready | locked
  POST /assessments/{id}/responses            — submit a participant response
  GET  /assessments/{id}/analysis|insights    — comparative analysis, ranking
  GET  /assessments/{id}/export/{kind}        — CSV downloads
  POST /assessments/{id}/migrate              — diagnose → repair → verify
  POST /access-codes/validate                 — resolve an access code
  POST /sync                                  — push local cache to remote
"""
from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from typing import Any, Callable, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

# Add project root to path for kernel imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.config import (
    DATABASE_URL,
    FRONTEND_URL,
    LOCAL_CACHE_PATH,
    LOG_LEVEL,
    REMOTE_CONNECT_TIMEOUT,
)
from backend.supabase_store import SupabaseStore

from survey_kernel.analysis import comparative_analysis, consultant_insights
from survey_kernel.constants import ROLE_EMPLOYEE, ROLE_MANAGEMENT
from survey_kernel.domain_types import Answer, Assessment, ParticipantResponse, utc_now
from survey_kernel.export import (
    assessment_summary_csv,
    department_performance_csv,
    export_filename,
)
from survey_kernel.aggregation import department_aggregate
from survey_kernel.invariants import (
    AssessmentLockedError,
    AssessmentNotFoundError,
    DuplicateDepartmentError,
    InvalidStatusTransitionError,
    StoreError,
    ValidationError,
)
from survey_kernel.summary import SummaryContext, format_summary_prompt, summary_statistics
from survey_runtime import AssessmentStore, LocalCache, RepairEngine
from survey_seed.question_templates import DEFAULT_TEMPLATES

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Assessment Store API",
    version="1.0.0",
    description="Management vs employee perception surveys — hybrid store and aggregation",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        FRONTEND_URL,
        "http://localhost:3000",
        "http://localhost:3001",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_EXPORT_KINDS = ("department_performance", "assessment_summary")

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CreateAssessmentRequest(BaseModel):
    organization_name: str
    consultant_id: str = ""
    departments: List[str] = []
    template_id: Optional[str] = None


class StatusRequest(BaseModel):
    status: str


class DepartmentRequest(BaseModel):
    name: str


class RegenerateCodesRequest(BaseModel):
    department_id: Optional[str] = None


class AnswerModel(BaseModel):
    question_id: str
    score: Optional[float] = None
    category: str = ""


class ResponseRequest(BaseModel):
    participant_id: str
    role: str
    department: str = ""
    survey_id: str = ""
    responses: List[AnswerModel] = []
    current_question_index: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class AccessCodeRequest(BaseModel):
    code: str


# ---------------------------------------------------------------------------
# Core helpers
# ---------------------------------------------------------------------------


def build_store() -> AssessmentStore:
    """Wire the cache and, when DATABASE_URL is set, the Supabase remote."""
    remote = None
    if DATABASE_URL:
        remote = SupabaseStore(DATABASE_URL, connect_timeout=REMOTE_CONNECT_TIMEOUT)
        if remote.is_available():
            try:
                remote.ensure_schema()
            except Exception as exc:
                logger.warning("Could not ensure remote schema: %s", exc)
        else:
            logger.warning("Remote store unreachable at startup; serving from local cache")
    else:
        logger.warning("DATABASE_URL not configured; running in local-only mode")
    return AssessmentStore(LocalCache(LOCAL_CACHE_PATH), remote)


def get_store(request: Request) -> AssessmentStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        store = build_store()
        request.app.state.store = store
    return store


def _run(fn: Callable[..., Any], *args: Any) -> Any:
    """Call a store operation, translating store errors to HTTP errors."""
    try:
        return fn(*args)
    except AssessmentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except (DuplicateDepartmentError, AssessmentLockedError, InvalidStatusTransitionError) as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except StoreError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def _require(store: AssessmentStore, assessment_id: str) -> Assessment:
    return _run(store.require_assessment, assessment_id)


# ---------------------------------------------------------------------------
# Health & templates
# ---------------------------------------------------------------------------


@app.get("/health")
def health(store: AssessmentStore = Depends(get_store)):
    return {"status": "ok", "remote": store.remote_available()}


@app.get("/templates")
def list_templates():
    return [t.to_dict() for t in DEFAULT_TEMPLATES]


# ---------------------------------------------------------------------------
# Assessments
# ---------------------------------------------------------------------------


@app.get("/assessments")
def list_assessments(store: AssessmentStore = Depends(get_store)):
    return [a.to_dict() for a in store.list_assessments()]


@app.post("/assessments")
def create_assessment(req: CreateAssessmentRequest, store: AssessmentStore = Depends(get_store)):
    try:
        assessment = _run(
            store.create_assessment,
            req.organization_name,
            req.consultant_id,
            req.departments,
            req.template_id,
        )
    except KeyError as exc:
        # unknown template id
        raise HTTPException(status_code=400, detail=str(exc.args[0]))
    return assessment.to_dict()


@app.get("/assessments/{assessment_id}")
def get_assessment(assessment_id: str, store: AssessmentStore = Depends(get_store)):
    return _require(store, assessment_id).to_dict()


@app.delete("/assessments/{assessment_id}")
def delete_assessment(assessment_id: str, store: AssessmentStore = Depends(get_store)):
    if not store.delete_assessment(assessment_id):
        raise HTTPException(status_code=404, detail="Assessment not found")
    return {"status": "deleted"}


@app.patch("/assessments/{assessment_id}/status")
def update_status(assessment_id: str, req: StatusRequest, store: AssessmentStore = Depends(get_store)):
    return _run(store.update_assessment_status, assessment_id, req.status).to_dict()


@app.post("/assessments/{assessment_id}/access-code/regenerate")
def regenerate_access_code(assessment_id: str, store: AssessmentStore = Depends(get_store)):
    return _run(store.regenerate_access_code, assessment_id).to_dict()


@app.post("/assessments/{assessment_id}/recompute")
def recompute(assessment_id: str, store: AssessmentStore = Depends(get_store)):
    return _run(store.recompute_aggregates, assessment_id).to_dict()


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


@app.post("/assessments/{assessment_id}/departments")
def add_department(assessment_id: str, req: DepartmentRequest, store: AssessmentStore = Depends(get_store)):
    return _run(store.add_department_to_assessment, assessment_id, req.name).to_dict()


@app.post("/assessments/{assessment_id}/departments/regenerate-codes")
def regenerate_department_codes(
    assessment_id: str,
    req: RegenerateCodesRequest,
    store: AssessmentStore = Depends(get_store),
):
    return _run(store.regenerate_department_codes, assessment_id, req.department_id).to_dict()


@app.delete("/assessments/{assessment_id}/departments/{department_id}")
def remove_department(assessment_id: str, department_id: str, store: AssessmentStore = Depends(get_store)):
    return _run(store.remove_department, assessment_id, department_id).to_dict()


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


@app.post("/assessments/{assessment_id}/responses")
def submit_response(assessment_id: str, req: ResponseRequest, store: AssessmentStore = Depends(get_store)):
    """
    Upsert a participant response → refreshed assessment.

    Resubmitting with the same participant_id replaces the earlier answers.
    """
    response = ParticipantResponse(
        assessment_id=assessment_id,
        participant_id=req.participant_id,
        role=req.role,
        department=req.department,
        survey_id=req.survey_id,
        responses=[Answer(a.question_id, a.score, a.category) for a in req.responses],
        current_question_index=req.current_question_index,
        started_at=req.started_at or utc_now(),
        completed_at=req.completed_at,
    )
    return _run(store.add_response, response).to_dict()


@app.get("/assessments/{assessment_id}/responses")
def list_responses(
    assessment_id: str,
    role: Optional[str] = Query(None, description="management or employee"),
    store: AssessmentStore = Depends(get_store),
):
    return [r.to_dict() for r in store.list_responses(assessment_id, role)]


# ---------------------------------------------------------------------------
# Analysis & exports
# ---------------------------------------------------------------------------


@app.get("/assessments/{assessment_id}/analysis")
def get_analysis(assessment_id: str, store: AssessmentStore = Depends(get_store)):
    return comparative_analysis(_require(store, assessment_id)).to_dict()


@app.get("/assessments/{assessment_id}/insights")
def get_insights(assessment_id: str, store: AssessmentStore = Depends(get_store)):
    insights = consultant_insights(_require(store, assessment_id))
    if insights is None:
        raise HTTPException(status_code=404, detail="No department data for this assessment")
    return insights.to_dict()


@app.get("/assessments/{assessment_id}/summary-context")
def get_summary_context(
    assessment_id: str,
    role: str = Query(ROLE_MANAGEMENT, description="management or employee"),
    department: Optional[str] = Query(None, description="department id"),
    store: AssessmentStore = Depends(get_store),
):
    """Context and prompt text for the narrative generator."""
    assessment = _require(store, assessment_id)
    if role not in (ROLE_MANAGEMENT, ROLE_EMPLOYEE):
        raise HTTPException(status_code=400, detail=f"Unknown role {role!r}")

    label: Optional[str] = None
    if department:
        dept = department_aggregate(assessment, department)
        if dept is None:
            raise HTTPException(status_code=404, detail=f"Department {department!r} not found")
        aggregate = dept.management if role == ROLE_MANAGEMENT else dept.employee
        label = dept.department_name
    else:
        aggregate = (
            assessment.management_responses if role == ROLE_MANAGEMENT
            else assessment.employee_responses
        )

    context = SummaryContext.from_role_aggregate(aggregate, label)
    return {
        "context": context.to_dict(),
        "statistics": summary_statistics(context.category_averages, context.overall_average),
        "prompt": format_summary_prompt(context),
    }


@app.get("/assessments/{assessment_id}/export/{kind}")
def export_csv(assessment_id: str, kind: str, store: AssessmentStore = Depends(get_store)):
    if kind not in _EXPORT_KINDS:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown export {kind!r}. Valid kinds: {list(_EXPORT_KINDS)}",
        )
    assessment = _require(store, assessment_id)
    insights = consultant_insights(assessment)
    if insights is None:
        raise HTTPException(status_code=404, detail="No department data for this assessment")

    now = utc_now()
    if kind == "department_performance":
        body = department_performance_csv(assessment, insights)
    else:
        body = assessment_summary_csv(assessment, insights, now)
    filename = export_filename(assessment, kind, now)
    return PlainTextResponse(
        body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# Diagnostics & repair
# ---------------------------------------------------------------------------


@app.get("/assessments/{assessment_id}/diagnosis")
def diagnose(assessment_id: str, store: AssessmentStore = Depends(get_store)):
    return RepairEngine(store).diagnose(assessment_id).to_dict()


@app.post("/assessments/{assessment_id}/repair")
def repair(assessment_id: str, store: AssessmentStore = Depends(get_store)):
    return RepairEngine(store).repair_departments(assessment_id).to_dict()


@app.post("/assessments/{assessment_id}/cleanup")
def cleanup(assessment_id: str, store: AssessmentStore = Depends(get_store)):
    return RepairEngine(store).cleanup_corrupted(assessment_id).to_dict()


@app.post("/assessments/{assessment_id}/migrate")
def migrate(assessment_id: str, store: AssessmentStore = Depends(get_store)):
    return RepairEngine(store).migrate(assessment_id).to_dict()


@app.post("/migrate")
def migrate_all(store: AssessmentStore = Depends(get_store)):
    return RepairEngine(store).migrate_all().to_dict()


# ---------------------------------------------------------------------------
# Access codes, sync, demo
# ---------------------------------------------------------------------------


@app.post("/access-codes/validate")
def validate_access_code(req: AccessCodeRequest, store: AssessmentStore = Depends(get_store)):
    return store.validate_access_code(req.code).to_dict()


@app.post("/sync")
def sync(store: AssessmentStore = Depends(get_store)):
    return store.sync_local_to_remote().to_dict()


@app.post("/demo")
def ensure_demo(store: AssessmentStore = Depends(get_store)):
    demo = store.ensure_demo_assessment()
    if demo is None:
        return {"status": "deleted", "assessment": None}
    return {"status": "available", "assessment": demo.to_dict()}


@app.post("/demo/restore")
def restore_demo(store: AssessmentStore = Depends(get_store)):
    demo = store.restore_demo_assessment()
    return {"status": "available", "assessment": demo.to_dict() if demo else None}
