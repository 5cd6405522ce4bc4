"""
Assessment Store — orchestrates the local cache and the remote store.

Reads:   remote first when it answers is_available(); on error or an empty
         result fall back to the local cache. Collections merge by identity
         with remote precedence (remote entries, then local-only entries).
Writes:  local cache first, synchronously; then the remote store as best
         effort. A remote failure is logged and never undoes the local write.

Lifecycle rules (status, locking, departments, access codes) are enforced
here before anything is written. Aggregates are recomputed whenever the
responses behind them change.
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Sequence, TypeVar

from survey_kernel.aggregation import needs_recompute, refresh_aggregates
from survey_kernel.constants import (
    DEMO_ASSESSMENT_ID,
    DEMO_DELETED_FLAG_KEY,
    STATUS_COLLECTING,
    STATUS_LOCKED,
)
from survey_kernel.diagnostics import classify_department
from survey_kernel.domain_types import (
    CAUSE_TRUNCATION,
    Assessment,
    ParticipantResponse,
    Question,
    utc_now,
)
from survey_kernel.identifiers import (
    AccessCodeValidation,
    build_department,
    department_access_codes,
    generate_unique_access_code,
    validate_access_code,
)
from survey_kernel.invariants import (
    AssessmentNotFoundError,
    ValidationError,
    check_department_name,
    check_role,
    check_status_transition,
    check_unlocked,
)
from survey_seed.demo_data import build_demo_assessment
from survey_seed.question_templates import DEFAULT_TEMPLATE_ID, get_template

from .local_cache import LocalCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


def merge_by_key(
    remote: Iterable[T],
    local: Iterable[T],
    key: Callable[[T], Hashable],
) -> List[T]:
    """Remote entries in order, then local entries whose key remote lacks."""
    merged: List[T] = []
    seen = set()
    for item in remote:
        k = key(item)
        if k not in seen:
            seen.add(k)
            merged.append(item)
    for item in local:
        k = key(item)
        if k not in seen:
            seen.add(k)
            merged.append(item)
    return merged


@dataclass
class SyncResult:
    assessments: int = 0
    responses: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "assessments": self.assessments,
            "responses": self.responses,
            "errors": list(self.errors),
        }


class AssessmentStore:
    """
    Hybrid access manager over an injected LocalCache and an optional
    remote store (SupabaseStore, InMemoryRemoteStore, or anything with the
    same methods). remote=None means local-only mode.
    """

    def __init__(
        self,
        cache: LocalCache,
        remote: Any = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._cache = cache
        self._remote = remote
        self._rng = rng
        self._clock = clock

    @property
    def cache(self) -> LocalCache:
        return self._cache

    @property
    def remote(self) -> Any:
        return self._remote

    # ------------------------------------------------------------------
    # Tier helpers
    # ------------------------------------------------------------------

    def remote_available(self) -> bool:
        if self._remote is None:
            return False
        try:
            return bool(self._remote.is_available())
        except Exception as exc:
            logger.warning("Remote availability check failed: %s", exc)
            return False

    def _read_remote(self, operation: str, *args: Any) -> Any:
        """Remote read result, or None when the remote tier cannot answer."""
        if not self.remote_available():
            logger.warning("Remote store unavailable; %s served from local cache", operation)
            return None
        try:
            return getattr(self._remote, operation)(*args)
        except Exception as exc:
            logger.warning("Remote %s failed, using local cache: %s", operation, exc)
            return None

    def _write_remote(self, operation: str, *args: Any) -> bool:
        if self._remote is None:
            return False
        try:
            getattr(self._remote, operation)(*args)
            return True
        except Exception as exc:
            logger.warning("Remote %s failed; local cache keeps the write: %s", operation, exc)
            return False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_assessments(self) -> List[Assessment]:
        local = self._cache.list_assessments()
        remote = self._read_remote("list_assessments")
        if not remote:
            return local
        return merge_by_key(remote, local, key=lambda a: a.id)

    def get_assessment(self, assessment_id: str) -> Optional[Assessment]:
        """
        Remote first, local fallback. Stale aggregates (responses counted
        but no department breakdown) are recomputed and saved on the way out.
        """
        assessment = self._read_remote("get_assessment", assessment_id)
        if assessment is None:
            assessment = self._cache.get_assessment(assessment_id)
        if assessment is None:
            return None
        if needs_recompute(assessment):
            logger.info("Recomputing stale aggregates for %s", assessment_id)
            assessment = refresh_aggregates(assessment, self.list_responses(assessment_id))
            self.save_assessment(assessment)
        return assessment

    def require_assessment(self, assessment_id: str) -> Assessment:
        assessment = self.get_assessment(assessment_id)
        if assessment is None:
            raise AssessmentNotFoundError(assessment_id)
        return assessment

    def list_responses(
        self,
        assessment_id: Optional[str] = None,
        role: Optional[str] = None,
    ) -> List[ParticipantResponse]:
        local = self._cache.list_responses(assessment_id, role)
        remote = self._read_remote("list_responses", assessment_id, role)
        if not remote:
            return local
        return merge_by_key(remote, local, key=lambda r: r.key)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_assessment(self, assessment: Assessment) -> None:
        self._cache.save_assessment(assessment)
        self._write_remote("save_assessment", assessment)

    def create_assessment(
        self,
        organization_name: str,
        consultant_id: str,
        department_names: Sequence[str] = (),
        template_id: Optional[str] = None,
        questions: Optional[List[Question]] = None,
        assessment_id: Optional[str] = None,
    ) -> Assessment:
        name = (organization_name or "").strip()
        if not name:
            raise ValidationError("organization_name", "Organization name is required")
        new_id = assessment_id or uuid.uuid4().hex
        if self.get_assessment(new_id) is not None:
            raise ValidationError("duplicate_assessment", f"Assessment {new_id!r} already exists")

        if questions is not None:
            chosen = list(questions)
            source: Dict[str, Any] = {"source": "custom"}
        else:
            template = get_template(template_id or DEFAULT_TEMPLATE_ID)
            chosen = template.fresh_questions()
            source = (
                {"source": "template", "templateId": template.id}
                if template_id else {"source": "default"}
            )

        existing_codes = [a.access_code for a in self.list_assessments()]
        assessment = Assessment(
            id=new_id,
            organization_name=name,
            consultant_id=consultant_id,
            status=STATUS_COLLECTING,
            created=self._clock(),
            access_code=generate_unique_access_code(name, existing_codes, self._rng),
            questions=chosen,
            question_source=source,
        )
        for dept_name in department_names:
            cleaned = check_department_name(assessment, dept_name)
            assessment.departments.append(
                build_department(name, cleaned, assessment.departments)
            )

        self.save_assessment(assessment)
        logger.info("Created assessment %s for %r", new_id, name)
        return assessment.copy()

    def update_assessment_status(self, assessment_id: str, status: str) -> Assessment:
        """
        collecting <-> ready freely; locking is final, stamps locked_at and
        expires the access code. Re-applying the current status is a no-op.
        """
        assessment = self.require_assessment(assessment_id)
        if assessment.status == status:
            return assessment
        check_status_transition(assessment.status, status)
        assessment.status = status
        if status == STATUS_LOCKED:
            now = self._clock()
            assessment.locked_at = now
            assessment.code_expiration = now
        self.save_assessment(assessment)
        return assessment

    def regenerate_access_code(self, assessment_id: str) -> Assessment:
        assessment = self.require_assessment(assessment_id)
        check_unlocked(assessment, "regenerate access code for")
        others = [
            a.access_code for a in self.list_assessments() if a.id != assessment_id
        ] + [assessment.access_code]
        assessment.access_code = generate_unique_access_code(
            assessment.organization_name, others, self._rng
        )
        assessment.code_regenerated_at = self._clock()
        assessment.code_expiration = None
        self.save_assessment(assessment)
        return assessment

    def add_department_to_assessment(self, assessment_id: str, department_name: str) -> Assessment:
        assessment = self.require_assessment(assessment_id)
        check_unlocked(assessment, "add department to")
        cleaned = check_department_name(assessment, department_name)
        assessment.departments.append(
            build_department(assessment.organization_name, cleaned, assessment.departments)
        )
        assessment = refresh_aggregates(assessment, self.list_responses(assessment_id))
        self.save_assessment(assessment)
        return assessment

    def regenerate_department_codes(
        self, assessment_id: str, department_id: Optional[str] = None
    ) -> Assessment:
        """New codes for one department, or for all when department_id is None."""
        assessment = self.require_assessment(assessment_id)
        check_unlocked(assessment, "regenerate department codes for")
        targets = [
            d for d in assessment.departments
            if department_id is None or d.id == department_id
        ]
        if department_id is not None and not targets:
            raise ValidationError(
                "unknown_department",
                f"Department {department_id!r} is not configured on this assessment",
            )
        now_ms = int(self._clock().timestamp() * 1000)
        for dept in targets:
            dept.management_code, dept.employee_code = department_access_codes(
                assessment.organization_name, dept.name, now_ms
            )
        self.save_assessment(assessment)
        return assessment

    def remove_department(self, assessment_id: str, department_id: str) -> Assessment:
        """Responses of the removed department become orphaned and drop out of aggregates."""
        assessment = self.require_assessment(assessment_id)
        check_unlocked(assessment, "remove department from")
        if assessment.find_department(department_id) is None:
            raise ValidationError(
                "unknown_department",
                f"Department {department_id!r} is not configured on this assessment",
            )
        assessment.departments = [d for d in assessment.departments if d.id != department_id]
        assessment = refresh_aggregates(assessment, self.list_responses(assessment_id))
        self.save_assessment(assessment)
        return assessment

    def add_response(self, response: ParticipantResponse) -> Assessment:
        """
        Upsert a participant response and return the assessment with
        refreshed aggregates. A truncated department value with an
        unambiguous target is stored as the full department id.
        """
        assessment = self.get_assessment(response.assessment_id)
        if assessment is None:
            raise AssessmentNotFoundError(response.assessment_id)
        check_unlocked(assessment, "add response to")
        check_role(response.role)

        stored = response.copy()
        ref = classify_department(stored.department, assessment.department_ids())
        if not ref.is_valid:
            if ref.cause == CAUSE_TRUNCATION and ref.suggested_id is not None:
                logger.info(
                    "Storing department %r as %r for participant %s",
                    stored.department, ref.suggested_id, stored.participant_id,
                )
                stored.department = ref.suggested_id
            else:
                logger.warning(
                    "Response %s has department %r not configured on %s; "
                    "it will be excluded from aggregates",
                    stored.participant_id, stored.department, assessment.id,
                )

        self._cache.add_response(stored)
        self._write_remote("add_response", stored)

        assessment = refresh_aggregates(assessment, self.list_responses(assessment.id))
        self.save_assessment(assessment)
        return assessment

    def delete_assessment(self, assessment_id: str) -> bool:
        """
        Delete from both tiers. Deleting the demo assessment records a
        persistent flag so it is not seeded again.
        """
        existed_locally = self._cache.delete_assessment(assessment_id)
        existed_remotely = False
        if self._remote is not None:
            try:
                existed_remotely = bool(self._remote.delete_assessment(assessment_id))
            except Exception as exc:
                logger.warning("Remote delete of %s failed: %s", assessment_id, exc)
        if assessment_id == DEMO_ASSESSMENT_ID:
            self._cache.set_flag(DEMO_DELETED_FLAG_KEY)
        return existed_locally or existed_remotely

    def recompute_aggregates(self, assessment_id: str) -> Assessment:
        assessment = self.require_assessment(assessment_id)
        assessment = refresh_aggregates(assessment, self.list_responses(assessment_id))
        self.save_assessment(assessment)
        return assessment

    def validate_access_code(self, code: str) -> AccessCodeValidation:
        return validate_access_code(code, self.list_assessments(), self._clock())

    # ------------------------------------------------------------------
    # Bulk sync
    # ------------------------------------------------------------------

    def sync_local_to_remote(self) -> SyncResult:
        """Push every cached assessment, then every cached response."""
        result = SyncResult()
        if not self.remote_available():
            result.errors.append("Remote store unavailable")
            return result

        for assessment in self._cache.list_assessments():
            try:
                self._remote.save_assessment(assessment)
                result.assessments += 1
            except Exception as exc:
                result.errors.append(f"Failed to sync assessment {assessment.id}: {exc}")
        for response in self._cache.list_responses():
            try:
                self._remote.add_response(response)
                result.responses += 1
            except Exception as exc:
                result.errors.append(
                    f"Failed to sync response {response.participant_id}: {exc}"
                )
        logger.info(
            "Synced %d assessments and %d responses to remote store",
            result.assessments, result.responses,
        )
        return result

    # ------------------------------------------------------------------
    # Demo assessment
    # ------------------------------------------------------------------

    def ensure_demo_assessment(self) -> Optional[Assessment]:
        """Return the demo, seeding it unless it was deliberately deleted."""
        existing = self.get_assessment(DEMO_ASSESSMENT_ID)
        if existing is not None:
            return existing
        if self._cache.get_flag(DEMO_DELETED_FLAG_KEY):
            return None

        assessment, responses = build_demo_assessment(now=self._clock())
        self.save_assessment(assessment)
        self._cache.add_responses(responses)
        if self.remote_available():
            for response in responses:
                if not self._write_remote("add_response", response):
                    break
        assessment = refresh_aggregates(assessment, responses)
        self.save_assessment(assessment)
        logger.info("Seeded demo assessment with %d responses", len(responses))
        return assessment

    def restore_demo_assessment(self) -> Optional[Assessment]:
        self._cache.set_flag(DEMO_DELETED_FLAG_KEY, False)
        return self.ensure_demo_assessment()
