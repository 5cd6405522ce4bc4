"""
Repair Engine — fix or remove responses whose department value is corrupted.

Mapping per corrupted response:
  legacy abbreviation (only if its target is configured)
  → unique prefix match
  → error "cannot determine correct department"

Remote repair issues one targeted update per response and mirrors every
fix into the local cache. Local repair works on the cached collections
alone and also re-derives truncated department ids in the assessment
configuration. Neither is transactional: a failed record is reported and
the rest continue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from survey_kernel.aggregation import refresh_aggregates
from survey_kernel.diagnostics import DiagnosisReport, classify_department, diagnose_assessment
from survey_kernel.domain_types import Assessment, ParticipantResponse
from survey_kernel.identifiers import department_slug
from survey_kernel.invariants import StoreError

from .hybrid_store import AssessmentStore

logger = logging.getLogger(__name__)

UNMAPPABLE_REASON = "cannot determine correct department"
CACHE_UNAVAILABLE = "Local cache is not available"


@dataclass
class RepairResult:
    repaired: bool = False
    fixed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"repaired": self.repaired, "fixed": self.fixed, "errors": list(self.errors)}


@dataclass
class CleanupResult:
    cleaned: bool = False
    removed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"cleaned": self.cleaned, "removed": self.removed, "errors": list(self.errors)}


@dataclass
class MigrationStep:
    name: str
    success: bool
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"name": self.name, "success": self.success, "details": self.details}


@dataclass
class MigrationResult:
    success: bool
    operations: List[MigrationStep]
    summary: str

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "operations": [op.to_dict() for op in self.operations],
            "summary": self.summary,
        }


@dataclass
class StoreMigrationResult:
    local_repair: RepairResult
    migrations: Dict[str, MigrationResult] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return all(m.success for m in self.migrations.values())

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "localRepair": self.local_repair.to_dict(),
            "migrations": {k: v.to_dict() for k, v in self.migrations.items()},
        }


def _is_truncated_config_id(dept_id: str, name: str) -> bool:
    return len(dept_id) <= 3 and len(name.strip()) > len(dept_id)


class RepairEngine:
    """Diagnose, repair, clean up and migrate through an AssessmentStore."""

    def __init__(self, store: AssessmentStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Diagnosis
    # ------------------------------------------------------------------

    def diagnose(self, assessment_id: str) -> DiagnosisReport:
        assessment = self._store.get_assessment(assessment_id)
        responses = self._store.list_responses(assessment_id)
        return diagnose_assessment(assessment, responses, assessment_id)

    # ------------------------------------------------------------------
    # Repair
    # ------------------------------------------------------------------

    def repair_departments(self, assessment_id: str) -> RepairResult:
        """Remote repair when the remote tier answers, else local repair."""
        if self._store.remote_available():
            return self._repair_remote(assessment_id)
        logger.warning("Remote store unavailable; repairing %s in local cache", assessment_id)
        return self.repair_local(assessment_id)

    def _repair_remote(self, assessment_id: str) -> RepairResult:
        result = RepairResult()
        remote = self._store.remote
        cache = self._store.cache

        try:
            remote_keys: Set[Tuple[str, str]] = {
                r.key for r in remote.list_responses(assessment_id)
            }
        except Exception as exc:
            logger.warning("Remote read failed during repair of %s: %s", assessment_id, exc)
            local = self.repair_local(assessment_id)
            local.errors.insert(0, f"Remote store unavailable: {exc}")
            local.repaired = False
            return local

        assessment = self._store.get_assessment(assessment_id)
        if assessment is None:
            result.errors.append("Assessment configuration could not be loaded")
            return result

        connectivity_failed = False
        dept_ids = assessment.department_ids()
        for response in self._store.list_responses(assessment_id):
            ref = classify_department(response.department, dept_ids)
            if ref.is_valid or not ref.counts_as_corrupted:
                continue
            pid = response.participant_id
            if ref.suggested_id is None:
                result.errors.append(f"Failed to update response {pid}: {UNMAPPABLE_REASON}")
                continue

            if response.key in remote_keys:
                try:
                    remote.update_response_department(assessment_id, pid, ref.suggested_id)
                except Exception as exc:
                    result.errors.append(f"Failed to update response {pid}: {exc}")
                    if not self._store.remote_available():
                        connectivity_failed = True
                    continue
            try:
                cache.update_response_department(assessment_id, pid, ref.suggested_id)
            except StoreError as exc:
                logger.warning("Could not mirror repair of %s to local cache: %s", pid, exc)
            result.fixed += 1
            logger.info(
                "Repaired response %s: %r -> %r", pid, response.department, ref.suggested_id
            )

        if result.fixed:
            self._store.recompute_aggregates(assessment_id)
        result.repaired = result.fixed > 0 and not connectivity_failed
        return result

    def repair_local(self, assessment_id: Optional[str] = None) -> RepairResult:
        """
        Repair the cached collections directly, for one assessment or all.

        Assessment configs whose department id was itself truncated (id of
        three chars or fewer, longer name) get the full slug back first,
        and responses carrying the old id follow it.
        """
        cache = self._store.cache
        result = RepairResult()
        if cache is None or not cache.available:
            result.errors.append(CACHE_UNAVAILABLE)
            return result

        assessments = [
            a for a in cache.list_assessments()
            if assessment_id is None or a.id == assessment_id
        ]
        changed: List[ParticipantResponse] = []
        for assessment in assessments:
            renamed = self._repair_config(assessment)
            if renamed:
                cache.save_assessment(assessment)

            dept_ids = assessment.department_ids()
            for response in cache.list_responses(assessment.id):
                pid = response.participant_id
                if response.department in renamed:
                    target: Optional[str] = renamed[response.department]
                else:
                    ref = classify_department(response.department, dept_ids)
                    if ref.is_valid or not ref.counts_as_corrupted:
                        continue
                    target = ref.suggested_id
                    if target is None:
                        result.errors.append(
                            f"Failed to update response {pid}: {UNMAPPABLE_REASON}"
                        )
                        continue
                logger.info("Repaired cached response %s: %r -> %r", pid, response.department, target)
                response.department = target
                changed.append(response)

        if changed:
            cache.add_responses(changed)
            touched = {r.assessment_id for r in changed}
            for assessment in assessments:
                if assessment.id in touched:
                    cache.save_assessment(
                        refresh_aggregates(assessment, cache.list_responses(assessment.id))
                    )
        result.fixed = len(changed)
        result.repaired = result.fixed > 0
        return result

    @staticmethod
    def _repair_config(assessment: Assessment) -> Dict[str, str]:
        """Restore truncated department ids in place; returns old id → new id."""
        renamed: Dict[str, str] = {}
        for dept in assessment.departments:
            if not _is_truncated_config_id(dept.id, dept.name):
                continue
            others = [d.id for d in assessment.departments if d is not dept]
            new_id = department_slug(dept.name, others)
            if new_id != dept.id:
                logger.info("Restoring department id %r -> %r on %s", dept.id, new_id, assessment.id)
                renamed[dept.id] = new_id
                dept.id = new_id
        return renamed

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def cleanup_corrupted(self, assessment_id: str) -> CleanupResult:
        """
        Delete corrupted responses that have no repair target.

        Unrecognized values and truncations that could still be repaired
        are left in place.
        """
        result = CleanupResult()
        assessment = self._store.get_assessment(assessment_id)
        if assessment is None:
            result.errors.append("Assessment configuration could not be loaded")
            return result

        remote_up = self._store.remote_available()
        dept_ids = assessment.department_ids()
        for response in self._store.list_responses(assessment_id):
            ref = classify_department(response.department, dept_ids)
            if ref.is_valid or not ref.counts_as_corrupted or ref.suggested_id is not None:
                continue
            pid = response.participant_id
            deleted = self._store.cache.delete_response(assessment_id, pid)
            if remote_up:
                try:
                    deleted = self._store.remote.delete_response(assessment_id, pid) or deleted
                except Exception as exc:
                    result.errors.append(f"Failed to delete response {pid}: {exc}")
                    continue
            if deleted:
                result.removed += 1
                logger.info("Removed corrupted response %s (%r)", pid, response.department)

        if result.removed:
            self._store.recompute_aggregates(assessment_id)
        result.cleaned = not result.errors
        return result

    # ------------------------------------------------------------------
    # Migration
    # ------------------------------------------------------------------

    def migrate(self, assessment_id: str) -> MigrationResult:
        """Diagnose → repair → re-diagnose → cleanup if corruption remains → verify."""
        operations: List[MigrationStep] = []

        before = self.diagnose(assessment_id)
        operations.append(MigrationStep("Diagnosis", True, before.to_dict()))

        repair = self.repair_departments(assessment_id)
        operations.append(MigrationStep(
            "Department Repair",
            repair.repaired or before.corrupted_count == 0,
            repair.to_dict(),
        ))

        after = self.diagnose(assessment_id)
        if after.corrupted_count > 0:
            cleanup = self.cleanup_corrupted(assessment_id)
            operations.append(MigrationStep("Data Cleanup", cleanup.cleaned, cleanup.to_dict()))
            after = self.diagnose(assessment_id)

        success = after.corrupted_count == 0
        operations.append(MigrationStep("Verification", success, after.to_dict()))

        if success:
            summary = f"Migration completed successfully. Fixed {repair.fixed} responses."
        else:
            summary = "Migration completed with errors. Check operation details."
        logger.info("Migration of %s: %s", assessment_id, summary)
        return MigrationResult(success=success, operations=operations, summary=summary)

    def migrate_all(self) -> StoreMigrationResult:
        """Repair the local cache, then migrate every known assessment."""
        outcome = StoreMigrationResult(local_repair=self.repair_local())
        for assessment in self._store.list_assessments():
            outcome.migrations[assessment.id] = self.migrate(assessment.id)
        return outcome
