"""
In-memory remote store.

Dict-backed stand-in for the Supabase adapter with the same operations.
Records cross the boundary as serialized dicts, so callers never share
instances with the store. Availability and per-operation failures can
be toggled, which is how degraded mode is exercised without a database.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Set, Tuple

from survey_kernel.domain_types import Assessment, ParticipantResponse
from survey_kernel.invariants import StoreError


class RemoteUnavailableError(StoreError):
    """Raised by the in-memory store while it is offline or told to fail."""


class InMemoryRemoteStore:
    def __init__(self) -> None:
        self._assessments: Dict[str, dict] = {}
        self._responses: Dict[Tuple[str, str], dict] = {}
        self.online: bool = True
        self.fail_operations: Set[str] = set()
        self.fail_participants: Set[str] = set()
        self.calls: List[str] = []

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if not self.online:
            raise RemoteUnavailableError("remote store is offline")
        if operation in self.fail_operations:
            raise RemoteUnavailableError(f"{operation} failed")

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def is_available(self) -> bool:
        self.calls.append("is_available")
        return self.online

    def ensure_schema(self) -> None:
        self._enter("ensure_schema")

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------

    def list_assessments(self) -> List[Assessment]:
        self._enter("list_assessments")
        return [Assessment.from_dict(d) for d in self._assessments.values()]

    def get_assessment(self, assessment_id: str) -> Optional[Assessment]:
        self._enter("get_assessment")
        data = self._assessments.get(assessment_id)
        return Assessment.from_dict(data) if data is not None else None

    def save_assessment(self, assessment: Assessment) -> None:
        self._enter("save_assessment")
        self._assessments[assessment.id] = assessment.to_dict()

    def delete_assessment(self, assessment_id: str) -> bool:
        self._enter("delete_assessment")
        for key in [k for k in self._responses if k[0] == assessment_id]:
            del self._responses[key]
        return self._assessments.pop(assessment_id, None) is not None

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def list_responses(
        self,
        assessment_id: Optional[str] = None,
        role: Optional[str] = None,
    ) -> List[ParticipantResponse]:
        self._enter("list_responses")
        out = [ParticipantResponse.from_dict(d) for d in self._responses.values()]
        return [
            r for r in out
            if (assessment_id is None or r.assessment_id == assessment_id)
            and (role is None or r.role == role)
        ]

    def add_response(self, response: ParticipantResponse) -> None:
        self._enter("add_response")
        if response.assessment_id not in self._assessments:
            raise RemoteUnavailableError(
                f"foreign key violation: assessment {response.assessment_id!r} does not exist"
            )
        self._responses[response.key] = response.to_dict()

    def update_response_department(
        self, assessment_id: str, participant_id: str, department: str
    ) -> bool:
        self._enter("update_response_department")
        if participant_id in self.fail_participants:
            raise RemoteUnavailableError("row is locked")
        data = self._responses.get((assessment_id, participant_id))
        if data is None:
            return False
        data["department"] = department
        return True

    def delete_response(self, assessment_id: str, participant_id: str) -> bool:
        self._enter("delete_response")
        return self._responses.pop((assessment_id, participant_id), None) is not None
