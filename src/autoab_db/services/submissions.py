"""
Moderation workflow for user-submitted records.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping

import structlog

from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..search.fields import REQUIRED_FIELDS
from ..search.predicates import Equals, Predicate, combine_all
from ..search.query import clamp_int
from ..storage.base import StorageBackend
from ..storage.duckdb import utc_now_iso


logger = structlog.get_logger(__name__)

SUPER_ADMIN_ROLE = "superAdmin"

# Fields copied from an approved submission into the new record.
APPROVED_FIELDS: tuple[str, ...] = (
    "disease",
    "autoantibody",
    "diseaseAssociation",
    "autoantigen",
    "epitope",
    "epitopePrevalence",
    "uniprotId",
    "affinity",
    "avidity",
    "mechanism",
    "isotypeSubclasses",
    "sensitivity",
    "diagnosticMarker",
    "associationWithDiseaseActivity",
    "pathogenesisInvolvement",
    "reference",
    "additional",
)


@dataclass(frozen=True)
class Actor:
    """Caller identity as established by the upstream gateway."""

    id: str
    role: str = "user"

    @property
    def is_super_admin(self) -> bool:
        return self.role == SUPER_ADMIN_ROLE


@dataclass(frozen=True)
class SubmissionPage:
    items: list[dict[str, Any]]
    page: int
    limit: int
    total: int
    pages: int


@dataclass(frozen=True)
class ApprovalResult:
    submission: dict[str, Any]
    created: dict[str, Any]


class SubmissionService:
    def __init__(self, storage: StorageBackend) -> None:
        self.storage = storage

    def create(self, values: Mapping[str, Any], actor: Actor) -> dict[str, Any]:
        for name in REQUIRED_FIELDS:
            value = values.get(name)
            if value is None or not str(value).strip():
                raise ValidationError(f"{name} is required")

        now = utc_now_iso()
        document = {
            **dict(values),
            "submittedBy": actor.id,
            "status": "pending",
            "metadata": {
                **dict(values.get("metadata") or {}),
                "source": "user_submission",
                "dateAdded": now,
                "lastUpdated": now,
                "verified": False,
            },
        }
        created = self.storage.insert_one("submissions", document)
        logger.info("submission_created", submission_id=created["id"], submitted_by=actor.id)
        return created

    def list(
        self,
        actor: Actor,
        *,
        status: str | None = None,
        page: Any = 1,
        limit: Any = 10,
    ) -> SubmissionPage:
        """List submissions, newest first. Non-admins only see their own."""
        conditions: list[Predicate] = []
        if not actor.is_super_admin:
            conditions.append(Equals("submittedBy", actor.id))
        if status:
            conditions.append(Equals("status", status))
        predicate = combine_all(conditions)

        page_number = clamp_int(page, default=1)
        page_size = clamp_int(limit, default=10)
        items = self.storage.find(
            "submissions",
            predicate,
            sort=[("createdAt", "desc")],
            skip=(page_number - 1) * page_size,
            limit=page_size,
        )
        total = self.storage.count("submissions", predicate)
        return SubmissionPage(
            items=items,
            page=page_number,
            limit=page_size,
            total=total,
            pages=math.ceil(total / page_size),
        )

    def approve(
        self, submission_id: str, actor: Actor, review_note: str | None = None
    ) -> ApprovalResult:
        """Copy the submission into a verified record, then mark it approved.

        The two writes are independent: if marking the submission fails the
        record already exists.
        """
        submission = self._load(submission_id)
        if submission.get("status") == "approved":
            raise InvalidTransitionError("Submission already approved")

        now = utc_now_iso()
        record = {name: submission[name] for name in APPROVED_FIELDS if name in submission}
        record["metadata"] = {
            "source": "user_submission_approved",
            "dateAdded": now,
            "lastUpdated": now,
            "verified": True,
            "dataVersion": "1.0",
        }
        created = self.storage.insert_one("records", record)

        reviewed = self._review(submission_id, "approved", actor, review_note)
        logger.info(
            "submission_approved",
            submission_id=submission_id,
            record_id=created["id"],
            reviewed_by=actor.id,
        )
        return ApprovalResult(submission=reviewed, created=created)

    def reject(
        self, submission_id: str, actor: Actor, review_note: str | None = None
    ) -> dict[str, Any]:
        submission = self._load(submission_id)
        if submission.get("status") == "rejected":
            raise InvalidTransitionError("Submission already rejected")
        reviewed = self._review(submission_id, "rejected", actor, review_note)
        logger.info("submission_rejected", submission_id=submission_id, reviewed_by=actor.id)
        return reviewed

    def _load(self, submission_id: str) -> dict[str, Any]:
        submission = self.storage.get("submissions", submission_id)
        if submission is None:
            raise NotFoundError("Submission not found")
        return submission

    def _review(
        self, submission_id: str, status: str, actor: Actor, review_note: str | None
    ) -> dict[str, Any]:
        now = utc_now_iso()
        updated = self.storage.update(
            "submissions",
            submission_id,
            {
                "status": status,
                "reviewedBy": actor.id,
                "reviewedAt": now,
                "reviewNote": review_note,
                "metadata.lastUpdated": now,
            },
        )
        if updated is None:
            raise NotFoundError("Submission not found")
        return updated
