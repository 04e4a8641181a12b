"""Submission moderation endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, status

from ..models import ReviewRequest, SubmissionCreate, SubmissionStatus
from .dependencies import ActorDep, SubmissionsDep

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_submission(
    body: SubmissionCreate, actor: ActorDep, submissions: SubmissionsDep
) -> dict[str, Any]:
    created = submissions.create(body.to_document(), actor)
    return {"success": True, "message": "Submission created", "data": created}


@router.get("")
def list_submissions(
    actor: ActorDep,
    submissions: SubmissionsDep,
    status: SubmissionStatus | None = None,
    page: str | None = None,
    limit: str | None = None,
) -> dict[str, Any]:
    result = submissions.list(actor, status=status, page=page, limit=limit)
    return {
        "success": True,
        "data": result.items,
        "pagination": {
            "page": result.page,
            "limit": result.limit,
            "total": result.total,
            "pages": result.pages,
        },
    }


# Role checks for review actions belong to the gateway in front of this service.
@router.post("/{submission_id}/approve")
def approve_submission(
    submission_id: str,
    actor: ActorDep,
    submissions: SubmissionsDep,
    body: ReviewRequest | None = None,
) -> dict[str, Any]:
    result = submissions.approve(
        submission_id, actor, body.review_note if body is not None else None
    )
    return {
        "success": True,
        "message": "Submission approved and added to diseaseData",
        "data": {"submission": result.submission, "created": result.created},
    }


@router.post("/{submission_id}/reject")
def reject_submission(
    submission_id: str,
    actor: ActorDep,
    submissions: SubmissionsDep,
    body: ReviewRequest | None = None,
) -> dict[str, Any]:
    rejected = submissions.reject(
        submission_id, actor, body.review_note if body is not None else None
    )
    return {"success": True, "message": "Submission rejected", "data": rejected}
