"""
자료 승인/반려 API 라우터
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orderflow.database import get_db
from orderflow.deps import get_dispatcher
from orderflow.engine.approval import approve_submission, reject_submission
from orderflow.engine.dispatcher import NotificationDispatcher
from orderflow.models import SubmissionModel
from orderflow.routers.workflows import transform_workflow
from orderflow.schemas.workflow import (
    SubmissionApproveRequest,
    SubmissionApproveResponse,
    SubmissionRejectRequest,
    SubmissionResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def transform_submission(model: SubmissionModel) -> SubmissionResponse:
    return SubmissionResponse(
        id=model.id,
        owner_id=model.owner_id,
        status=model.status,
        brand_name=model.brand_name,
        reviewed_by=model.reviewed_by,
        reviewed_at=model.reviewed_at,
        rejection_reason=model.rejection_reason,
        channel_id=model.channel_id,
    )


# ── POST /api/submissions/{id}/approve ───────────────────────────────────────
@router.post("/submissions/{submission_id}/approve", response_model=SubmissionApproveResponse)
def approve(
    submission_id: str,
    req: Optional[SubmissionApproveRequest] = None,
    db: Session = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
):
    """자료 승인 → 워크플로우 일괄 생성"""
    req = req or SubmissionApproveRequest()
    result = approve_submission(
        db, submission_id, req.actor, requested_types=req.workflow_types, dispatcher=dispatcher
    )
    if result.channel_error:
        logger.warning("Submission %s approved without Slack channel: %s", submission_id, result.channel_error)
    return SubmissionApproveResponse(
        submission=transform_submission(result.submission),
        workflows=[transform_workflow(w) for w in result.workflows],
        workflow_count=len(result.workflows),
        created_count=result.created_count,
        reset_count=result.reset_count,
        channel_id=result.channel_id,
        channel_error=result.channel_error,
        message=result.message,
    )


# ── POST /api/submissions/{id}/reject ────────────────────────────────────────
@router.post("/submissions/{submission_id}/reject", response_model=SubmissionResponse)
def reject(
    submission_id: str,
    req: Optional[SubmissionRejectRequest] = None,
    db: Session = Depends(get_db),
):
    req = req or SubmissionRejectRequest()
    submission = reject_submission(db, submission_id, req.actor, req.reason)
    return transform_submission(submission)
