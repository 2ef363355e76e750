"""
Submission approval → workflow batch.

    1. provision a Slack channel (best effort, bounded by the notify timeout)
    2. one transaction: submission → APPROVED, upsert one workflow per
       requested type keyed by (owner, type), one log row per workflow
    3. queue owner / channel / admin notifications

Step 2 converges: re-running it for the same types never duplicates a
workflow, the (owner_id, type) unique constraint backs that up.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from orderflow.engine.audit import append_workflow_log
from orderflow.engine.datemath import utcnow
from orderflow.engine.dispatcher import ApprovalEvent, NotificationDispatcher, notify_after_commit
from orderflow.engine.errors import (
    AlreadyApprovedError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from orderflow.engine.tx import atomic
from orderflow.models import (
    ClientModel,
    SubmissionModel,
    SubmissionStatus,
    WorkflowModel,
    WorkflowStatus,
    WorkflowType,
)

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW_TYPES: tuple[WorkflowType, ...] = (
    WorkflowType.NAMECARD,
    WorkflowType.NAMETAG,
    WorkflowType.CONTRACT,
    WorkflowType.ENVELOPE,
    WorkflowType.WEBSITE,
)

APPROVAL_NOTE = "auto-created by approval"
REAPPROVAL_NOTE = "reset by re-approval"


@dataclass
class ApprovalResult:
    submission: SubmissionModel
    workflows: list[WorkflowModel]
    channel_id: Optional[str]
    created_count: int = 0
    reset_count: int = 0
    channel_error: Optional[str] = None
    notification: Optional[Future] = field(default=None, repr=False)

    @property
    def message(self) -> str:
        return f"승인 완료. {len(self.workflows)}개의 워크플로우가 생성되었습니다."


def parse_workflow_types(requested: Optional[Iterable[str]]) -> list[WorkflowType]:
    if requested is None:
        return list(DEFAULT_WORKFLOW_TYPES)
    types: list[WorkflowType] = []
    for value in requested:
        try:
            wf_type = WorkflowType(value)
        except ValueError:
            raise ValidationError(f"Unknown workflow type: {value}", field="workflow_types") from None
        if wf_type not in types:
            types.append(wf_type)
    if not types:
        raise ValidationError("workflow_types must not be empty", field="workflow_types")
    return types


def _load(db: Session, submission_id: str) -> tuple[SubmissionModel, ClientModel]:
    submission = db.get(SubmissionModel, submission_id)
    if submission is None:
        raise NotFoundError("Submission", submission_id)
    owner = db.get(ClientModel, submission.owner_id)
    if owner is None:
        raise NotFoundError("Client", submission.owner_id)
    return submission, owner


def approve_submission(
    db: Session,
    submission_id: str,
    actor: str,
    requested_types: Optional[Iterable[str]] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
) -> ApprovalResult:
    types = parse_workflow_types(requested_types)
    submission, owner = _load(db, submission_id)
    if submission.status == SubmissionStatus.APPROVED.value:
        raise AlreadyApprovedError(submission_id)

    # 1. Slack 채널 (실패해도 승인 진행)
    channel_id = submission.channel_id
    channel_error = None
    if channel_id is None and dispatcher is not None:
        provisioned = dispatcher.provision_channel(
            owner.id,
            owner.client_name,
            {
                "고객명": owner.name,
                "브랜드": submission.brand_name or owner.client_name,
                "연락처": owner.phone,
                "이메일": owner.email,
            },
        )
        channel_id, channel_error = provisioned.channel_id, provisioned.error

    now = now or utcnow()
    created = reset = 0
    workflows: list[WorkflowModel] = []

    # 2. 승인 + 워크플로우 upsert + 로그 (단일 트랜잭션)
    with atomic(db, "submission approval"):
        submission = (
            db.query(SubmissionModel)
            .filter(SubmissionModel.id == submission_id)
            .with_for_update()
            .populate_existing()
            .one()
        )
        if submission.status == SubmissionStatus.APPROVED.value:
            raise AlreadyApprovedError(submission_id)

        submission.status = SubmissionStatus.APPROVED.value
        submission.reviewed_by = actor
        submission.reviewed_at = now
        submission.rejection_reason = None
        submission.channel_id = channel_id

        for wf_type in types:
            workflow = (
                db.query(WorkflowModel)
                .filter(WorkflowModel.owner_id == owner.id, WorkflowModel.type == wf_type.value)
                .with_for_update()
                .first()
            )
            if workflow is None:
                workflow = WorkflowModel(
                    owner_id=owner.id,
                    type=wf_type.value,
                    status=WorkflowStatus.SUBMITTED.value,
                    submitted_at=now,
                )
                db.add(workflow)
                db.flush()
                append_workflow_log(db, workflow.id, None, WorkflowStatus.SUBMITTED.value, actor, APPROVAL_NOTE)
                created += 1
            else:
                previous = workflow.status
                workflow.status = WorkflowStatus.SUBMITTED.value
                workflow.submitted_at = now
                append_workflow_log(db, workflow.id, previous, WorkflowStatus.SUBMITTED.value, actor, REAPPROVAL_NOTE)
                reset += 1
            workflows.append(workflow)

    logger.info(
        "Approved submission %s by %s: %d created, %d reset, channel=%s",
        submission_id, actor, created, reset, channel_id,
    )

    result = ApprovalResult(
        submission=submission,
        workflows=workflows,
        channel_id=channel_id,
        created_count=created,
        reset_count=reset,
        channel_error=channel_error,
    )

    # 3. 알림 (실패해도 승인 유지)
    result.notification = notify_after_commit(dispatcher, ApprovalEvent(
        submission_id=submission.id,
        owner_id=owner.id,
        channel_id=channel_id,
        workflow_count=len(workflows),
    ))
    return result


def reject_submission(
    db: Session,
    submission_id: str,
    actor: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SubmissionModel:
    """Reject a submission that has not been approved. It may be approved later."""
    with atomic(db, "submission rejection"):
        submission = (
            db.query(SubmissionModel)
            .filter(SubmissionModel.id == submission_id)
            .with_for_update()
            .first()
        )
        if submission is None:
            raise NotFoundError("Submission", submission_id)
        if submission.status == SubmissionStatus.APPROVED.value:
            raise InvalidStateError(f"Approved submission cannot be rejected: {submission_id}")

        submission.status = SubmissionStatus.REJECTED.value
        submission.reviewed_by = actor
        submission.reviewed_at = now or utcnow()
        submission.rejection_reason = reason

    logger.info("Rejected submission %s by %s", submission_id, actor)
    return submission
