"""
Design proofs: versioned design drafts with feedback threads.

A design belongs to exactly one workflow. Uploading a version resets the
design to DRAFT; moving it to PENDING_REVIEW or APPROVED also advances the
workflow through ``state_machine.transition`` so the step lands in the
workflow's audit trail:

    PENDING_REVIEW  + workflow IN_PROGRESS    → DESIGN_UPLOADED
    APPROVED        + workflow DESIGN_UPLOADED → ORDER_REQUESTED

The design write and the workflow transition are separate transactions.
Repeating a status change is harmless: the workflow step only fires while
the workflow still sits in the source status.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import case
from sqlalchemy.orm import Session

from orderflow.engine import state_machine
from orderflow.engine.datemath import utcnow
from orderflow.engine.dispatcher import DesignEvent, NotificationDispatcher, notify_after_commit
from orderflow.engine.errors import InvalidStateError, NotFoundError, ValidationError
from orderflow.engine.tx import atomic
from orderflow.models import (
    DesignFeedbackModel,
    DesignModel,
    DesignStatus,
    DesignVersionModel,
    WorkflowModel,
    WorkflowStatus,
)

logger = logging.getLogger(__name__)

# design status → (workflow status it applies to, workflow status it moves to)
WORKFLOW_SYNC: dict[DesignStatus, tuple[WorkflowStatus, WorkflowStatus]] = {
    DesignStatus.PENDING_REVIEW: (WorkflowStatus.IN_PROGRESS, WorkflowStatus.DESIGN_UPLOADED),
    DesignStatus.APPROVED: (WorkflowStatus.DESIGN_UPLOADED, WorkflowStatus.ORDER_REQUESTED),
}

AUTHOR_TYPES = ("admin", "client")

# 목록 정렬: 검토 대기 / 수정 요청이 먼저
LIST_PRIORITY = {
    DesignStatus.PENDING_REVIEW.value: 0,
    DesignStatus.REVISION_REQUESTED.value: 1,
    DesignStatus.DRAFT.value: 2,
    DesignStatus.APPROVED.value: 3,
}


@dataclass
class DesignListing:
    designs: list[DesignModel]
    stats: dict[str, int]


@dataclass
class DesignStatusResult:
    design: DesignModel
    previous_status: str
    transition: Optional[state_machine.TransitionResult] = None
    notification: Optional[Future] = field(default=None, repr=False)


@dataclass
class FeedbackResult:
    feedback: DesignFeedbackModel
    design: DesignModel
    notification: Optional[Future] = field(default=None, repr=False)


def parse_design_status(value: Any) -> DesignStatus:
    try:
        return DesignStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown design status: {value}", field="status") from None


def _design_url(url: Any) -> str:
    value = state_machine.validate_patch({"design_url": url})["design_url"]
    if value is None:
        raise ValidationError("url is required", field="url")
    return value


def _lock_design(db: Session, design_id: str) -> DesignModel:
    design = (
        db.query(DesignModel)
        .filter(DesignModel.id == design_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if design is None:
        raise NotFoundError("Design", design_id)
    return design


def _latest_version(design: DesignModel) -> Optional[DesignVersionModel]:
    return design.versions[-1] if design.versions else None


def _event(design: DesignModel, kind: str, feedback: Optional[str] = None) -> DesignEvent:
    return DesignEvent(
        design_id=design.id,
        owner_id=design.workflow.owner_id,
        workflow_type=design.workflow.type,
        kind=kind,
        version=design.current_version,
        feedback=feedback,
    )


# ── 조회 ─────────────────────────────────────────────────────────────────────
def get_design(db: Session, design_id: str) -> DesignModel:
    design = db.get(DesignModel, design_id)
    if design is None:
        raise NotFoundError("Design", design_id)
    return design


def list_designs(db: Session, status: Optional[str] = None, workflow_type: Optional[str] = None) -> DesignListing:
    """검토 대기 우선 (상태 → 최근 수정 순) + 상태별 통계"""
    query = db.query(DesignModel).join(WorkflowModel, DesignModel.workflow_id == WorkflowModel.id)
    if status:
        query = query.filter(DesignModel.status == parse_design_status(status).value)
    if workflow_type:
        query = query.filter(WorkflowModel.type == workflow_type)
    priority = case(LIST_PRIORITY, value=DesignModel.status, else_=len(LIST_PRIORITY))
    designs = query.order_by(priority, DesignModel.updated_at.desc()).all()

    counts = {s.value: 0 for s in DesignStatus}
    for (value,) in db.query(DesignModel.status).all():
        counts[value] = counts.get(value, 0) + 1
    stats = {"total": sum(counts.values()), **{k.lower(): v for k, v in counts.items()}}
    return DesignListing(designs=designs, stats=stats)


# ── 생성 / 버전 ──────────────────────────────────────────────────────────────
def create_design(
    db: Session,
    workflow_id: str,
    url: Any,
    actor: str,
    note: Optional[str] = None,
) -> DesignModel:
    """워크플로우의 첫 시안 (v1, DRAFT)"""
    url = _design_url(url)
    actor = actor or "admin"

    with atomic(db, "design create"):
        workflow = state_machine.get_workflow(db, workflow_id)
        if workflow.design is not None:
            raise InvalidStateError(
                f"Workflow {workflow_id} already has a design; add a version instead",
                design_id=workflow.design.id,
            )
        design = DesignModel(workflow_id=workflow.id, status=DesignStatus.DRAFT.value, current_version=1)
        design.versions.append(DesignVersionModel(version=1, url=url, note=note or "최초 시안", uploaded_by=actor))
        db.add(design)

    logger.info("Design %s created for workflow %s by %s", design.id, workflow_id, actor)
    return design


def add_version(
    db: Session,
    design_id: str,
    url: Any,
    actor: str,
    note: Optional[str] = None,
) -> DesignVersionModel:
    """새 버전 업로드. 시안 상태는 DRAFT 로 돌아간다."""
    url = _design_url(url)
    actor = actor or "admin"

    with atomic(db, "design version upload"):
        design = _lock_design(db, design_id)
        number = design.current_version + 1
        version = DesignVersionModel(version=number, url=url, note=note or f"v{number} 업로드", uploaded_by=actor)
        design.versions.append(version)
        design.current_version = number
        design.status = DesignStatus.DRAFT.value

    logger.info("Design %s: v%d uploaded by %s", design_id, number, actor)
    return version


# ── 상태 변경 ────────────────────────────────────────────────────────────────
def change_status(
    db: Session,
    design_id: str,
    status: Any,
    actor: str,
    notify: bool = False,
    dispatcher: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
) -> DesignStatusResult:
    target = parse_design_status(status)
    actor = actor or "admin"
    now = now or utcnow()

    with atomic(db, "design status change"):
        design = _lock_design(db, design_id)
        previous = design.status
        design.status = target.value
        if target == DesignStatus.APPROVED:
            design.approved_at = now
            design.approved_version = design.current_version

    logger.info("Design %s: %s -> %s by %s", design_id, previous, target.value, actor)
    result = DesignStatusResult(design=design, previous_status=previous)

    sync = WORKFLOW_SYNC.get(target)
    if sync is not None and design.workflow.status == sync[0].value:
        fields = None
        if target == DesignStatus.PENDING_REVIEW:
            latest = _latest_version(design)
            fields = {"design_url": latest.url} if latest else None
        result.transition = state_machine.transition(
            db, design.workflow_id, sync[1], actor, fields=fields, dispatcher=dispatcher, now=now
        )

    if notify and target == DesignStatus.PENDING_REVIEW:
        result.notification = notify_after_commit(dispatcher, _event(design, "DESIGN_UPLOADED"))
    elif notify and target == DesignStatus.APPROVED:
        result.notification = notify_after_commit(dispatcher, _event(design, "DESIGN_APPROVED"))
    return result


# ── 피드백 ───────────────────────────────────────────────────────────────────
def add_feedback(
    db: Session,
    design_id: str,
    content: Any,
    author_name: str,
    author_type: str = "admin",
    version_id: Optional[str] = None,
    revision_request: bool = False,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> FeedbackResult:
    """피드백 작성 (version_id 없으면 최신 버전)

    관리자 답변은 고객에게 메일로, 고객의 수정 요청은 시안을
    REVISION_REQUESTED 로 돌리고 관리자에게 알린다.
    """
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("content is required", field="content")
    if author_type not in AUTHOR_TYPES:
        raise ValidationError(f"Unknown author type: {author_type}", field="author_type")
    if revision_request and author_type != "client":
        raise ValidationError("Only a client can request a revision", field="revision_request")
    content = content.strip()

    with atomic(db, "design feedback"):
        design = _lock_design(db, design_id)
        if version_id is None:
            target = _latest_version(design)
            if target is None:
                raise NotFoundError("DesignVersion", None)
        else:
            target = db.get(DesignVersionModel, version_id)
            if target is None or target.design_id != design.id:
                raise NotFoundError("DesignVersion", version_id)

        feedback = DesignFeedbackModel(
            version_id=target.id,
            author_type=author_type,
            author_name=author_name or author_type,
            content=content,
            is_revision_request=revision_request,
        )
        db.add(feedback)
        if revision_request:
            design.status = DesignStatus.REVISION_REQUESTED.value

    logger.info("Design %s: %s feedback on v%d (revision=%s)", design_id, author_type, target.version, revision_request)

    result = FeedbackResult(feedback=feedback, design=design)
    if author_type == "admin":
        result.notification = notify_after_commit(dispatcher, _event(design, "DESIGN_FEEDBACK", content))
    elif revision_request:
        result.notification = notify_after_commit(dispatcher, _event(design, "REVISION_REQUESTED", content))
    return result


def delete_design(db: Session, design_id: str) -> None:
    """시안 삭제 (버전/피드백 포함)"""
    with atomic(db, "design delete"):
        db.delete(get_design(db, design_id))
    logger.info("Deleted design %s", design_id)
