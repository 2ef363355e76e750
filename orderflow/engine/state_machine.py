"""
Workflow state machine.

``transition`` is the only code path that changes a workflow's status or its
production fields. Validation happens before the database is touched; the
workflow update and its audit row commit together; notifications are queued
only after that commit.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from sqlalchemy.orm import Session

from orderflow.engine.audit import append_workflow_log, workflow_history
from orderflow.engine.datemath import utcnow
from orderflow.engine.dispatcher import NotificationDispatcher, TransitionEvent, notify_after_commit
from orderflow.engine.errors import NotFoundError, ValidationError
from orderflow.engine.tx import atomic
from orderflow.models import WorkflowLogModel, WorkflowModel, WorkflowStatus

logger = logging.getLogger(__name__)

# status → timestamp column stamped when the workflow enters that status
STAGE_TIMESTAMPS: dict[WorkflowStatus, Optional[str]] = {
    WorkflowStatus.PENDING: None,
    WorkflowStatus.SUBMITTED: "submitted_at",
    WorkflowStatus.IN_PROGRESS: "design_started_at",
    WorkflowStatus.DESIGN_UPLOADED: "design_uploaded_at",
    WorkflowStatus.ORDER_REQUESTED: "order_requested_at",
    WorkflowStatus.ORDER_APPROVED: "order_approved_at",
    WorkflowStatus.COMPLETED: "completed_at",
    WorkflowStatus.SHIPPED: "shipped_at",
    WorkflowStatus.CANCELLED: None,
}

TERMINAL_STATUSES = frozenset({WorkflowStatus.COMPLETED, WorkflowStatus.SHIPPED, WorkflowStatus.CANCELLED})

MAX_TEXT_LENGTH = 2000


# ---------------------------------------------------------------------------
# Patch schema: field name → validator, applied by plain setattr
# ---------------------------------------------------------------------------

def _text(name: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string", field=name)
    value = value.strip()
    if len(value) > MAX_TEXT_LENGTH:
        raise ValidationError(f"{name} is too long (max {MAX_TEXT_LENGTH})", field=name)
    return value or None


def _url(name: str, value: Any) -> Optional[str]:
    value = _text(name, value)
    if value is None:
        return None
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"{name} must be an http(s) URL", field=name)
    return value


PATCH_FIELDS: dict[str, Callable[[str, Any], Optional[str]]] = {
    "design_url": _url,
    "final_url": _url,
    "courier": _text,
    "tracking_number": _text,
    "revision_note": _text,
    "admin_note": _text,
}


def validate_patch(fields: Optional[dict[str, Any]]) -> dict[str, Optional[str]]:
    fields = fields or {}
    unknown = sorted(set(fields) - set(PATCH_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown workflow fields: {', '.join(unknown)}", fields=unknown)
    return {name: PATCH_FIELDS[name](name, value) for name, value in fields.items()}


def parse_status(value: Any) -> WorkflowStatus:
    try:
        return WorkflowStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown workflow status: {value}", field="status") from None


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

@dataclass
class TransitionResult:
    workflow: WorkflowModel
    from_status: str
    changed: bool
    log: Optional[WorkflowLogModel] = None
    notification: Optional[Future] = None


def get_workflow(db: Session, workflow_id: str) -> WorkflowModel:
    workflow = db.get(WorkflowModel, workflow_id)
    if workflow is None:
        raise NotFoundError("Workflow", workflow_id)
    return workflow


def get_history(db: Session, workflow_id: str) -> list[WorkflowLogModel]:
    get_workflow(db, workflow_id)
    return workflow_history(db, workflow_id)


def transition(
    db: Session,
    workflow_id: str,
    target_status: Any,
    actor: str,
    fields: Optional[dict[str, Any]] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Move a workflow to ``target_status`` and apply optional fields.

    Terminal statuses are not locked: an admin may reopen a workflow, which
    is logged like any other change. A target equal to the current status
    leaves the status (and its timestamp) untouched but still applies
    ``fields``; only an actual status change writes a WorkflowLog row and
    queues a notification.
    A supplied ``revision_note`` always bumps ``revision_count``.
    """
    target = parse_status(target_status)
    patch = validate_patch(fields)
    actor = actor or "admin"
    now = now or utcnow()

    with atomic(db, "workflow transition"):
        workflow = (
            db.query(WorkflowModel)
            .filter(WorkflowModel.id == workflow_id)
            .with_for_update()
            .first()
        )
        if workflow is None:
            raise NotFoundError("Workflow", workflow_id)

        from_status = workflow.status
        for name, value in patch.items():
            if name == "revision_note" and value is None:
                continue
            setattr(workflow, name, value)
        if patch.get("revision_note"):
            workflow.revision_count = (workflow.revision_count or 0) + 1

        changed = target.value != from_status
        log = None
        if changed:
            if from_status in TERMINAL_STATUSES:
                logger.warning("Workflow %s reopened from terminal status %s by %s", workflow_id, from_status, actor)
            workflow.status = target.value
            stamp = STAGE_TIMESTAMPS[target]
            if stamp:
                setattr(workflow, stamp, now)
            log = append_workflow_log(
                db,
                workflow_id=workflow.id,
                from_status=from_status,
                to_status=target.value,
                changed_by=actor,
                note=patch.get("admin_note"),
            )

    logger.info(
        "Workflow %s: %s -> %s by %s (changed=%s)",
        workflow_id, from_status, target.value, actor, changed,
    )

    result = TransitionResult(workflow=workflow, from_status=from_status, changed=changed, log=log)
    if changed:
        result.notification = notify_after_commit(dispatcher, TransitionEvent(
            workflow_id=workflow.id,
            owner_id=workflow.owner_id,
            workflow_type=workflow.type,
            from_status=from_status,
            to_status=target.value,
            actor=actor,
            design_url=workflow.design_url,
            tracking_number=workflow.tracking_number,
            courier=workflow.courier,
        ))
    return result


def delete_workflow(db: Session, workflow_id: str) -> None:
    """Administrative delete; the workflow's logs go with it."""
    with atomic(db, "workflow delete"):
        workflow = db.get(WorkflowModel, workflow_id)
        if workflow is None:
            raise NotFoundError("Workflow", workflow_id)
        db.delete(workflow)
    logger.info("Deleted workflow %s", workflow_id)

