"""
워크플로우 API 라우터
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orderflow.database import get_db
from orderflow.deps import get_dispatcher
from orderflow.engine import state_machine
from orderflow.engine.dispatcher import NotificationDispatcher
from orderflow.models import WorkflowLogModel, WorkflowModel
from orderflow.schemas.workflow import (
    WorkflowDetailResponse,
    WorkflowLogResponse,
    WorkflowResponse,
    WorkflowTransitionResponse,
    WorkflowUpdateRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()

_WORKFLOW_FIELDS = tuple(WorkflowResponse.model_fields)


def transform_workflow(model: WorkflowModel) -> WorkflowResponse:
    """WorkflowModel을 WorkflowResponse로 변환"""
    return WorkflowResponse(**{name: getattr(model, name) for name in _WORKFLOW_FIELDS})


def transform_log(model: WorkflowLogModel) -> WorkflowLogResponse:
    return WorkflowLogResponse(
        id=model.id,
        from_status=model.from_status,
        to_status=model.to_status,
        changed_by=model.changed_by,
        note=model.note,
        created_at=model.created_at,
    )


# ── GET /api/workflows/{id} ──────────────────────────────────────────────────
@router.get("/workflows/{workflow_id}", response_model=WorkflowDetailResponse)
def get_workflow(workflow_id: str, db: Session = Depends(get_db)):
    """워크플로우 상세 + 변경 이력"""
    workflow = state_machine.get_workflow(db, workflow_id)
    history = state_machine.get_history(db, workflow_id)
    return WorkflowDetailResponse(
        **transform_workflow(workflow).model_dump(),
        history=[transform_log(log) for log in history],
    )


# ── PATCH /api/workflows/{id} ────────────────────────────────────────────────
@router.patch("/workflows/{workflow_id}", response_model=WorkflowTransitionResponse)
def update_workflow(
    workflow_id: str,
    req: WorkflowUpdateRequest,
    db: Session = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
):
    """상태 변경 (보낸 필드만 반영)"""
    fields = req.model_dump(exclude_unset=True, exclude={"status", "actor"})
    result = state_machine.transition(
        db, workflow_id, req.status, req.actor, fields=fields, dispatcher=dispatcher
    )
    return WorkflowTransitionResponse(
        workflow=transform_workflow(result.workflow),
        changed=result.changed,
        from_status=result.from_status,
    )


# ── DELETE /api/workflows/{id} ───────────────────────────────────────────────
@router.delete("/workflows/{workflow_id}")
def delete_workflow(workflow_id: str, db: Session = Depends(get_db)):
    state_machine.delete_workflow(db, workflow_id)
    return {"success": True, "message": "워크플로우가 삭제되었습니다."}
