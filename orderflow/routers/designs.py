"""
시안 관리 API 라우터
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from orderflow.database import get_db
from orderflow.deps import get_dispatcher
from orderflow.engine import designs
from orderflow.engine.dispatcher import NotificationDispatcher
from orderflow.models import DesignFeedbackModel, DesignModel, DesignVersionModel
from orderflow.schemas.design import (
    DesignCreateRequest,
    DesignDetailResponse,
    DesignFeedbackCreate,
    DesignFeedbackResponse,
    DesignListResponse,
    DesignResponse,
    DesignStatusRequest,
    DesignStatusResponse,
    DesignVersionCreate,
    DesignVersionResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def transform_design(model: DesignModel) -> DesignResponse:
    return DesignResponse(
        id=model.id,
        workflow_id=model.workflow_id,
        workflow_type=model.workflow.type,
        workflow_status=model.workflow.status,
        owner_id=model.workflow.owner_id,
        status=model.status,
        current_version=model.current_version,
        approved_at=model.approved_at,
        approved_version=model.approved_version,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def transform_feedback(model: DesignFeedbackModel) -> DesignFeedbackResponse:
    return DesignFeedbackResponse(
        id=model.id,
        version_id=model.version_id,
        author_type=model.author_type,
        author_name=model.author_name,
        content=model.content,
        is_revision_request=model.is_revision_request,
        created_at=model.created_at,
    )


def transform_version(model: DesignVersionModel) -> DesignVersionResponse:
    return DesignVersionResponse(
        id=model.id,
        version=model.version,
        url=model.url,
        note=model.note,
        uploaded_by=model.uploaded_by,
        created_at=model.created_at,
        feedbacks=[transform_feedback(f) for f in model.feedbacks],
    )


def transform_detail(model: DesignModel) -> DesignDetailResponse:
    # 최신 버전이 먼저
    versions = sorted(model.versions, key=lambda v: v.version, reverse=True)
    return DesignDetailResponse(
        **transform_design(model).model_dump(),
        versions=[transform_version(v) for v in versions],
    )


# ── GET /api/designs ─────────────────────────────────────────────────────────
@router.get("/designs", response_model=DesignListResponse)
def list_designs(
    status: Optional[str] = Query(default=None),
    workflow_type: Optional[str] = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
):
    """시안 목록 (검토 대기 우선) + 상태별 통계"""
    listing = designs.list_designs(db, status=status, workflow_type=workflow_type)
    return DesignListResponse(data=[transform_design(d) for d in listing.designs], stats=listing.stats)


# ── POST /api/designs ────────────────────────────────────────────────────────
@router.post("/designs", response_model=DesignDetailResponse, status_code=201)
def create_design(req: DesignCreateRequest, db: Session = Depends(get_db)):
    """새 시안 (v1 포함)"""
    design = designs.create_design(db, req.workflow_id, req.url, req.actor, note=req.note)
    return transform_detail(design)


# ── GET /api/designs/{id} ────────────────────────────────────────────────────
@router.get("/designs/{design_id}", response_model=DesignDetailResponse)
def get_design(design_id: str, db: Session = Depends(get_db)):
    return transform_detail(designs.get_design(db, design_id))


# ── DELETE /api/designs/{id} ─────────────────────────────────────────────────
@router.delete("/designs/{design_id}")
def delete_design(design_id: str, db: Session = Depends(get_db)):
    designs.delete_design(db, design_id)
    return {"success": True, "message": "시안이 삭제되었습니다"}


# ── POST /api/designs/{id}/versions ──────────────────────────────────────────
@router.post("/designs/{design_id}/versions", response_model=DesignVersionResponse, status_code=201)
def add_version(design_id: str, req: DesignVersionCreate, db: Session = Depends(get_db)):
    version = designs.add_version(db, design_id, req.url, req.actor, note=req.note)
    return transform_version(version)


# ── PATCH /api/designs/{id}/status ───────────────────────────────────────────
@router.patch("/designs/{design_id}/status", response_model=DesignStatusResponse)
def change_status(
    design_id: str,
    req: DesignStatusRequest,
    db: Session = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
):
    result = designs.change_status(
        db, design_id, req.status, req.actor, notify=req.send_notification, dispatcher=dispatcher
    )
    return DesignStatusResponse(
        design=transform_design(result.design),
        previous_status=result.previous_status,
        workflow_changed=result.transition is not None and result.transition.changed,
    )


# ── POST /api/designs/{id}/feedback ──────────────────────────────────────────
@router.post("/designs/{design_id}/feedback", response_model=DesignFeedbackResponse, status_code=201)
def add_feedback(
    design_id: str,
    req: DesignFeedbackCreate,
    db: Session = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
):
    result = designs.add_feedback(
        db, design_id, req.content, req.author_name,
        author_type=req.author_type,
        version_id=req.version_id,
        revision_request=req.revision_request,
        dispatcher=dispatcher,
    )
    return transform_feedback(result.feedback)
