"""
워크플로우 / 자료 승인 관련 스키마
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class WorkflowUpdateRequest(BaseModel):
    """워크플로우 상태 변경 (+ 선택 필드)"""
    status: str = Field(..., description="PENDING|SUBMITTED|IN_PROGRESS|DESIGN_UPLOADED|...|SHIPPED|CANCELLED")
    actor: str = "admin"
    design_url: Optional[str] = None
    final_url: Optional[str] = None
    courier: Optional[str] = None
    tracking_number: Optional[str] = None
    revision_note: Optional[str] = None
    admin_note: Optional[str] = None


class WorkflowLogResponse(BaseModel):
    id: str
    from_status: Optional[str] = None
    to_status: str
    changed_by: str
    note: Optional[str] = None
    created_at: datetime


class WorkflowResponse(BaseModel):
    """워크플로우 응답"""
    id: str
    owner_id: str
    type: str
    status: str
    design_url: Optional[str] = None
    final_url: Optional[str] = None
    courier: Optional[str] = None
    tracking_number: Optional[str] = None
    revision_note: Optional[str] = None
    revision_count: int = 0
    admin_note: Optional[str] = None
    submitted_at: Optional[datetime] = None
    design_started_at: Optional[datetime] = None
    design_uploaded_at: Optional[datetime] = None
    order_requested_at: Optional[datetime] = None
    order_approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class WorkflowDetailResponse(WorkflowResponse):
    history: List[WorkflowLogResponse] = Field(default_factory=list)


class WorkflowTransitionResponse(BaseModel):
    workflow: WorkflowResponse
    changed: bool
    from_status: str


class SubmissionApproveRequest(BaseModel):
    """자료 승인 요청 (workflow_types 생략 시 기본 5종)"""
    actor: str = "admin"
    workflow_types: Optional[List[str]] = None


class SubmissionRejectRequest(BaseModel):
    actor: str = "admin"
    reason: Optional[str] = None


class SubmissionResponse(BaseModel):
    id: str
    owner_id: str
    status: str
    brand_name: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    channel_id: Optional[str] = None


class SubmissionApproveResponse(BaseModel):
    """승인 결과 (채널 오류는 참고용)"""
    submission: SubmissionResponse
    workflows: List[WorkflowResponse]
    workflow_count: int
    created_count: int
    reset_count: int
    channel_id: Optional[str] = None
    channel_error: Optional[str] = None
    message: str
