"""
시안 관련 스키마
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class DesignCreateRequest(BaseModel):
    workflow_id: str
    url: str
    note: Optional[str] = None
    actor: str = "admin"


class DesignVersionCreate(BaseModel):
    url: str
    note: Optional[str] = None
    actor: str = "admin"


class DesignStatusRequest(BaseModel):
    """시안 상태 변경 (PENDING_REVIEW / APPROVED 는 워크플로우도 함께 진행)"""
    status: str = Field(..., description="DRAFT|PENDING_REVIEW|REVISION_REQUESTED|APPROVED")
    actor: str = "admin"
    send_notification: bool = False


class DesignFeedbackCreate(BaseModel):
    content: str = Field(..., min_length=1)
    author_name: str = "관리자"
    author_type: str = "admin"
    version_id: Optional[str] = None
    revision_request: bool = False


class DesignFeedbackResponse(BaseModel):
    id: str
    version_id: str
    author_type: str
    author_name: str
    content: str
    is_revision_request: bool
    created_at: datetime


class DesignVersionResponse(BaseModel):
    id: str
    version: int
    url: str
    note: Optional[str] = None
    uploaded_by: str
    created_at: datetime
    feedbacks: List[DesignFeedbackResponse] = Field(default_factory=list)


class DesignResponse(BaseModel):
    id: str
    workflow_id: str
    workflow_type: str
    workflow_status: str
    owner_id: str
    status: str
    current_version: int
    approved_at: Optional[datetime] = None
    approved_version: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class DesignDetailResponse(DesignResponse):
    versions: List[DesignVersionResponse] = Field(default_factory=list)


class DesignListResponse(BaseModel):
    data: List[DesignResponse]
    stats: Dict[str, int]


class DesignStatusResponse(BaseModel):
    design: DesignResponse
    previous_status: str
    workflow_changed: bool
