"""
일괄 알림 스윕 스키마
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class SweepRequest(BaseModel):
    """비우면 설정값 사용"""
    token_days: Optional[int] = Field(default=None, ge=0)
    service_days: Optional[int] = Field(default=None, ge=0)
    retention_days: Optional[int] = Field(default=None, ge=1)


class SweepItem(BaseModel):
    client_id: str
    client_name: str
    days_left: int
    template: str


class SweepResponse(BaseModel):
    token_expiry: List[SweepItem]
    service_expiry: List[SweepItem]
    cleaned_logs: int
    message: str
