"""
계약 승인/반려 스키마
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ContractApproveRequest(BaseModel):
    actor: str = "admin"


class ContractRejectRequest(BaseModel):
    actor: str = "admin"
    reason: Optional[str] = None


class ContractResponse(BaseModel):
    id: str
    owner_id: str
    contract_number: str
    status: str
    company_name: Optional[str] = None
    package_name: str
    contract_period: int
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    email_sent_at: Optional[datetime] = None
