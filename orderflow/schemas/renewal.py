"""
연장 관리 / 결제 / 연락처 스키마
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ExtendRequest(BaseModel):
    """서비스 기간 연장 (무료 연장, months 생략 시 DEFAULT_RENEWAL_MONTHS)"""
    client_id: str
    months: Optional[int] = Field(default=None, gt=0)
    memo: Optional[str] = None


class PaymentCreate(BaseModel):
    """결제 등록"""
    client_id: str
    payment_date: Optional[datetime] = None
    amount: Optional[float] = Field(default=None, ge=0)
    payment_type: str = Field(default="monthly", description="monthly|yearly|extension|...")
    payment_method: Optional[str] = None
    service_months: int = Field(default=0, ge=0)
    memo: Optional[str] = None
    extend_service: bool = True


class PaymentResponse(BaseModel):
    id: str
    client_id: str
    payment_date: datetime
    amount: Optional[float] = None
    payment_type: str
    payment_method: Optional[str] = None
    service_months: int
    memo: Optional[str] = None
    created_at: datetime


class ClientPeriodResponse(BaseModel):
    id: str
    client_name: str
    service_period_start: Optional[datetime] = None
    service_period_end: Optional[datetime] = None
    is_active: bool


class ExtensionResponse(BaseModel):
    client: ClientPeriodResponse
    payment: PaymentResponse
    previous_end: Optional[datetime] = None
    new_end: Optional[datetime] = None
    message: str


class RenewalClientResponse(BaseModel):
    """D-day 가 붙은 클라이언트"""
    id: str
    client_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    telegram_enabled: bool
    service_period_start: Optional[datetime] = None
    service_period_end: datetime
    days_left: int
    status: str = Field(..., description="expired|urgent|warning|normal")


class RenewalReportResponse(BaseModel):
    data: List[RenewalClientResponse]
    stats: Dict[str, int]
    days_filter: int


class ReminderRequest(BaseModel):
    days: Optional[int] = Field(default=None, ge=0)


class ReminderItem(BaseModel):
    client_id: str
    client_name: str
    days_left: int
    template: str


class ReminderResponse(BaseModel):
    queued: List[ReminderItem]
    count: int


class ClientContactUpdate(BaseModel):
    """연락처 정보 업데이트 (보낸 필드만 반영)"""
    contact_phone: Optional[str] = None
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class ClientContactResponse(BaseModel):
    id: str
    client_name: str
    contact_phone: Optional[str] = None
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
