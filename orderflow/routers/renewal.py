"""
연장 관리 API 라우터
- D-day 목록 / 통계
- 서비스 기간 연장 (무료 연장)
- 만료 안내 발송
- 연락처 업데이트
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from orderflow.config import Settings
from orderflow.database import get_db
from orderflow.deps import get_dispatcher, get_settings
from orderflow.engine import renewal
from orderflow.engine.dispatcher import NotificationDispatcher
from orderflow.models import ClientModel, PaymentHistoryModel
from orderflow.schemas.renewal import (
    ClientContactResponse,
    ClientContactUpdate,
    ClientPeriodResponse,
    ExtendRequest,
    ExtensionResponse,
    PaymentResponse,
    ReminderItem,
    ReminderRequest,
    ReminderResponse,
    RenewalClientResponse,
    RenewalReportResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def transform_payment(model: PaymentHistoryModel) -> PaymentResponse:
    return PaymentResponse(
        id=model.id,
        client_id=model.client_id,
        payment_date=model.payment_date,
        amount=model.amount,
        payment_type=model.payment_type,
        payment_method=model.payment_method,
        service_months=model.service_months,
        memo=model.memo,
        created_at=model.created_at,
    )


def transform_period(model: ClientModel) -> ClientPeriodResponse:
    return ClientPeriodResponse(
        id=model.id,
        client_name=model.client_name,
        service_period_start=model.service_period_start,
        service_period_end=model.service_period_end,
        is_active=model.is_active,
    )


def transform_extension(result: renewal.ExtensionResult, message: str) -> ExtensionResponse:
    return ExtensionResponse(
        client=transform_period(result.client),
        payment=transform_payment(result.payment),
        previous_end=result.previous_end,
        new_end=result.new_end,
        message=message,
    )


# ── GET /api/renewal ─────────────────────────────────────────────────────────
@router.get("/renewal", response_model=RenewalReportResponse)
def get_renewal_report(
    days: Optional[int] = Query(default=None, ge=0),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """만료 예정 (+ 이미 만료) 클라이언트, D-day 오름차순"""
    horizon = settings.RENEWAL_HORIZON_DAYS if days is None else days
    report = renewal.renewal_report(db, horizon)
    data = [
        RenewalClientResponse(
            id=entry.client.id,
            client_name=entry.client.client_name,
            email=entry.client.email,
            phone=entry.client.phone,
            contact_name=entry.client.contact_name,
            contact_phone=entry.client.contact_phone,
            telegram_enabled=entry.client.telegram_enabled,
            service_period_start=entry.client.service_period_start,
            service_period_end=entry.client.service_period_end,
            days_left=entry.days_left,
            status=entry.urgency,
        )
        for entry in report.entries
    ]
    return RenewalReportResponse(data=data, stats=report.stats, days_filter=horizon)


# ── POST /api/renewal/extend ─────────────────────────────────────────────────
@router.post("/renewal/extend", response_model=ExtensionResponse)
def extend(
    req: ExtendRequest,
    db: Session = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
    settings: Settings = Depends(get_settings),
):
    """서비스 기간 연장 (무료 연장으로 결제 이력 기록)"""
    months = req.months or settings.DEFAULT_RENEWAL_MONTHS
    result = renewal.extend_service(db, req.client_id, months, memo=req.memo, dispatcher=dispatcher)
    return transform_extension(
        result,
        f"서비스 기간이 {months}개월 연장되었습니다. (새 종료일: {result.new_end:%Y-%m-%d})",
    )


# ── POST /api/renewal/reminders ──────────────────────────────────────────────
@router.post("/renewal/reminders", response_model=ReminderResponse)
def send_reminders(
    req: Optional[ReminderRequest] = None,
    db: Session = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
    settings: Settings = Depends(get_settings),
):
    """만료 안내 일괄 발송 (외부 스케줄러가 호출)"""
    days = req.days if req is not None and req.days is not None else settings.RENEWAL_HORIZON_DAYS
    queued = renewal.send_expiry_reminders(db, days, dispatcher)
    items = [
        ReminderItem(
            client_id=entry.client.id,
            client_name=entry.client.client_name,
            days_left=entry.days_left,
            template=key,
        )
        for entry, key, _ in queued
    ]
    return ReminderResponse(queued=items, count=len(items))


# ── PATCH /api/clients/{id}/contact ──────────────────────────────────────────
@router.patch("/clients/{client_id}/contact", response_model=ClientContactResponse)
def update_contact(client_id: str, req: ClientContactUpdate, db: Session = Depends(get_db)):
    """연락처 정보 업데이트"""
    client = renewal.update_client_contact(db, client_id, req.model_dump(exclude_unset=True))
    return ClientContactResponse(
        id=client.id,
        client_name=client.client_name,
        contact_phone=client.contact_phone,
        contact_name=client.contact_name,
        phone=client.phone,
        email=client.email,
    )
