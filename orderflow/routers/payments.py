"""
결제 API 라우터
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orderflow.database import get_db
from orderflow.deps import get_dispatcher
from orderflow.engine.dispatcher import NotificationDispatcher
from orderflow.engine.renewal import register_payment
from orderflow.routers.renewal import transform_extension
from orderflow.schemas.renewal import ExtensionResponse, PaymentCreate

logger = logging.getLogger(__name__)
router = APIRouter()


# ── POST /api/payments ───────────────────────────────────────────────────────
@router.post("/payments", response_model=ExtensionResponse, status_code=201)
def create_payment(
    req: PaymentCreate,
    db: Session = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
):
    """결제 등록 + 서비스 기간 갱신"""
    result = register_payment(
        db,
        req.client_id,
        req.amount,
        service_months=req.service_months,
        payment_type=req.payment_type,
        payment_method=req.payment_method,
        payment_date=req.payment_date,
        memo=req.memo,
        extend=req.extend_service,
        dispatcher=dispatcher,
    )
    message = "결제가 등록되었습니다."
    if result.new_end is not None:
        message += f" 서비스 기간: ~{result.new_end:%Y-%m-%d}"
    return transform_extension(result, message)
