"""
일괄 알림 API 라우터 (토큰 만료 + 서비스 만료 + 로그 정리)
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orderflow.config import Settings
from orderflow.database import get_db
from orderflow.deps import get_dispatcher, get_settings
from orderflow.engine import sweep
from orderflow.engine.dispatcher import NotificationDispatcher
from orderflow.schemas.notification import SweepItem, SweepRequest, SweepResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def _pick(value: Optional[int], default: int) -> int:
    return default if value is None else value


# ── POST /api/notifications/send-batch ───────────────────────────────────────
@router.post("/notifications/send-batch", response_model=SweepResponse)
def send_batch(
    req: Optional[SweepRequest] = None,
    db: Session = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
    settings: Settings = Depends(get_settings),
):
    """외부 스케줄러가 호출하는 일괄 알림"""
    req = req or SweepRequest()
    result = sweep.run_notification_sweep(
        db,
        dispatcher,
        token_horizon_days=_pick(req.token_days, settings.TOKEN_REMINDER_DAYS),
        service_horizon_days=_pick(req.service_days, settings.RENEWAL_HORIZON_DAYS),
        retention_days=_pick(req.retention_days, settings.NOTIFICATION_LOG_RETENTION_DAYS),
    )
    return SweepResponse(
        token_expiry=[
            SweepItem(client_id=r.client.id, client_name=r.client.client_name,
                      days_left=r.days_left, template=r.template_key)
            for r in result.token_reminders
        ],
        service_expiry=[
            SweepItem(client_id=entry.client.id, client_name=entry.client.client_name,
                      days_left=entry.days_left, template=key)
            for entry, key, _ in result.service_reminders
        ],
        cleaned_logs=result.cleaned_logs,
        message=result.message,
    )
