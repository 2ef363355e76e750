"""
일괄 알림 스윕 (외부 스케줄러가 호출)

1. Meta 광고 토큰 만료 안내
2. 서비스 기간 만료 안내 (renewal.send_expiry_reminders)
3. 보존 기간이 지난 알림 로그 정리
"""
from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from orderflow.engine import renewal, templates
from orderflow.engine.datemath import days_left, utcnow
from orderflow.engine.dispatcher import NotificationDispatcher, TokenExpiryEvent, notify_after_commit
from orderflow.engine.errors import ValidationError
from orderflow.engine.tx import atomic
from orderflow.models import ClientModel, NotificationLogModel

logger = logging.getLogger(__name__)


@dataclass
class TokenReminder:
    client: ClientModel
    days_left: int
    template_key: str
    notification: Optional[Future] = field(default=None, repr=False)


@dataclass
class SweepResult:
    token_reminders: list[TokenReminder]
    service_reminders: list[tuple[renewal.RenewalEntry, str, Optional[Future]]]
    cleaned_logs: int

    @property
    def message(self) -> str:
        return f"토큰 알림 {len(self.token_reminders)}건, 서비스 알림 {len(self.service_reminders)}건 발송 완료"


def send_token_expiry_reminders(
    db: Session,
    horizon_days: int,
    dispatcher: Optional[NotificationDispatcher],
    now: Optional[datetime] = None,
) -> list[TokenReminder]:
    """활성 클라이언트 중 토큰이 horizon_days 이내 만료 (이미 만료 포함)"""
    now = now or utcnow()
    clients = (
        db.query(ClientModel)
        .filter(ClientModel.is_active == True, ClientModel.token_expires_at.isnot(None))  # noqa: E712
        .order_by(ClientModel.token_expires_at.asc())
        .all()
    )
    queued = []
    for client in clients:
        remaining = days_left(client.token_expires_at, now)
        if remaining > horizon_days:
            continue
        key = templates.expiry_template_key(remaining)
        reminder = TokenReminder(client=client, days_left=remaining, template_key=key)
        reminder.notification = notify_after_commit(dispatcher, TokenExpiryEvent(
            client_id=client.id,
            template_key=key,
            days_left=remaining,
            expires_at=client.token_expires_at,
        ))
        queued.append(reminder)
    logger.info("Queued %d token expiry reminders (horizon %d days)", len(queued), horizon_days)
    return queued


def cleanup_notification_logs(db: Session, retention_days: int, now: Optional[datetime] = None) -> int:
    """sent_at 이 보존 기간보다 오래된 알림 로그 삭제, 삭제 건수 반환"""
    if retention_days < 1:
        raise ValidationError("retention_days must be positive", field="retention_days")
    cutoff = (now or utcnow()) - timedelta(days=retention_days)
    with atomic(db, "notification log cleanup"):
        deleted = (
            db.query(NotificationLogModel)
            .filter(NotificationLogModel.sent_at < cutoff)
            .delete(synchronize_session=False)
        )
    logger.info("Removed %d notification logs older than %s", deleted, cutoff)
    return deleted


def run_notification_sweep(
    db: Session,
    dispatcher: Optional[NotificationDispatcher],
    token_horizon_days: int,
    service_horizon_days: int,
    retention_days: int,
    now: Optional[datetime] = None,
) -> SweepResult:
    now = now or utcnow()
    tokens = send_token_expiry_reminders(db, token_horizon_days, dispatcher, now)
    services = renewal.send_expiry_reminders(db, service_horizon_days, dispatcher, now)
    cleaned = cleanup_notification_logs(db, retention_days, now)
    return SweepResult(token_reminders=tokens, service_reminders=services, cleaned_logs=cleaned)
