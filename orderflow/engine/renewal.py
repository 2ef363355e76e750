"""
Renewal engine: service-period extensions, payments and D-day reporting.

Every extension updates ``clients.service_period_end`` and appends exactly
one ``payment_history`` row in the same transaction. The client row is
locked and versioned. When two extensions for one client race, the later
commit fails its version check and is re-run against the fresh end date,
so both payments are kept and both periods are credited.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from orderflow.engine import templates
from orderflow.engine.datemath import (
    URGENCY_BUCKETS,
    URGENCY_NORMAL,
    classify_days_left,
    days_left,
    extend_period,
    utcnow,
)
from orderflow.engine.dispatcher import (
    ExpiryReminderEvent,
    NotificationDispatcher,
    RenewalEvent,
    notify_after_commit,
)
from orderflow.engine.errors import ConcurrentUpdateError, NotFoundError, ValidationError
from orderflow.engine.tx import atomic
from orderflow.models import ClientModel, PaymentHistoryModel

logger = logging.getLogger(__name__)

# lost version races are re-run this many times in total before surfacing
EXTENSION_ATTEMPTS = 3

FREE_EXTENSION_TYPE = "extension"
FREE_EXTENSION_METHOD = "무료 연장"

CONTACT_FIELDS = ("contact_phone", "contact_name", "phone", "email")


@dataclass
class PaymentDetails:
    """A paid extension; ``None`` in its place means a free one."""
    amount: Optional[float] = None
    payment_type: str = "monthly"
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None
    memo: Optional[str] = None


@dataclass
class ExtensionResult:
    client: ClientModel
    payment: PaymentHistoryModel
    previous_end: Optional[datetime]
    new_end: Optional[datetime]
    notification: Optional[Future] = field(default=None, repr=False)

    @property
    def extended(self) -> bool:
        return self.new_end is not None and self.new_end != self.previous_end


@dataclass
class RenewalEntry:
    client: ClientModel
    days_left: int
    urgency: str


@dataclass
class RenewalReport:
    horizon_days: int
    entries: list[RenewalEntry]

    @property
    def stats(self) -> dict[str, int]:
        counts = {bucket: 0 for bucket in URGENCY_BUCKETS}
        for entry in self.entries:
            counts[entry.urgency] += 1
        return {"total": len(self.entries), **counts}


def _validate_months(months: Any, name: str = "months", allow_zero: bool = False) -> int:
    if isinstance(months, bool) or not isinstance(months, int):
        raise ValidationError(f"{name} must be an integer", field=name)
    if months < 0 or (months == 0 and not allow_zero):
        raise ValidationError(f"{name} must be positive", field=name)
    return months


def _lock_client(db: Session, client_id: str) -> ClientModel:
    client = (
        db.query(ClientModel)
        .filter(ClientModel.id == client_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if client is None:
        raise NotFoundError("Client", client_id)
    return client


def _with_retry(operation: str, client_id: str, step: Callable[[], Any]) -> Any:
    for attempt in range(1, EXTENSION_ATTEMPTS + 1):
        try:
            return step()
        except ConcurrentUpdateError:
            if attempt == EXTENSION_ATTEMPTS:
                raise
            logger.warning("%s for client %s lost a version race, retrying (%d)", operation, client_id, attempt)


def _apply_extension(client: ClientModel, months: int, now: datetime) -> datetime:
    new_end = extend_period(client.service_period_end, months, now)
    if client.service_period_start is None:
        client.service_period_start = now
    client.service_period_end = new_end
    client.is_active = True
    return new_end


# ── 연장 ─────────────────────────────────────────────────────────────────────
def extend_service(
    db: Session,
    client_id: str,
    months: int,
    payment: Optional[PaymentDetails] = None,
    memo: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
    notify: bool = True,
) -> ExtensionResult:
    """Extend a client's service period by ``months`` calendar months.

    The new end counts from the current end while it is still running, and
    from ``now`` when it is missing or already past. Without ``payment`` the
    extension is recorded as a free one (no amount).
    """
    months = _validate_months(months)
    now = now or utcnow()

    def step():
        with atomic(db, "service extension"):
            client = _lock_client(db, client_id)
            previous_end = client.service_period_end
            new_end = _apply_extension(client, months, now)

            if payment is None:
                row = PaymentHistoryModel(
                    client_id=client.id,
                    payment_date=now,
                    amount=None,
                    payment_type=FREE_EXTENSION_TYPE,
                    payment_method=FREE_EXTENSION_METHOD,
                    service_months=months,
                    memo=memo or f"서비스 기간 {months}개월 연장",
                )
            else:
                row = PaymentHistoryModel(
                    client_id=client.id,
                    payment_date=payment.payment_date or now,
                    amount=payment.amount,
                    payment_type=payment.payment_type,
                    payment_method=payment.payment_method,
                    service_months=months,
                    memo=memo or payment.memo,
                )
            db.add(row)
        return client, row, previous_end, new_end

    client, row, previous_end, new_end = _with_retry("Service extension", client_id, step)

    logger.info(
        "Extended client %s by %d months: %s -> %s",
        client_id, months, previous_end, new_end,
    )

    result = ExtensionResult(client=client, payment=row, previous_end=previous_end, new_end=new_end)
    if notify:
        result.notification = notify_after_commit(
            dispatcher, RenewalEvent(client_id=client.id, months=months, new_end=new_end)
        )
    return result


def register_payment(
    db: Session,
    client_id: str,
    amount: Optional[float],
    service_months: int = 0,
    payment_type: str = "monthly",
    payment_method: Optional[str] = None,
    payment_date: Optional[datetime] = None,
    memo: Optional[str] = None,
    extend: bool = True,
    dispatcher: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
) -> ExtensionResult:
    """결제 등록 (+ service_months > 0 이면 서비스 기간 연장)"""
    service_months = _validate_months(service_months, "service_months", allow_zero=True)
    if amount is not None and amount < 0:
        raise ValidationError("amount must not be negative", field="amount")
    now = now or utcnow()
    should_extend = extend and service_months > 0

    def step():
        with atomic(db, "payment registration"):
            client = _lock_client(db, client_id)
            previous_end = client.service_period_end
            new_end = _apply_extension(client, service_months, now) if should_extend else previous_end

            row = PaymentHistoryModel(
                client_id=client.id,
                payment_date=payment_date or now,
                amount=amount,
                payment_type=payment_type,
                payment_method=payment_method,
                service_months=service_months,
                memo=memo,
            )
            db.add(row)
        return client, row, previous_end, new_end

    client, row, previous_end, new_end = _with_retry("Payment registration", client_id, step)

    logger.info(
        "Registered payment for client %s: amount=%s months=%d extended=%s",
        client_id, amount, service_months, should_extend,
    )

    result = ExtensionResult(client=client, payment=row, previous_end=previous_end, new_end=new_end)
    if should_extend:
        result.notification = notify_after_commit(
            dispatcher, RenewalEvent(client_id=client.id, months=service_months, new_end=new_end)
        )
    return result


# ── D-day 분류 ───────────────────────────────────────────────────────────────
def renewal_report(db: Session, horizon_days: int, now: Optional[datetime] = None) -> RenewalReport:
    """활성 클라이언트 중 horizon_days 이내 만료 (이미 만료 포함), 종료일 오름차순"""
    now = now or utcnow()
    clients = (
        db.query(ClientModel)
        .filter(ClientModel.is_active == True, ClientModel.service_period_end.isnot(None))  # noqa: E712
        .order_by(ClientModel.service_period_end.asc())
        .all()
    )
    entries = []
    for client in clients:
        remaining = days_left(client.service_period_end, now)
        if remaining > horizon_days:
            continue
        entries.append(RenewalEntry(client=client, days_left=remaining, urgency=classify_days_left(remaining)))
    return RenewalReport(horizon_days=horizon_days, entries=entries)


def send_expiry_reminders(
    db: Session,
    horizon_days: int,
    dispatcher: Optional[NotificationDispatcher],
    now: Optional[datetime] = None,
) -> list[tuple[RenewalEntry, str, Optional[Future]]]:
    """Queue one reminder per client in the expired, urgent and warning buckets."""
    report = renewal_report(db, horizon_days, now)
    queued = []
    for entry in report.entries:
        if entry.urgency == URGENCY_NORMAL:
            continue
        key = templates.expiry_template_key(entry.days_left)
        future = notify_after_commit(dispatcher, ExpiryReminderEvent(
            client_id=entry.client.id,
            template_key=key,
            days_left=entry.days_left,
            end_date=entry.client.service_period_end,
        ))
        queued.append((entry, key, future))
    logger.info("Queued %d expiry reminders (horizon %d days)", len(queued), horizon_days)
    return queued


# ── 연락처 ───────────────────────────────────────────────────────────────────
def update_client_contact(db: Session, client_id: str, fields: dict[str, Any]) -> ClientModel:
    unknown = sorted(set(fields) - set(CONTACT_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown contact fields: {', '.join(unknown)}", fields=unknown)
    if not fields:
        raise ValidationError("No contact fields to update")

    with atomic(db, "client contact update"):
        client = _lock_client(db, client_id)
        for name, value in fields.items():
            setattr(client, name, value)

    logger.info("Updated contact for client %s: %s", client_id, ", ".join(sorted(fields)))
    return client
