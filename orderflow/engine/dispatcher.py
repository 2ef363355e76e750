"""
Notification dispatcher.

Durable operations hand an event to ``NotificationDispatcher.dispatch`` only
after their transaction has committed. The dispatcher runs delivery on its
own worker pool with its own database session:

    event → plan (one Attempt per channel) → attempt each independently
          → one NotificationLog row per attempt (SENT | FAILED | SKIPPED)

Nothing raised inside a delivery task reaches the caller of the primary
operation; failures are logged and recorded.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from concurrent.futures import wait
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from orderflow.config import Settings
from orderflow.engine import templates
from orderflow.engine.datemath import utcnow
from orderflow.engine.errors import ExternalDeliveryError
from orderflow.integrations.documents import render_contract_document
from orderflow.models import (
    ClientModel,
    ContractModel,
    NotificationLogModel,
    SubmissionModel,
)

logger = logging.getLogger(__name__)

STATUS_SENT = "SENT"
STATUS_FAILED = "FAILED"
STATUS_SKIPPED = "SKIPPED"

CHANNEL_TELEGRAM = "telegram"
CHANNEL_TELEGRAM_ADMIN = "telegram_admin"
CHANNEL_SLACK = "slack"
CHANNEL_EMAIL = "email"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransitionEvent:
    workflow_id: str
    owner_id: str
    workflow_type: str
    from_status: str
    to_status: str
    actor: str
    design_url: Optional[str] = None
    tracking_number: Optional[str] = None
    courier: Optional[str] = None


@dataclass(frozen=True)
class ApprovalEvent:
    submission_id: str
    owner_id: str
    channel_id: Optional[str]
    workflow_count: int


@dataclass(frozen=True)
class RenewalEvent:
    client_id: str
    months: int
    new_end: datetime


@dataclass(frozen=True)
class ExpiryReminderEvent:
    client_id: str
    template_key: str
    days_left: int
    end_date: datetime


@dataclass(frozen=True)
class ContractDecisionEvent:
    contract_id: str
    owner_id: str
    approved: bool
    reason: Optional[str] = None



@dataclass(frozen=True)
class TokenExpiryEvent:
    client_id: str
    template_key: str
    days_left: int
    expires_at: datetime


@dataclass(frozen=True)
class DesignEvent:
    """kind: DESIGN_UPLOADED | DESIGN_FEEDBACK | DESIGN_APPROVED | REVISION_REQUESTED"""
    design_id: str
    owner_id: str
    workflow_type: str
    kind: str
    version: int
    feedback: Optional[str] = None


# ---------------------------------------------------------------------------
# Attempts / outcomes
# ---------------------------------------------------------------------------

@dataclass
class Attempt:
    channel: str
    notification_type: str
    send: Optional[Callable[[], Any]] = None  # None → SKIPPED
    skip_reason: Optional[str] = None
    on_sent: Optional[Callable[[Session], None]] = None


@dataclass
class DeliveryOutcome:
    channel: str
    notification_type: str
    status: str
    error: Optional[str] = None


@dataclass
class ProvisionResult:
    channel_id: Optional[str] = None
    error: Optional[str] = None


class NotificationDispatcher:
    def __init__(
        self,
        settings: Settings,
        session_factory: Callable[[], Session],
        telegram=None,
        slack=None,
        email=None,
        max_workers: Optional[int] = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.telegram = telegram
        self.slack = slack
        self.email = email
        self.timeout = settings.NOTIFY_TIMEOUT_SECONDS
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.NOTIFY_MAX_WORKERS,
            thread_name_prefix="notify",
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        self._planners = {
            TransitionEvent: self._plan_transition,
            ApprovalEvent: self._plan_approval,
            RenewalEvent: self._plan_renewal,
            ExpiryReminderEvent: self._plan_expiry,
            ContractDecisionEvent: self._plan_contract,
            TokenExpiryEvent: self._plan_token_expiry,
            DesignEvent: self._plan_design,
        }

    # ── task submission ──────────────────────────────────────────────────
    def _submit(self, fn: Callable, *args) -> Future:
        future = self._executor.submit(fn, *args)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def dispatch(self, event) -> Future:
        """Queue delivery for ``event``; the future resolves to a list of outcomes."""
        logger.info("Dispatch %s", type(event).__name__)
        return self._submit(self._deliver, event)

    def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every queued delivery task."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_tasks)

    # ── channel provisioning (awaited with a bounded timeout) ────────────
    def provision_channel(self, client_id: str, client_name: str, contact: dict[str, Any]) -> ProvisionResult:
        if self.slack is None or not self.slack.configured:
            result = ProvisionResult(error="slack not configured")
            self._record(client_id, "channel_provisioning", CHANNEL_SLACK, STATUS_SKIPPED, result.error)
            return result

        future = self._submit(self.slack.create_channel, client_name, contact)
        try:
            channel_id = future.result(timeout=self.timeout)
        except FutureTimeout:
            result = ProvisionResult(error=f"channel provisioning timed out after {self.timeout}s")
        except ExternalDeliveryError as e:
            result = ProvisionResult(error=str(e))
        except Exception as e:
            logger.error("Channel provisioning crashed for %s", client_name, exc_info=True)
            result = ProvisionResult(error=str(e))
        else:
            self._record(client_id, "channel_provisioning", CHANNEL_SLACK, STATUS_SENT)
            return ProvisionResult(channel_id=channel_id)

        logger.warning("Channel provisioning failed for %s: %s", client_name, result.error)
        self._record(client_id, "channel_provisioning", CHANNEL_SLACK, STATUS_FAILED, result.error)
        return result

    # ── delivery task ────────────────────────────────────────────────────
    def _deliver(self, event) -> list[DeliveryOutcome]:
        db = self.session_factory()
        try:
            planner = self._planners[type(event)]
            client_id, attempts = planner(db, event)
            outcomes = []
            for attempt in attempts:
                outcome = self._attempt(db, attempt)
                db.add(NotificationLogModel(
                    client_id=client_id,
                    notification_type=outcome.notification_type,
                    channel=outcome.channel,
                    status=outcome.status,
                    error_message=outcome.error,
                ))
                outcomes.append(outcome)
            db.commit()
            return outcomes
        except Exception:
            logger.error("Notification task failed for %s", event, exc_info=True)
            db.rollback()
            return []
        finally:
            db.close()

    def _attempt(self, db: Session, attempt: Attempt) -> DeliveryOutcome:
        if attempt.send is None:
            return DeliveryOutcome(attempt.channel, attempt.notification_type, STATUS_SKIPPED, attempt.skip_reason)
        try:
            attempt.send()
        except ExternalDeliveryError as e:
            logger.warning("Delivery failed (%s/%s): %s", attempt.channel, attempt.notification_type, e)
            return DeliveryOutcome(attempt.channel, attempt.notification_type, STATUS_FAILED, str(e))
        except Exception as e:
            logger.error("Delivery crashed (%s/%s)", attempt.channel, attempt.notification_type, exc_info=True)
            return DeliveryOutcome(attempt.channel, attempt.notification_type, STATUS_FAILED, str(e))

        if attempt.on_sent is not None:
            try:
                attempt.on_sent(db)
            except Exception as e:
                # 발송은 이미 성공: SENT 로 남기고 후처리 실패만 기록
                logger.error("Post-send update failed (%s/%s)", attempt.channel, attempt.notification_type, exc_info=True)
                return DeliveryOutcome(attempt.channel, attempt.notification_type, STATUS_SENT, f"post-send update failed: {e}")
        return DeliveryOutcome(attempt.channel, attempt.notification_type, STATUS_SENT)

    def _record(self, client_id: Optional[str], notification_type: str, channel: str,
                status: str, error: Optional[str] = None) -> None:
        db = self.session_factory()
        try:
            db.add(NotificationLogModel(
                client_id=client_id,
                notification_type=notification_type,
                channel=channel,
                status=status,
                error_message=error,
            ))
            db.commit()
        except Exception:
            logger.error("Failed to record notification log", exc_info=True)
            db.rollback()
        finally:
            db.close()

    # ── channel selection ────────────────────────────────────────────────
    def _telegram_send(self, chat_id: str, text: str) -> None:
        result = self.telegram.send_message(chat_id, text)
        if not result.ok:
            raise ExternalDeliveryError(CHANNEL_TELEGRAM, result.description or "send failed")

    def _owner_telegram(self, client: Optional[ClientModel], notification_type: str, text: str) -> Attempt:
        attempt = Attempt(CHANNEL_TELEGRAM, notification_type)
        if self.telegram is None or not self.telegram.configured:
            attempt.skip_reason = "telegram not configured"
        elif client is None or not client.telegram_chat_id:
            attempt.skip_reason = "no telegram chat id"
        elif not client.telegram_enabled:
            attempt.skip_reason = "telegram disabled by client"
        else:
            chat_id = client.telegram_chat_id
            attempt.send = lambda: self._telegram_send(chat_id, text)
        return attempt

    def _admin_telegram(self, notification_type: str, text: str) -> Attempt:
        attempt = Attempt(CHANNEL_TELEGRAM_ADMIN, notification_type)
        admin_chat = self.settings.TELEGRAM_ADMIN_CHAT_ID
        if self.telegram is None or not self.telegram.configured:
            attempt.skip_reason = "telegram not configured"
        elif not admin_chat:
            attempt.skip_reason = "admin chat id not configured"
        else:
            attempt.send = lambda: self._telegram_send(admin_chat, text)
        return attempt

    def _slack(self, channel_id: Optional[str], notification_type: str,
               call: Callable[[str], Any]) -> Attempt:
        attempt = Attempt(CHANNEL_SLACK, notification_type)
        if self.slack is None or not self.slack.configured:
            attempt.skip_reason = "slack not configured"
        elif not channel_id:
            attempt.skip_reason = "no slack channel"
        else:
            attempt.send = lambda: call(channel_id)
        return attempt

    def _email(self, address: Optional[str], notification_type: str,
               call: Callable[[str], Any], on_sent: Optional[Callable[[Session], None]] = None) -> Attempt:
        attempt = Attempt(CHANNEL_EMAIL, notification_type, on_sent=on_sent)
        if self.email is None or not self.email.configured:
            attempt.skip_reason = "email not configured"
        elif not address:
            attempt.skip_reason = "no email address"
        else:
            attempt.send = lambda: call(address)
        return attempt

    @staticmethod
    def _owner_channel_id(db: Session, owner_id: str) -> Optional[str]:
        submission = db.query(SubmissionModel).filter(SubmissionModel.owner_id == owner_id).first()
        return submission.channel_id if submission else None

    # ── planners: event → (client_id, attempts) ──────────────────────────
    def _plan_transition(self, db: Session, event: TransitionEvent):
        client = db.get(ClientModel, event.owner_id)
        channel_id = self._owner_channel_id(db, event.owner_id)
        from_label = templates.status_label(event.from_status)
        to_label = templates.status_label(event.to_status)

        attempts = [
            self._slack(
                channel_id,
                "workflow_transition",
                lambda cid: self.slack.post_transition_log(cid, from_label, to_label, event.actor, event.to_status),
            ),
        ]
        if event.to_status == "DESIGN_UPLOADED" and event.design_url:
            item = templates.type_label(event.workflow_type)
            attempts.append(self._slack(
                channel_id,
                "design_upload",
                lambda cid: self.slack.post_upload(cid, item, event.design_url),
            ))

        text = templates.owner_transition_message(
            event.workflow_type, event.to_status, event.tracking_number, event.courier
        )
        if text is not None:
            attempts.append(self._owner_telegram(client, "workflow_transition", text))

        client_name = client.client_name if client else event.owner_id
        attempts.append(self._admin_telegram(
            "workflow_transition",
            templates.admin_transition_message(
                client_name, event.workflow_type, event.from_status, event.to_status, event.actor
            ),
        ))
        return event.owner_id, attempts

    def _plan_approval(self, db: Session, event: ApprovalEvent):
        client = db.get(ClientModel, event.owner_id)
        submission = db.get(SubmissionModel, event.submission_id)
        brand = (submission.brand_name if submission else None) or (client.client_name if client else "")
        record = {
            label: getattr(submission, column)
            for column, label in templates.SUBMISSION_RECORD_FIELDS
        } if submission else {}

        attempts = [
            self._slack(event.channel_id, "submission_record",
                        lambda cid: self.slack.post_record(cid, record)),
            self._owner_telegram(
                client, "submission_approved",
                templates.submission_approved(client.name if client else "", brand),
            ),
            self._admin_telegram(
                "submission_approved",
                templates.admin_submission_approved(
                    client.client_name if client else event.owner_id, brand, event.workflow_count
                ),
            ),
        ]
        return event.owner_id, attempts

    def _plan_renewal(self, db: Session, event: RenewalEvent):
        client = db.get(ClientModel, event.client_id)
        name = client.client_name if client else ""
        return event.client_id, [
            self._owner_telegram(client, "service_extended",
                                 templates.service_extended(name, event.months, event.new_end)),
        ]

    def _plan_expiry(self, db: Session, event: ExpiryReminderEvent):
        client = db.get(ClientModel, event.client_id)
        name = client.client_name if client else ""
        text = templates.expiry_reminder(event.template_key, name, event.end_date, event.days_left)
        return event.client_id, [
            self._owner_telegram(client, f"expiry_{event.template_key}", text),
        ]

    def _plan_contract(self, db: Session, event: ContractDecisionEvent):
        client = db.get(ClientModel, event.owner_id)
        contract = db.get(ContractModel, event.contract_id)
        if contract is None:
            logger.warning("Contract vanished before notification: %s", event.contract_id)
            return event.owner_id, []

        company = contract.company_name or ""
        if event.approved:
            fields = {
                column.name: getattr(contract, column.name)
                for column in ContractModel.__table__.columns
            }
            meta = {
                "subject": f"[POLARAD] 서비스 이용 계약서 ({contract.contract_number})",
                "html": f"<p>{company} 담당자님, 승인된 계약서를 첨부드립니다.</p>",
                "filename": f"contract_{contract.contract_number}.pdf",
            }
            contract_id = contract.id

            def mark_sent(session: Session) -> None:
                row = session.get(ContractModel, contract_id)
                if row is not None:
                    row.email_sent_at = utcnow()

            attempts = [
                self._email(
                    contract.contact_email, "contract_email",
                    lambda to: self.email.send_document_email(to, meta, render_contract_document(fields)),
                    on_sent=mark_sent,
                ),
                self._owner_telegram(
                    client, "contract_approved",
                    templates.contract_approved(
                        company, contract.contract_number, contract.package_name,
                        contract.start_date, contract.end_date,
                    ),
                ),
            ]
        else:
            subject, body = templates.contract_rejected_email(company, contract.contract_number, event.reason)
            attempts = [
                self._email(contract.contact_email, "contract_rejected",
                            lambda to: self.email.send_email(to, subject, body)),
                self._owner_telegram(
                    client, "contract_rejected",
                    templates.contract_rejected(company, contract.contract_number, event.reason),
                ),
            ]
        return event.owner_id, attempts

    def _plan_token_expiry(self, db: Session, event: TokenExpiryEvent):
        client = db.get(ClientModel, event.client_id)
        name = client.client_name if client else event.client_id
        return event.client_id, [
            self._owner_telegram(
                client, f"token_{event.template_key}",
                templates.token_expiry_reminder(event.template_key, name, event.expires_at, event.days_left),
            ),
            self._admin_telegram(
                f"token_{event.template_key}",
                templates.admin_token_expiry(name, event.days_left, event.expires_at),
            ),
        ]

    def _plan_design(self, db: Session, event: DesignEvent):
        client = db.get(ClientModel, event.owner_id)
        channel_id = self._owner_channel_id(db, event.owner_id)
        client_name = client.client_name if client else event.owner_id
        user_name = client.name if client else ""
        item = f"{templates.type_label(event.workflow_type)} 시안"
        admin_url = f"{self.settings.ADMIN_PANEL_URL}/designs/{event.design_id}"
        client_url = f"{self.settings.CLIENT_PANEL_URL}/dashboard/designs/{event.design_id}"
        notification_type = event.kind.lower()

        attempts = []
        mail = templates.design_email(
            event.kind, event.workflow_type, event.version, client_url, user_name, event.feedback
        )
        if mail is not None:
            subject, body = mail
            attempts.append(self._email(
                client.email if client else None, notification_type,
                lambda to: self.email.send_email(to, subject, body),
            ))

        admin_text = templates.admin_design_message(
            event.kind, client_name, user_name, event.workflow_type, event.version, admin_url, event.feedback
        )
        if admin_text is not None:
            attempts.append(self._admin_telegram(notification_type, admin_text))

        if event.kind == "DESIGN_UPLOADED":
            attempts.append(self._slack(channel_id, notification_type, lambda cid: self.slack.post_progress(
                cid, item, f"v{event.version} 업로드 완료",
                {"버전": f"v{event.version}", "관리자 페이지": admin_url}, "🎨",
            )))
        elif event.kind == "DESIGN_APPROVED":
            attempts.append(self._slack(channel_id, notification_type, lambda cid: self.slack.post_progress(
                cid, item, "고객 확정", {"확정 버전": f"v{event.version}", "고객": user_name}, "✅",
            )))
        elif event.kind == "REVISION_REQUESTED":
            attempts.append(self._slack(channel_id, notification_type, lambda cid: self.slack.post_revision_request(
                cid, client_name, user_name, item, event.version, event.feedback, admin_url,
            )))
        return event.owner_id, attempts


def notify_after_commit(dispatcher: Optional[NotificationDispatcher], event) -> Optional[Future]:
    """Queue ``event`` if a dispatcher is wired; queuing problems are logged, never raised."""
    if dispatcher is None:
        return None
    try:
        return dispatcher.dispatch(event)
    except Exception:
        logger.error("Could not queue notification %s", event, exc_info=True)
        return None
