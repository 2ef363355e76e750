"""
클라이언트 / 결제 이력 / 알림 로그 모델
"""
import uuid

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text

from orderflow.database import Base
from orderflow.engine.datemath import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class ClientModel(Base):
    """클라이언트 (워크플로우/자료/계약의 소유자)"""
    __tablename__ = "clients"

    id = Column(String, primary_key=True, default=_new_id)
    client_name = Column(String, nullable=False)
    name = Column(String, nullable=False)  # 담당자 이름
    email = Column(String)
    phone = Column(String)
    contact_name = Column(String)
    contact_phone = Column(String)

    # 텔레그램 알림
    telegram_chat_id = Column(String)
    telegram_enabled = Column(Boolean, nullable=False, default=False)

    # 서비스 기간 (Renewal Engine 전용)
    service_period_start = Column(DateTime)
    service_period_end = Column(DateTime, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Meta 광고 토큰
    meta_access_token = Column(Text)
    token_expires_at = Column(DateTime)

    # 낙관적 잠금 (연장 경합 감지)
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class PaymentHistoryModel(Base):
    """결제 이력 (append-only)"""
    __tablename__ = "payment_history"

    id = Column(String, primary_key=True, default=_new_id)
    client_id = Column(String, ForeignKey("clients.id"), nullable=False, index=True)
    payment_date = Column(DateTime, nullable=False)
    amount = Column(Float)  # null = 무료 연장
    payment_type = Column(String, nullable=False, default="monthly")  # monthly, extension, ...
    payment_method = Column(String)
    service_months = Column(Integer, nullable=False, default=0)
    memo = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class NotificationLogModel(Base):
    """알림 발송 시도 기록 (append-only)"""
    __tablename__ = "notification_logs"

    id = Column(String, primary_key=True, default=_new_id)
    client_id = Column(String, index=True)
    notification_type = Column(String, nullable=False)  # workflow_transition, submission_approved, ...
    channel = Column(String, nullable=False)  # telegram, telegram_admin, slack, email
    status = Column(String, nullable=False)  # SENT, FAILED, SKIPPED
    sent_at = Column(DateTime, default=utcnow, nullable=False)
    error_message = Column(Text)
