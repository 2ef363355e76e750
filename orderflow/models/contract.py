"""
계약 / 계약 로그 모델
"""
import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text

from orderflow.database import Base
from orderflow.engine.datemath import utcnow


class ContractStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class ContractModel(Base):
    """서비스 계약"""
    __tablename__ = "contracts"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String, ForeignKey("clients.id"), nullable=False, index=True)
    contract_number = Column(String, nullable=False, unique=True)
    status = Column(String, nullable=False, default=ContractStatus.PENDING.value)

    # 계약자 정보
    company_name = Column(String)
    ceo_name = Column(String)
    business_number = Column(String)
    address = Column(String)
    contact_name = Column(String)
    contact_phone = Column(String)
    contact_email = Column(String)

    # 상품 / 금액
    package_name = Column(String, nullable=False)
    monthly_fee = Column(Float, nullable=False, default=0)
    contract_period = Column(Integer, nullable=False)  # 개월
    total_amount = Column(Float, nullable=False, default=0)
    is_promotion = Column(Boolean, nullable=False, default=False)

    signed_at = Column(DateTime)
    approved_at = Column(DateTime)
    approved_by = Column(String)
    rejected_at = Column(DateTime)
    rejection_reason = Column(Text)
    start_date = Column(DateTime)
    end_date = Column(DateTime)
    email_sent_at = Column(DateTime)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class ContractLogModel(Base):
    """계약 상태 변경 이력"""
    __tablename__ = "contract_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    contract_id = Column(
        String, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_status = Column(String)
    to_status = Column(String, nullable=False)
    changed_by = Column(String, nullable=False)
    note = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)
