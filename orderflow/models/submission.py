"""
자료 제출(Submission) 모델
"""
import enum
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from orderflow.database import Base
from orderflow.engine.datemath import utcnow


class SubmissionStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class SubmissionModel(Base):
    """클라이언트 자료 제출"""
    __tablename__ = "submissions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String, ForeignKey("clients.id"), nullable=False, unique=True)
    status = Column(String, nullable=False, default=SubmissionStatus.PENDING.value)

    # 제작 정보
    brand_name = Column(String)
    contact_phone = Column(String)
    contact_email = Column(String)
    delivery_address = Column(String)
    website_style = Column(String)
    website_color = Column(String)
    blog_design_note = Column(Text)
    additional_note = Column(Text)

    # 검토
    reviewed_by = Column(String)
    reviewed_at = Column(DateTime)
    rejection_reason = Column(Text)

    # Slack 채널 (승인 시 생성)
    channel_id = Column(String)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
