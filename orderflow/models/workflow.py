"""
워크플로우 / 워크플로우 로그 모델
"""
import enum
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from orderflow.database import Base
from orderflow.engine.datemath import utcnow


class WorkflowType(str, enum.Enum):
    NAMECARD = "NAMECARD"
    NAMETAG = "NAMETAG"
    CONTRACT = "CONTRACT"
    ENVELOPE = "ENVELOPE"
    WEBSITE = "WEBSITE"
    BLOG = "BLOG"
    META_ADS = "META_ADS"
    NAVER_ADS = "NAVER_ADS"


class WorkflowStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    IN_PROGRESS = "IN_PROGRESS"
    DESIGN_UPLOADED = "DESIGN_UPLOADED"
    ORDER_REQUESTED = "ORDER_REQUESTED"
    ORDER_APPROVED = "ORDER_APPROVED"
    COMPLETED = "COMPLETED"
    SHIPPED = "SHIPPED"
    CANCELLED = "CANCELLED"


class WorkflowModel(Base):
    """제작 워크플로우 (클라이언트 x 유형 당 1개)"""
    __tablename__ = "workflows"
    __table_args__ = (UniqueConstraint("owner_id", "type", name="uq_workflow_owner_type"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String, ForeignKey("clients.id"), nullable=False, index=True)
    type = Column(String, nullable=False)
    status = Column(String, nullable=False, default=WorkflowStatus.PENDING.value)

    design_url = Column(String)
    final_url = Column(String)
    courier = Column(String)
    tracking_number = Column(String)
    revision_note = Column(Text)
    revision_count = Column(Integer, nullable=False, default=0)
    admin_note = Column(Text)

    # 단계별 타임스탬프
    submitted_at = Column(DateTime)
    design_started_at = Column(DateTime)
    design_uploaded_at = Column(DateTime)
    order_requested_at = Column(DateTime)
    order_approved_at = Column(DateTime)
    completed_at = Column(DateTime)
    shipped_at = Column(DateTime)

    # 낙관적 잠금
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    logs = relationship(
        "WorkflowLogModel",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowLogModel.created_at",
    )
    design = relationship(
        "DesignModel",
        back_populates="workflow",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}


class WorkflowLogModel(Base):
    """워크플로우 상태 변경 이력 (append-only)"""
    __tablename__ = "workflow_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    workflow_id = Column(
        String, ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_status = Column(String)  # 생성 시에만 null
    to_status = Column(String, nullable=False)
    changed_by = Column(String, nullable=False)
    note = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    workflow = relationship("WorkflowModel", back_populates="logs")
