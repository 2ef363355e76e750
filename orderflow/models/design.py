"""
시안(Design) / 시안 버전 / 피드백 모델
"""
import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from orderflow.database import Base
from orderflow.engine.datemath import utcnow


class DesignStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    APPROVED = "APPROVED"


class DesignModel(Base):
    """워크플로우 당 1개의 시안 (버전 누적)"""
    __tablename__ = "designs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    workflow_id = Column(
        String, ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    status = Column(String, nullable=False, default=DesignStatus.DRAFT.value)
    current_version = Column(Integer, nullable=False, default=1)
    approved_at = Column(DateTime)
    approved_version = Column(Integer)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False, index=True)

    workflow = relationship("WorkflowModel", back_populates="design")
    versions = relationship(
        "DesignVersionModel",
        back_populates="design",
        cascade="all, delete-orphan",
        order_by="DesignVersionModel.version",
    )


class DesignVersionModel(Base):
    __tablename__ = "design_versions"
    __table_args__ = (UniqueConstraint("design_id", "version", name="uq_design_version"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    design_id = Column(String, ForeignKey("designs.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    url = Column(String, nullable=False)
    note = Column(Text)
    uploaded_by = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    design = relationship("DesignModel", back_populates="versions")
    feedbacks = relationship(
        "DesignFeedbackModel",
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="DesignFeedbackModel.created_at",
    )


class DesignFeedbackModel(Base):
    """시안 버전에 달린 피드백 (관리자 답변 / 고객 의견, append-only)"""
    __tablename__ = "design_feedbacks"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    version_id = Column(String, ForeignKey("design_versions.id", ondelete="CASCADE"), nullable=False, index=True)
    author_type = Column(String, nullable=False)  # admin, client
    author_name = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    is_revision_request = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    version = relationship("DesignVersionModel", back_populates="feedbacks")
