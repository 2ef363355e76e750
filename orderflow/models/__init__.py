"""
SQLAlchemy models. Importing this package registers every table on ``Base``.
"""
from orderflow.models.client import ClientModel, NotificationLogModel, PaymentHistoryModel
from orderflow.models.contract import ContractLogModel, ContractModel, ContractStatus
from orderflow.models.design import DesignFeedbackModel, DesignModel, DesignStatus, DesignVersionModel
from orderflow.models.submission import SubmissionModel, SubmissionStatus
from orderflow.models.workflow import (
    WorkflowLogModel,
    WorkflowModel,
    WorkflowStatus,
    WorkflowType,
)

__all__ = [
    "ClientModel",
    "ContractLogModel",
    "ContractModel",
    "ContractStatus",
    "DesignFeedbackModel",
    "DesignModel",
    "DesignStatus",
    "DesignVersionModel",
    "NotificationLogModel",
    "PaymentHistoryModel",
    "SubmissionModel",
    "SubmissionStatus",
    "WorkflowLogModel",
    "WorkflowModel",
    "WorkflowStatus",
    "WorkflowType",
]
