"""
Append-only audit trail for workflows and contracts.

Rows are only ever added to the caller's session; the caller's transaction
decides when they become durable, so a log row commits together with the
state change it describes.
"""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from orderflow.models import ContractLogModel, WorkflowLogModel


def append_workflow_log(
    db: Session,
    workflow_id: str,
    from_status: Optional[str],
    to_status: str,
    changed_by: str,
    note: Optional[str] = None,
) -> WorkflowLogModel:
    entry = WorkflowLogModel(
        workflow_id=workflow_id,
        from_status=from_status,
        to_status=to_status,
        changed_by=changed_by,
        note=note,
    )
    db.add(entry)
    return entry


def workflow_history(db: Session, workflow_id: str) -> List[WorkflowLogModel]:
    return (
        db.query(WorkflowLogModel)
        .filter(WorkflowLogModel.workflow_id == workflow_id)
        .order_by(WorkflowLogModel.created_at, WorkflowLogModel.id)
        .all()
    )


def append_contract_log(
    db: Session,
    contract_id: str,
    from_status: Optional[str],
    to_status: str,
    changed_by: str,
    note: Optional[str] = None,
) -> ContractLogModel:
    entry = ContractLogModel(
        contract_id=contract_id,
        from_status=from_status,
        to_status=to_status,
        changed_by=changed_by,
        note=note,
    )
    db.add(entry)
    return entry
