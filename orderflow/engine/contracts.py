"""
계약 승인 / 반려

상태 변경 + ContractLog 는 한 트랜잭션, 계약서 메일과 텔레그램은 커밋 이후 best-effort.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from orderflow.engine.audit import append_contract_log
from orderflow.engine.datemath import add_months, utcnow
from orderflow.engine.dispatcher import ContractDecisionEvent, NotificationDispatcher, notify_after_commit
from orderflow.engine.errors import InvalidStateError, NotFoundError
from orderflow.engine.tx import atomic
from orderflow.models import ContractLogModel, ContractModel, ContractStatus

logger = logging.getLogger(__name__)


@dataclass
class ContractDecision:
    contract: ContractModel
    log: ContractLogModel
    notification: Optional[Future] = field(default=None, repr=False)


def _lock_submitted(db: Session, contract_id: str) -> ContractModel:
    contract = (
        db.query(ContractModel)
        .filter(ContractModel.id == contract_id)
        .with_for_update()
        .first()
    )
    if contract is None:
        raise NotFoundError("Contract", contract_id)
    if contract.status != ContractStatus.SUBMITTED.value:
        raise InvalidStateError(
            f"Contract {contract_id} is {contract.status}, only SUBMITTED can be decided",
            status=contract.status,
        )
    return contract


def approve_contract(
    db: Session,
    contract_id: str,
    actor: str,
    dispatcher: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
) -> ContractDecision:
    """계약 기간은 승인 시점부터 contract_period 개월"""
    now = now or utcnow()
    with atomic(db, "contract approval"):
        contract = _lock_submitted(db, contract_id)
        contract.status = ContractStatus.APPROVED.value
        contract.approved_at = now
        contract.approved_by = actor
        contract.start_date = now
        contract.end_date = add_months(now, contract.contract_period)
        log = append_contract_log(
            db, contract.id, ContractStatus.SUBMITTED.value, ContractStatus.APPROVED.value, actor, "계약 승인"
        )

    logger.info("Contract %s approved by %s (%s ~ %s)", contract.contract_number, actor,
                contract.start_date, contract.end_date)

    decision = ContractDecision(contract=contract, log=log)
    decision.notification = notify_after_commit(
        dispatcher, ContractDecisionEvent(contract_id=contract.id, owner_id=contract.owner_id, approved=True)
    )
    return decision


def reject_contract(
    db: Session,
    contract_id: str,
    actor: str,
    reason: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
) -> ContractDecision:
    now = now or utcnow()
    with atomic(db, "contract rejection"):
        contract = _lock_submitted(db, contract_id)
        contract.status = ContractStatus.REJECTED.value
        contract.rejected_at = now
        contract.rejection_reason = reason
        log = append_contract_log(
            db, contract.id, ContractStatus.SUBMITTED.value, ContractStatus.REJECTED.value, actor, reason
        )

    logger.info("Contract %s rejected by %s", contract.contract_number, actor)

    decision = ContractDecision(contract=contract, log=log)
    decision.notification = notify_after_commit(
        dispatcher,
        ContractDecisionEvent(contract_id=contract.id, owner_id=contract.owner_id, approved=False, reason=reason),
    )
    return decision
