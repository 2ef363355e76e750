"""
계약 승인/반려 API 라우터
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orderflow.database import get_db
from orderflow.deps import get_dispatcher
from orderflow.engine.contracts import approve_contract, reject_contract
from orderflow.engine.dispatcher import NotificationDispatcher
from orderflow.models import ContractModel
from orderflow.schemas.contract import ContractApproveRequest, ContractRejectRequest, ContractResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def transform_contract(model: ContractModel) -> ContractResponse:
    """ContractModel을 ContractResponse로 변환"""
    return ContractResponse(
        id=model.id,
        owner_id=model.owner_id,
        contract_number=model.contract_number,
        status=model.status,
        company_name=model.company_name,
        package_name=model.package_name,
        contract_period=model.contract_period,
        approved_at=model.approved_at,
        approved_by=model.approved_by,
        rejected_at=model.rejected_at,
        rejection_reason=model.rejection_reason,
        start_date=model.start_date,
        end_date=model.end_date,
        email_sent_at=model.email_sent_at,
    )


# ── POST /api/contracts/{id}/approve ─────────────────────────────────────────
@router.post("/contracts/{contract_id}/approve", response_model=ContractResponse)
def approve(
    contract_id: str,
    req: Optional[ContractApproveRequest] = None,
    db: Session = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
):
    """계약 승인 (계약서 메일/텔레그램은 비동기)"""
    req = req or ContractApproveRequest()
    decision = approve_contract(db, contract_id, req.actor, dispatcher=dispatcher)
    return transform_contract(decision.contract)


# ── POST /api/contracts/{id}/reject ──────────────────────────────────────────
@router.post("/contracts/{contract_id}/reject", response_model=ContractResponse)
def reject(
    contract_id: str,
    req: Optional[ContractRejectRequest] = None,
    db: Session = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
):
    req = req or ContractRejectRequest()
    decision = reject_contract(db, contract_id, req.actor, req.reason, dispatcher=dispatcher)
    return transform_contract(decision.contract)
