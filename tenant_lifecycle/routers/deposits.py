# tenant_lifecycle/routers/deposits.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, require_operator
from ..db import get_db
from ..schemas import DepositDispositionIn, DepositDispositionOut
from ..services.deposit_service import (
    DeductionInput,
    create_deposit_disposition,
    disposition_as_dict,
    get_dispositions_for_lease,
    process_refund,
)
from ..services.ownership import must_get_lease

router = APIRouter(tags=["deposits"])


@router.post("/leases/{lease_id}/deposit-dispositions", response_model=DepositDispositionOut)
def create_disposition(
    lease_id: int,
    payload: DepositDispositionIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_operator),
):
    row = create_deposit_disposition(
        db,
        lease_id=lease_id,
        original_amount=payload.original_amount,
        deductions=[
            DeductionInput(
                category=d.category.value,
                amount=d.amount,
                description=d.description,
                evidence_urls=list(d.evidence_urls),
            )
            for d in payload.deductions
        ],
        refund_method=payload.refund_method,
        notes=payload.notes,
        org_id=p.org_id,
        actor_user_id=p.user_id,
    )
    return disposition_as_dict(row)


@router.get("/leases/{lease_id}/deposit-dispositions", response_model=list[DepositDispositionOut])
def list_dispositions(lease_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_operator)):
    must_get_lease(db, lease_id=lease_id, org_id=p.org_id)
    return [disposition_as_dict(r) for r in get_dispositions_for_lease(db, lease_id=lease_id)]


@router.post("/deposit-dispositions/{disposition_id}/refund", response_model=DepositDispositionOut)
def refund_disposition(disposition_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_operator)):
    row = process_refund(db, disposition_id=disposition_id, org_id=p.org_id)
    return disposition_as_dict(row)
