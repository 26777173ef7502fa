# tenant_lifecycle/routers/offboarding.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, require_operator
from ..db import get_db
from ..domain.audit import lease_audit_trail
from ..domain.events import list_workflow_events
from ..schemas import (
    AuditEventOut,
    BalanceDispositionIn,
    DispositionResultOut,
    OffboardingIn,
    OffboardingResultOut,
    OffboardingStatusOut,
    OutstandingBalanceOut,
    WorkflowEventOut,
)
from ..services.balance_disposition import handle_outstanding_balance
from ..services.balance_resolver import resolve_outstanding_balance
from ..services.offboarding import execute_offboarding, get_offboarding_status
from ..services.ownership import must_get_lease

router = APIRouter(prefix="/leases", tags=["offboarding"])


@router.post("/{lease_id}/offboarding", response_model=OffboardingResultOut)
def offboard_lease(
    lease_id: int,
    payload: OffboardingIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_operator),
):
    # success=False is a business outcome (lease missing, no owner, termination refused), not an HTTP error
    res = execute_offboarding(
        db,
        lease_id=lease_id,
        departure_type=payload.departure_type,
        departure_date=payload.departure_date,
        notes=payload.notes,
        mark_unit_available=payload.mark_unit_available,
        eviction_notice_ref=payload.eviction_notice_ref,
        org_id=p.org_id,
        actor_user_id=p.user_id,
    )
    return res.as_dict()


@router.get("/{lease_id}/offboarding/status", response_model=OffboardingStatusOut)
def offboarding_status(lease_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_operator)):
    must_get_lease(db, lease_id=lease_id, org_id=p.org_id)
    return get_offboarding_status(db, lease_id=lease_id).as_dict()


@router.get("/{lease_id}/offboarding/events", response_model=list[WorkflowEventOut])
def offboarding_events(
    lease_id: int,
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_operator),
):
    must_get_lease(db, lease_id=lease_id, org_id=p.org_id)
    return list_workflow_events(db, lease_id=lease_id, limit=limit)


@router.get("/{lease_id}/offboarding/audit", response_model=list[AuditEventOut])
def offboarding_audit(
    lease_id: int,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_operator),
):
    must_get_lease(db, lease_id=lease_id, org_id=p.org_id)
    return lease_audit_trail(db, lease_id=lease_id, limit=limit)


@router.get("/{lease_id}/outstanding-balance", response_model=OutstandingBalanceOut)
def outstanding_balance(lease_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_operator)):
    must_get_lease(db, lease_id=lease_id, org_id=p.org_id)
    return resolve_outstanding_balance(db, lease_id=lease_id).as_dict()


@router.post("/{lease_id}/balance-disposition", response_model=DispositionResultOut)
def balance_disposition(
    lease_id: int,
    payload: BalanceDispositionIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_operator),
):
    res = handle_outstanding_balance(
        db,
        lease_id=lease_id,
        disposition=payload.disposition,
        deposit_to_apply=payload.deposit_to_apply,
        org_id=p.org_id,
        actor_user_id=p.user_id,
    )
    return res.as_dict()
