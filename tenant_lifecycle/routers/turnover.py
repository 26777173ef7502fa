# tenant_lifecycle/routers/turnover.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, require_operator
from ..db import get_db
from ..domain.errors import NotFound
from ..schemas import ChecklistItemPatch, TurnoverChecklistOut
from ..services.ownership import must_get_lease
from ..services.turnover_checklist import find_checklist_for_lease, update_checklist_item

router = APIRouter(prefix="/turnover-checklists", tags=["turnover"])


@router.get("/by-lease/{lease_id}", response_model=TurnoverChecklistOut)
def checklist_for_lease(lease_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_operator)):
    must_get_lease(db, lease_id=lease_id, org_id=p.org_id)
    row = find_checklist_for_lease(db, lease_id=lease_id)
    if row is None:
        raise NotFound("Turnover checklist not found")
    return row


@router.patch("/{checklist_id}", response_model=TurnoverChecklistOut)
def patch_checklist(
    checklist_id: int,
    payload: ChecklistItemPatch,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_operator),
):
    return update_checklist_item(
        db,
        checklist_id=checklist_id,
        item=payload.item,
        completed=payload.completed,
        notes=payload.notes,
        org_id=p.org_id,
    )
