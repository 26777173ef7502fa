# tenant_lifecycle/services/turnover_checklist.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.clock import utcnow
from ..domain.errors import NotFound, ValidationError, store_errors
from ..domain.types import ChecklistItem
from ..models import UnitTurnoverChecklist

CHECKLIST_ITEMS: tuple[str, ...] = tuple(i.value for i in ChecklistItem)


@dataclass(frozen=True)
class ChecklistProgress:
    total: int
    done: int

    @property
    def pct_done(self) -> float:
        if self.total <= 0:
            return 0.0
        return float(self.done) / float(self.total)

    @property
    def complete(self) -> bool:
        return self.total > 0 and self.done == self.total

    def as_dict(self) -> dict:
        return {"total": self.total, "done": self.done, "pct_done": self.pct_done, "complete": self.complete}


def checklist_progress(row: UnitTurnoverChecklist) -> ChecklistProgress:
    done = sum(1 for k in CHECKLIST_ITEMS if bool(getattr(row, k)))
    return ChecklistProgress(total=len(CHECKLIST_ITEMS), done=done)


def find_checklist_for_lease(db: Session, *, lease_id: int) -> Optional[UnitTurnoverChecklist]:
    with store_errors("find turnover checklist"):
        return db.scalar(select(UnitTurnoverChecklist).where(UnitTurnoverChecklist.lease_id == int(lease_id)))


def create_turnover_checklist(
    db: Session,
    *,
    org_id: int,
    unit_id: int,
    lease_id: Optional[int],
    landlord_id: int,
) -> UnitTurnoverChecklist:
    """
    Tracking shell for the turnover crew: every flag starts out not-done.
    Does not look at the unit's actual condition.
    """
    if lease_id is not None:
        existing = find_checklist_for_lease(db, lease_id=lease_id)
        if existing is not None:
            return existing

    now = utcnow()
    row = UnitTurnoverChecklist(
        org_id=int(org_id),
        unit_id=int(unit_id),
        lease_id=int(lease_id) if lease_id is not None else None,
        landlord_id=int(landlord_id),
        created_at=now,
        updated_at=now,
        **{k: False for k in CHECKLIST_ITEMS},
    )
    with store_errors("create turnover checklist"):
        db.add(row)
        db.flush()
    return row


def must_get_checklist(db: Session, *, checklist_id: int, org_id: Optional[int] = None) -> UnitTurnoverChecklist:
    q = select(UnitTurnoverChecklist).where(UnitTurnoverChecklist.id == int(checklist_id))
    if org_id is not None:
        q = q.where(UnitTurnoverChecklist.org_id == int(org_id))
    with store_errors("load turnover checklist"):
        row = db.scalar(q)
    if row is None:
        raise NotFound("Turnover checklist not found")
    return row


def update_checklist_item(
    db: Session,
    *,
    checklist_id: int,
    item: ChecklistItem | str,
    completed: bool,
    notes: Optional[str] = None,
    org_id: Optional[int] = None,
) -> UnitTurnoverChecklist:
    """
    Toggle one checklist item and stamp/clear its <item>_at timestamp.
    completed_at follows the overall state: set when all items are done,
    cleared when any is re-opened.
    """
    try:
        key = ChecklistItem(item).value
    except ValueError as e:
        raise ValidationError(f"Unknown checklist item: {item}") from e

    row = must_get_checklist(db, checklist_id=checklist_id, org_id=org_id)
    now = utcnow()

    setattr(row, key, bool(completed))
    setattr(row, f"{key}_at", now if completed else None)
    if notes is not None:
        row.notes = notes

    progress = checklist_progress(row)
    if progress.complete:
        row.completed_at = row.completed_at or now
    else:
        row.completed_at = None
    row.updated_at = now

    with store_errors("update turnover checklist"):
        db.add(row)
        db.commit()
        db.refresh(row)
    return row
