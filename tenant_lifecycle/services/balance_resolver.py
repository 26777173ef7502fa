# tenant_lifecycle/services/balance_resolver.py
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.errors import store_errors
from ..domain.types import OUTSTANDING_STATUSES
from ..models import RentPayment


@dataclass(frozen=True)
class OutstandingBalance:
    lease_id: int
    obligations: list[RentPayment]
    total_owed: float

    @property
    def oldest_due_date(self):
        return self.obligations[0].due_date if self.obligations else None

    def as_dict(self) -> dict:
        return {
            "lease_id": self.lease_id,
            "total_owed": self.total_owed,
            "obligation_count": len(self.obligations),
            "oldest_due_date": self.oldest_due_date,
            "obligations": [
                {"id": p.id, "amount": float(p.amount), "due_date": p.due_date, "status": p.status}
                for p in self.obligations
            ],
        }


def resolve_outstanding_balance(db: Session, *, lease_id: int) -> OutstandingBalance:
    """
    Pending/overdue obligations of a lease, oldest due date first (id breaks ties).
    """
    q = (
        select(RentPayment)
        .where(RentPayment.lease_id == int(lease_id), RentPayment.status.in_(OUTSTANDING_STATUSES))
        .order_by(RentPayment.due_date.asc(), RentPayment.id.asc())
    )
    with store_errors("resolve outstanding balance"):
        rows = list(db.scalars(q).all())

    total = round(sum(float(p.amount or 0.0) for p in rows), 2)
    return OutstandingBalance(lease_id=int(lease_id), obligations=rows, total_owed=total)
