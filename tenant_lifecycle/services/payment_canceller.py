# tenant_lifecycle/services/payment_canceller.py
from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..domain.errors import store_errors
from ..domain.types import CANCELLABLE_STATUSES, PaymentStatus
from ..models import RentPayment


def cancel_pending_payments(db: Session, *, lease_id: int) -> int:
    """
    Bulk pending/scheduled -> cancelled. Returns the number of rows moved.

    Overdue obligations are money actually owed; they stay put for the
    balance disposition flow. Already-cancelled rows are excluded by the
    filter, so re-running is a no-op.
    """
    stmt = (
        update(RentPayment)
        .where(RentPayment.lease_id == int(lease_id), RentPayment.status.in_(CANCELLABLE_STATUSES))
        .values(status=PaymentStatus.cancelled.value)
        .execution_options(synchronize_session=False)
    )
    with store_errors("cancel pending payments"):
        res = db.execute(stmt)
    return int(res.rowcount or 0)
