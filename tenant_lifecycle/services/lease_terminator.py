# tenant_lifecycle/services/lease_terminator.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..domain.clock import as_naive_utc, utcnow
from ..domain.errors import Conflict, NotFound, ValidationError, store_errors
from ..domain.types import TERMINABLE_STATUSES, DepartureType, LeaseStatus
from ..models import Lease

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TerminationOutcome:
    lease_id: int
    reason: str
    terminated_at: datetime
    already_terminated: bool = False


def terminate_lease(
    db: Session,
    *,
    lease_id: int,
    reason: DepartureType | str,
    terminated_at: datetime,
    commit: bool = True,
) -> TerminationOutcome:
    """
    Transition a lease to terminated in ONE conditional update.

    The WHERE clause keys on the current state, so two concurrent attempts
    cannot both win: the loser sees rowcount=0 and falls through to the
    already-terminated check.

    - already terminated with the same reason + date -> idempotent outcome
    - already terminated otherwise -> Conflict
    - draft (never started) -> Conflict
    - missing -> NotFound
    """
    try:
        reason_v = DepartureType(reason).value
    except ValueError as e:
        raise ValidationError(f"Unknown departure type: {reason}") from e
    when = as_naive_utc(terminated_at)

    stmt = (
        update(Lease)
        .where(Lease.id == int(lease_id), Lease.status.in_(TERMINABLE_STATUSES))
        .values(
            status=LeaseStatus.terminated.value,
            termination_reason=reason_v,
            terminated_at=when,
            end_date=when,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session="evaluate")
    )

    with store_errors("terminate lease"):
        res = db.execute(stmt)
        if res.rowcount == 1:
            if commit:
                db.commit()
            log.info("lease terminated", extra={"lease_id": int(lease_id), "step": "terminate_lease"})
            return TerminationOutcome(lease_id=int(lease_id), reason=reason_v, terminated_at=when)

        current = db.execute(
            select(Lease.status, Lease.termination_reason, Lease.terminated_at).where(Lease.id == int(lease_id))
        ).first()

    if current is None:
        raise NotFound("Lease not found")

    status, existing_reason, existing_at = current
    if status != LeaseStatus.terminated.value:
        raise Conflict(f"Lease {int(lease_id)} is {status}; only active or expired leases can be terminated")

    if existing_reason == reason_v and existing_at == when:
        log.info(
            "lease already terminated with same reason/date; treating as no-op",
            extra={"lease_id": int(lease_id), "step": "terminate_lease"},
        )
        return TerminationOutcome(lease_id=int(lease_id), reason=reason_v, terminated_at=when, already_terminated=True)

    raise Conflict(
        f"Lease {int(lease_id)} already terminated "
        f"(reason={existing_reason}, terminated_at={existing_at.isoformat() if existing_at else None})"
    )
